"""
Smoke tests to verify basic application integrity.
Ensures that all modules can be imported without errors.
"""
import unittest


class TestSmoke(unittest.TestCase):
    def test_import_textual_app(self):
        """Test that aaexplorer.textual_app can be imported successfully."""
        try:
            import aaexplorer.textual_app
        except ImportError as e:
            self.fail(f"Failed to import aaexplorer.textual_app: {e}")

    def test_import_main_module(self):
        """Test that aaexplorer.__main__ can be imported successfully."""
        try:
            import aaexplorer.__main__
        except ImportError as e:
            self.fail(f"Failed to import aaexplorer.__main__: {e}")

    def test_import_backend(self):
        """Test that aaexplorer.backend can be imported successfully."""
        try:
            import aaexplorer.backend
        except ImportError as e:
            self.fail(f"Failed to import aaexplorer.backend: {e}")

    def test_cli_parses_location(self):
        from aaexplorer.__main__ import build_parser

        args = build_parser().parse_args(["/bundlers?network=base"])
        self.assertEqual(args.location, "/bundlers?network=base")
        self.assertEqual(build_parser().parse_args([]).location, "/")


if __name__ == '__main__':
    unittest.main()
