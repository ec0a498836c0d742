"""
Command-line entry point for aaexplorer.

Usage:
  python -m aaexplorer                      # home view, last used network
  python -m aaexplorer /recentUserOps       # list page
  python -m aaexplorer "/paymaster/0xabc?network=base&pageNo=2&pageSize=25"
"""

import argparse
import logging
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from . import __version__, get_log_path
from .config import ConfigManager, config_manager
from .location import parse_location


def setup_logging(config: ConfigManager) -> None:
    path = config.get_custom_log_path() or get_log_path()
    log_config = config.get_config().logging
    handler = RotatingFileHandler(
        path,
        maxBytes=log_config.max_size_mb * 1024 * 1024,
        backupCount=log_config.backup_count,
    )
    level = getattr(logging, config.get_log_level().upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        handlers=[handler],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aaexplorer",
        description="Terminal browser for ERC-4337 bundles, user operations, bundlers and paymasters.",
    )
    parser.add_argument(
        "location",
        nargs="?",
        default="/",
        help="location to open, e.g. /address/0xabc?network=polygon",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(config_manager)
    logging.getLogger(__name__).info(f"Starting aaexplorer {__version__} at {args.location}")

    from .textual_app import run
    run(parse_location(args.location), config_manager)


if __name__ == "__main__":
    main()
