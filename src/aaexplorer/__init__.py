"""
aaexplorer - A terminal browser for an ERC-4337 account-abstraction explorer.

This package provides a keyboard-driven, read-only view over an already-indexed
explorer query API: recent bundles, recent user operations, top bundlers and
paymasters, and per-address activity across several networks.

Features:
  - Home view with four live tables for the selected network
  - Paymaster, bundler and address detail pages with pagination
  - Automatic network discovery for addresses opened without a network
  - Shareable locations (path + network/pageNo/pageSize query)

Main Components:
  - networks.py: Supported networks and display metadata
  - backend.py: Async query API client
  - resolver.py: Concurrent network discovery for hashes/addresses
  - state.py: Page state controller with location sync
  - browser.py: Fetch orchestration into table rows
  - textual_app.py: Textual front-end

Usage:
  python -m aaexplorer [LOCATION]

Dependencies:
  - httpx, textual, rich, PyYAML
  - Python 3.10+
"""

import os
from pathlib import Path

__version__ = "0.1.0"


def get_log_path() -> str:
    """
    Get the log file path following XDG Base Directory spec.

    Returns XDG_DATA_HOME/aaexplorer/logs/aaexplorer.log with fallback to /tmp.
    Creates directory if it doesn't exist.

    Returns:
        str: Absolute path to log file (/tmp/aaexplorer.log as fallback)
    """
    xdg_data_home = os.environ.get('XDG_DATA_HOME')
    if not xdg_data_home:
        xdg_data_home = Path.home() / '.local' / 'share'
    else:
        xdg_data_home = Path(xdg_data_home)

    log_dir = xdg_data_home / 'aaexplorer' / 'logs'

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        return str(log_dir / 'aaexplorer.log')
    except (PermissionError, OSError):
        return '/tmp/aaexplorer.log'
