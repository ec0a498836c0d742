"""
Configuration management for aaexplorer.

This module provides configuration file support with YAML format,
user preferences, and default settings.

Features:
- YAML configuration file at ~/.config/aaexplorer/config.yaml
  (AAEXPLORER_CONFIG_DIR overrides the directory)
- Default values with user overrides
- Query API endpoint and credentials
- Page size choices and the last selected network
- Log location override

Architecture:
- ConfigManager: Main configuration interface
- Merges user config with defaults
- Provides typed access to settings
- Handles missing/invalid config gracefully
"""

import os
import yaml
import logging
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
PAGE_SIZE_LIST = [10, 25, 50]


@dataclass
class ApiConfig:
    """Query API connection settings."""
    base_url: str = "https://api.jiffyscan.xyz"
    api_key: Optional[str] = None
    timeout: float = 15.0


@dataclass
class BrowsingConfig:
    """Pagination defaults and remembered selections."""
    default_page_size: int = DEFAULT_PAGE_SIZE
    page_sizes: List[int] = field(default_factory=lambda: list(PAGE_SIZE_LIST))
    home_table_size: int = 5
    last_network: Optional[str] = None


@dataclass
class UIConfig:
    """UI-related configuration."""
    show_clock: bool = True
    refresh_interval: int = 250  # milliseconds


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    file_path: Optional[str] = None  # None for default
    max_size_mb: int = 10
    backup_count: int = 5


@dataclass
class AppConfig:
    """Main application configuration."""
    api: ApiConfig = field(default_factory=ApiConfig)
    browsing: BrowsingConfig = field(default_factory=BrowsingConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LogConfig = field(default_factory=LogConfig)


class ConfigManager:
    """Configuration manager with YAML file support."""

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            env_dir = os.environ.get("AAEXPLORER_CONFIG_DIR")
            config_dir = Path(env_dir) if env_dir else Path.home() / ".config" / "aaexplorer"
        self.config_dir = Path(config_dir)
        self.config_file = self.config_dir / "config.yaml"
        self._config: AppConfig = AppConfig()

        self.load_config()

    def load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            if self.config_file.exists():
                with open(self.config_file, 'r') as f:
                    user_config = yaml.safe_load(f) or {}

                self._config = self._merge_configs(AppConfig(), user_config)
                self._validate_browsing(self._config.browsing)
                logger.debug(f"Loaded configuration from {self.config_file}")
            else:
                self.save_config()
                logger.info(f"Created default configuration at {self.config_file}")
        except Exception as e:
            logger.error(f"Failed to load config: {e}, using defaults")
            self._config = AppConfig()

    def save_config(self) -> None:
        """Save current configuration to YAML file."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w') as f:
                yaml.safe_dump(asdict(self._config), f, default_flow_style=False, indent=2)
            logger.debug(f"Saved configuration to {self.config_file}")
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

    def get_config(self) -> AppConfig:
        return self._config

    def _merge_configs(self, default: AppConfig, user: Dict[str, Any]) -> AppConfig:
        """Merge user config with defaults."""
        if not isinstance(user, dict):
            raise ValueError("top-level config must be a mapping")
        for section in fields(AppConfig):
            if isinstance(user.get(section.name), dict):
                self._merge_dataclass(getattr(default, section.name), user[section.name])
        return default

    def _merge_dataclass(self, obj: Any, updates: Dict[str, Any]) -> None:
        for key, value in updates.items():
            if hasattr(obj, key):
                setattr(obj, key, value)
            else:
                logger.warning(f"Ignoring unknown config key: {key}")

    def _validate_browsing(self, browsing: BrowsingConfig) -> None:
        sizes = browsing.page_sizes
        if not isinstance(sizes, list) or not sizes or not all(
            isinstance(s, int) and not isinstance(s, bool) and s > 0 for s in sizes
        ):
            logger.warning(f"Invalid page_sizes {sizes!r}, using {PAGE_SIZE_LIST}")
            browsing.page_sizes = list(PAGE_SIZE_LIST)
        if browsing.default_page_size not in browsing.page_sizes:
            logger.warning(
                f"default_page_size {browsing.default_page_size!r} not in page_sizes, "
                f"using {browsing.page_sizes[0]}"
            )
            browsing.default_page_size = browsing.page_sizes[0]

    def get_api_base_url(self) -> str:
        return self._config.api.base_url.rstrip("/")

    def get_api_key(self) -> Optional[str]:
        return self._config.api.api_key or os.environ.get("AAEXPLORER_API_KEY")

    def get_timeout(self) -> float:
        return float(self._config.api.timeout)

    def get_page_sizes(self) -> List[int]:
        return list(self._config.browsing.page_sizes)

    def get_default_page_size(self) -> int:
        return self._config.browsing.default_page_size

    def get_home_table_size(self) -> int:
        return self._config.browsing.home_table_size

    def get_last_network(self) -> Optional[str]:
        return self._config.browsing.last_network

    def set_last_network(self, network: str) -> None:
        """Remember the selected network across sessions."""
        if self._config.browsing.last_network == network:
            return
        self._config.browsing.last_network = network
        self.save_config()

    def get_log_level(self) -> str:
        return self._config.logging.level.upper()

    def get_custom_log_path(self) -> Optional[str]:
        return self._config.logging.file_path

    def get_refresh_interval(self) -> int:
        """Get UI refresh interval in milliseconds."""
        return self._config.ui.refresh_interval


# Global config instance
config_manager = ConfigManager()
