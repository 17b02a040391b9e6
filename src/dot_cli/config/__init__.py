"""Configuration for dot."""

from dot_cli.config.organizations import ConfigManager
from dot_cli.config.settings import Settings, get_settings

__all__ = ["ConfigManager", "Settings", "get_settings"]
