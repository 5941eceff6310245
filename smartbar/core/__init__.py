"""Core package containing the configuration and logging managers."""

from smartbar.core.base import SmartbarManager
from smartbar.core.config_manager import ConfigManager, FeedSettings, PackagingSettings
from smartbar.core.logging_manager import LoggingManager
