"""Configuration management - settings file and path utilities.

This package provides:
- SettingsManager: INI settings file and live extension directory
- Settings / NetworkSettings: typed settings values
- Paths: Path constants and extension directory layout
"""

from extension_manager.config.paths import Paths
from extension_manager.config.settings import (
    NetworkSettings,
    Settings,
    SettingsManager,
)

__all__ = [
    "NetworkSettings",
    "Paths",
    "Settings",
    "SettingsManager",
]
