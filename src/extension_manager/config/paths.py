"""Path constants and utilities for extension-manager configuration.

This module centralizes all path management for the application, including
the layout of the extension directory shared with the host application.
"""

import re
from pathlib import Path

from extension_manager.constants import (
    CATALOGS_DIR_NAME,
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_CONFIG_SUBDIR,
    INVALID_FILENAME_CHARACTERS,
    REGISTRY_FILE_NAME,
    STAGING_DIR_NAME,
)

_INVALID_FILENAME_RE = re.compile(INVALID_FILENAME_CHARACTERS)


class Paths:
    """Application paths and directory structure."""

    # Base directories
    HOME_DIR = Path.home()
    CONFIG_DIR = HOME_DIR / CONFIG_DIR_NAME / DEFAULT_CONFIG_SUBDIR
    LOGS_DIR = CONFIG_DIR / "logs"
    DEFAULT_EXTENSIONS_DIR = HOME_DIR / ".local" / "share" / "extensions"

    # Configuration files
    SETTINGS_FILE = CONFIG_DIR / CONFIG_FILE_NAME

    @staticmethod
    def strip_invalid_filename_characters(name: str) -> str:
        """Remove characters that cannot appear in a file name.

        Example:
            >>> Paths.strip_invalid_filename_characters('a/b:c"d')
            'abcd'
        """
        return _INVALID_FILENAME_RE.sub("", name)

    @classmethod
    def catalogs_dir(cls, extension_dir: Path) -> Path:
        """Directory holding every catalog-managed extension."""
        return extension_dir / CATALOGS_DIR_NAME

    @classmethod
    def registry_file(cls, extension_dir: Path) -> Path:
        """File persisting the list of catalog sources."""
        return cls.catalogs_dir(extension_dir) / REGISTRY_FILE_NAME

    @classmethod
    def staging_dir(cls, extension_dir: Path) -> Path:
        """Directory receiving downloads before they are moved in place."""
        return cls.catalogs_dir(extension_dir) / STAGING_DIR_NAME

    @classmethod
    def catalog_dir(cls, extension_dir: Path, catalog_name: str) -> Path:
        """Directory holding the extensions installed from one catalog."""
        return cls.catalogs_dir(extension_dir) / (
            cls.strip_invalid_filename_characters(catalog_name)
        )

    @classmethod
    def expand_path(cls, path_str: str) -> Path:
        """Expand and resolve path with ~ and relative path support.

        Example:
            >>> Paths.expand_path("~/Documents")
            Path('/home/user/Documents')
        """
        return Path(path_str).expanduser().resolve(strict=False)
