"""Centralized constants module for extension-manager.

This module serves as the single source of truth for all shared constants
across the extension-manager codebase. Constants are organized by logical
categories and use typing.Final annotations to ensure immutability.

Usage:
    from extension_manager.constants import CONFIG_VERSION
"""

from typing import Final

# =============================================================================
# Configuration Constants
# =============================================================================

# Configuration version - single source of truth for config versioning
CONFIG_VERSION: Final[str] = "1.0.0"

# Configuration directory and file names
CONFIG_FILE_NAME: Final[str] = "settings.conf"

# Default config directory name under the user's home directory
CONFIG_DIR_NAME: Final[str] = ".config"

# Application-specific subdirectory under the config directory
DEFAULT_CONFIG_SUBDIR: Final[str] = "extension-manager"

# Configuration defaults
DEFAULT_LOG_LEVEL: Final[str] = "INFO"
DEFAULT_CONSOLE_LOG_LEVEL: Final[str] = "WARNING"
DEFAULT_BACKUP_COUNT: Final[int] = 3
DEFAULT_HOST_VERSION: Final[str] = "v0.1.0"
DEFAULT_USE_TRASH: Final[bool] = True
DEFAULT_TIMEOUT_SECONDS: Final[int] = 10
DEFAULT_MAX_CONCURRENT_DOWNLOADS: Final[int] = 3

# Config section and key names
SECTION_DEFAULT: Final[str] = "DEFAULT"
SECTION_NETWORK: Final[str] = "network"
SECTION_DIRECTORY: Final[str] = "directory"

KEY_CONFIG_VERSION: Final[str] = "config_version"
KEY_HOST_VERSION: Final[str] = "host_version"
KEY_LOG_LEVEL: Final[str] = "log_level"
KEY_CONSOLE_LOG_LEVEL: Final[str] = "console_log_level"
KEY_USE_TRASH: Final[str] = "use_trash"
KEY_TIMEOUT_SECONDS: Final[str] = "timeout_seconds"
KEY_MAX_CONCURRENT_DOWNLOADS: Final[str] = "max_concurrent_downloads"
KEY_EXTENSIONS_DIR: Final[str] = "extensions"
KEY_LOGS_DIR: Final[str] = "logs"

# =============================================================================
# Catalog Trust Constants
# =============================================================================

# Host every main artifact must come from
SOURCE_HOST: Final[str] = "github.com"

# Mirror and public registry hosts allowed for dependencies and docs
ARTIFACT_MIRROR_HOST: Final[str] = "maven.scijava.org"
PUBLIC_REGISTRY_HOST: Final[str] = "repo1.maven.org"

TRUSTED_HOSTS: Final[tuple[str, ...]] = (
    SOURCE_HOST,
    ARTIFACT_MIRROR_HOST,
    PUBLIC_REGISTRY_HOST,
)

TRUSTED_SCHEME: Final[str] = "https"

# =============================================================================
# Extension Directory Layout
# =============================================================================

CATALOGS_DIR_NAME: Final[str] = "catalogs"
STAGING_DIR_NAME: Final[str] = ".staging"
REGISTRY_FILE_NAME: Final[str] = "registry.json"

# Characters removed from catalog and extension names before they become
# directory names
INVALID_FILENAME_CHARACTERS: Final[str] = r"[\\/:\"*?<>|\n\r]+"

# =============================================================================
# Network Constants
# =============================================================================

CHUNK_SIZE: Final[int] = 8192
CONTENT_PREVIEW_MAX: Final[int] = 200
GITHUB_API_CONTENTS_URL: Final[str] = (
    "https://api.github.com/repos/{owner}/{repo}/contents/{path}"
)
CATALOG_FILE_NAME: Final[str] = "catalog.json"

# =============================================================================
# Logging Constants
# =============================================================================

# Maximum size for rotated log files (bytes)
LOG_MAX_FILE_SIZE_BYTES: Final[int] = 1024 * 1024  # 1 MB

# Number of backup files to keep for rotated logs
LOG_BACKUP_COUNT: Final[int] = DEFAULT_BACKUP_COUNT

# Console and file format strings used by the logger
LOG_CONSOLE_FORMAT: Final[str] = (
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
LOG_CONSOLE_DATE_FORMAT: Final[str] = "%H:%M:%S"
LOG_FILE_FORMAT: Final[str] = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "%(funcName)s:%(lineno)d - %(message)s"
)
LOG_FILE_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME: Final[str] = "extension-manager.log"

# Environment variable redirecting the log directory (used by tests)
LOG_DIR_ENV_VAR: Final[str] = "EXTENSION_MANAGER_LOG_DIR"

# Color mapping for console output levels
LOG_COLORS: Final[dict[str, str]] = {
    "DEBUG": "\033[36m",  # Cyan
    "INFO": "\033[32m",  # Green
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}
