"""Settings manager for the INI configuration file."""

from __future__ import annotations

import configparser
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path

from extension_manager.config.paths import Paths
from extension_manager.constants import (
    CONFIG_FILE_NAME,
    CONFIG_VERSION,
    DEFAULT_CONSOLE_LOG_LEVEL,
    DEFAULT_HOST_VERSION,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USE_TRASH,
    KEY_CONFIG_VERSION,
    KEY_CONSOLE_LOG_LEVEL,
    KEY_EXTENSIONS_DIR,
    KEY_HOST_VERSION,
    KEY_LOG_LEVEL,
    KEY_LOGS_DIR,
    KEY_MAX_CONCURRENT_DOWNLOADS,
    KEY_TIMEOUT_SECONDS,
    KEY_USE_TRASH,
    SECTION_DEFAULT,
    SECTION_DIRECTORY,
    SECTION_NETWORK,
)
from extension_manager.core.observable import ObservableValue
from extension_manager.exceptions import ConfigurationError
from extension_manager.logger import get_logger

logger = get_logger(__name__)

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_KEY_COMMENTS: dict[str, dict[str, str]] = {
    SECTION_DEFAULT: {
        KEY_CONFIG_VERSION: "Settings format version, do not edit",
        KEY_HOST_VERSION: "Version of the host application (vMAJOR.MINOR.PATCH)",
        KEY_LOG_LEVEL: "Log file level: DEBUG, INFO, WARNING, ERROR",
        KEY_CONSOLE_LOG_LEVEL: "Console log level: DEBUG, INFO, WARNING, ERROR",
        KEY_USE_TRASH: "Move removed extensions to trash instead of deleting",
    },
    SECTION_NETWORK: {
        KEY_TIMEOUT_SECONDS: "Connection timeout for every request",
        KEY_MAX_CONCURRENT_DOWNLOADS: "Parallel connections per host",
    },
    SECTION_DIRECTORY: {
        KEY_EXTENSIONS_DIR: "Directory shared with the host application",
        KEY_LOGS_DIR: "Directory of the rotating log file",
    },
}


@dataclass(frozen=True)
class NetworkSettings:
    """Network related settings."""

    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    max_concurrent_downloads: int = DEFAULT_MAX_CONCURRENT_DOWNLOADS


@dataclass(frozen=True)
class Settings:
    """Parsed content of the settings file."""

    extensions_dir: Path
    logs_dir: Path
    host_version: str = DEFAULT_HOST_VERSION
    log_level: str = DEFAULT_LOG_LEVEL
    console_log_level: str = DEFAULT_CONSOLE_LOG_LEVEL
    use_trash: bool = DEFAULT_USE_TRASH
    network: NetworkSettings = field(default_factory=NetworkSettings)
    config_version: str = CONFIG_VERSION


class SettingsManager:
    """Manages the INI settings file and the live extension directory."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize settings manager.

        Args:
            config_dir: Configuration directory path
                (defaults to Paths.CONFIG_DIR)

        """
        self.config_dir = config_dir or Paths.CONFIG_DIR
        self.settings_file = self.config_dir / CONFIG_FILE_NAME
        self._extension_directory: ObservableValue[Path | None] | None = None

    def get_default_settings(self) -> Settings:
        """Get default settings values."""
        return Settings(
            extensions_dir=Paths.DEFAULT_EXTENSIONS_DIR,
            logs_dir=self.config_dir / "logs",
        )

    def load_settings(self) -> Settings:
        """Load settings, writing a default file on first use.

        Raises:
            ConfigurationError: If a value cannot be converted

        """
        defaults = self.get_default_settings()
        if not self.settings_file.exists():
            logger.debug(
                "No settings found at %s, writing defaults", self.settings_file
            )
            self.save_settings(defaults)
            return defaults

        parser = configparser.ConfigParser(
            inline_comment_prefixes=("#", ";"),
            interpolation=None,
        )
        parser.read_dict(self._to_raw(defaults))
        parser.read(self.settings_file, encoding="utf-8")
        return self._from_parser(parser)

    def save_settings(self, settings: Settings) -> None:
        """Save settings to the INI file with explanatory comments."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        raw = self._to_raw(settings)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        with self.settings_file.open("w", encoding="utf-8") as f:
            f.write("# extension-manager settings\n")
            f.write(f"# Generated on {timestamp}\n\n")
            for section, values in raw.items():
                f.write(f"[{section}]\n")
                for key, value in values.items():
                    comment = _KEY_COMMENTS[section].get(key)
                    if comment:
                        f.write(f"# {comment}\n")
                    f.write(f"{key} = {value}\n")
                f.write("\n")

        logger.debug("Settings saved to %s", self.settings_file)

    def extension_directory(self) -> ObservableValue[Path | None]:
        """Return the live extension directory value.

        The same object is returned on every call so the engine and the host
        share one value; set_extension_directory() updates it.
        """
        if self._extension_directory is None:
            self._extension_directory = ObservableValue(
                self.load_settings().extensions_dir
            )
        return self._extension_directory

    def set_extension_directory(self, path: Path | None) -> None:
        """Persist a new extension directory and publish it."""
        settings = self.load_settings()
        if path is not None:
            self.save_settings(replace(settings, extensions_dir=path))
        self.extension_directory().set(path)
        logger.info("Extension directory set to %s", path)

    def _to_raw(self, settings: Settings) -> dict[str, dict[str, str]]:
        return {
            SECTION_DEFAULT: {
                KEY_CONFIG_VERSION: settings.config_version,
                KEY_HOST_VERSION: settings.host_version,
                KEY_LOG_LEVEL: settings.log_level,
                KEY_CONSOLE_LOG_LEVEL: settings.console_log_level,
                KEY_USE_TRASH: str(settings.use_trash).lower(),
            },
            SECTION_NETWORK: {
                KEY_TIMEOUT_SECONDS: str(settings.network.timeout_seconds),
                KEY_MAX_CONCURRENT_DOWNLOADS: str(
                    settings.network.max_concurrent_downloads
                ),
            },
            SECTION_DIRECTORY: {
                KEY_EXTENSIONS_DIR: str(settings.extensions_dir),
                KEY_LOGS_DIR: str(settings.logs_dir),
            },
        }

    def _from_parser(self, parser: configparser.ConfigParser) -> Settings:
        try:
            default = parser[SECTION_DEFAULT]
            network = parser[SECTION_NETWORK]
            directory = parser[SECTION_DIRECTORY]
            settings = Settings(
                extensions_dir=Paths.expand_path(directory[KEY_EXTENSIONS_DIR]),
                logs_dir=Paths.expand_path(directory[KEY_LOGS_DIR]),
                host_version=default[KEY_HOST_VERSION],
                log_level=default[KEY_LOG_LEVEL].upper(),
                console_log_level=default[KEY_CONSOLE_LOG_LEVEL].upper(),
                use_trash=default.getboolean(KEY_USE_TRASH),
                network=NetworkSettings(
                    timeout_seconds=network.getint(KEY_TIMEOUT_SECONDS),
                    max_concurrent_downloads=network.getint(
                        KEY_MAX_CONCURRENT_DOWNLOADS
                    ),
                ),
                config_version=default[KEY_CONFIG_VERSION],
            )
        except (KeyError, ValueError) as e:
            msg = f"Invalid settings in {self.settings_file}: {e}"
            raise ConfigurationError(msg) from e

        for level in (settings.log_level, settings.console_log_level):
            if level not in _VALID_LOG_LEVELS:
                msg = f"Unknown log level '{level}' in {self.settings_file}"
                raise ConfigurationError(msg)

        return settings
