"""Main logger module providing public API functions.

- setup_logging(): Configure logging with async-safe QueueHandler architecture
- get_logger(): Get or create a logger under the package root logger
- flush_all_handlers(): Ensure all pending log records are written
- update_logger_from_settings(): Apply levels from the settings file
- clear_logger_state(): Reset global logger state for testing
"""

import atexit
import contextlib
import logging
import os
import queue
import sys
import threading
import time
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from extension_manager.constants import (
    DEFAULT_CONSOLE_LOG_LEVEL,
    DEFAULT_LOG_LEVEL,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_DATE_FORMAT,
    LOG_CONSOLE_FORMAT,
    LOG_DIR_ENV_VAR,
    LOG_FILE_DATE_FORMAT,
    LOG_FILE_FORMAT,
    LOG_FILE_NAME,
    LOG_MAX_FILE_SIZE_BYTES,
)
from extension_manager.exceptions import ConfigurationError
from extension_manager.logger.formatters import HybridConsoleFormatter

if TYPE_CHECKING:
    from extension_manager.config.settings import Settings

ROOT_LOGGER_NAME = "extension_manager"


class _LoggerState:
    """Container for logger state (avoids module-level mutable globals).

    Attributes:
        lock: Thread lock for root logger initialization
        root_initialized: Whether root logger has been set up
        queue_listener: Background thread processing log records
        log_queue: Queue for async-safe log record processing

    """

    def __init__(self) -> None:
        """Initialize logger state."""
        self.lock = threading.Lock()
        self.root_initialized = False
        self.queue_listener: QueueListener | None = None
        self.log_queue: queue.Queue | None = None


_state = _LoggerState()


def default_log_file() -> Path:
    """Return the log file path, honoring the log directory override."""
    env_log_dir = os.getenv(LOG_DIR_ENV_VAR)
    if env_log_dir:
        return Path(env_log_dir).expanduser() / LOG_FILE_NAME
    return (
        Path.home() / ".config" / "extension-manager" / "logs" / LOG_FILE_NAME
    )


def _create_console_handler(console_level: str) -> logging.StreamHandler:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        HybridConsoleFormatter(
            LOG_CONSOLE_FORMAT,
            datefmt=LOG_CONSOLE_DATE_FORMAT,
        )
    )
    console_handler.setLevel(getattr(logging, console_level, logging.WARNING))
    return console_handler


def _create_file_handler(log_file: Path, file_level: str) -> RotatingFileHandler:
    """Create the rotating file handler.

    Raises:
        ConfigurationError: If the log directory or file cannot be opened

    """
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=LOG_MAX_FILE_SIZE_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as e:
        msg = f"Failed to setup file logging: {e}"
        raise ConfigurationError(msg) from e

    file_handler.setFormatter(
        logging.Formatter(LOG_FILE_FORMAT, datefmt=LOG_FILE_DATE_FORMAT)
    )
    file_handler.setLevel(getattr(logging, file_level, logging.INFO))
    return file_handler


def _setup_root_logger(
    console_level: str,
    file_level: str,
    log_file: Path,
    enable_file_logging: bool,  # noqa: FBT001
) -> None:
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)  # Capture all, filter at handlers
    root_logger.propagate = False

    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    handlers: list[logging.Handler] = [_create_console_handler(console_level)]
    if enable_file_logging:
        handlers.append(_create_file_handler(log_file, file_level))

    _state.log_queue = queue.Queue(-1)
    _state.queue_listener = QueueListener(
        _state.log_queue,
        *handlers,
        respect_handler_level=True,
    )
    _state.queue_listener.start()
    root_logger.addHandler(QueueHandler(_state.log_queue))
    _state.root_initialized = True


def flush_all_handlers() -> None:
    """Flush all handlers in the QueueListener to ensure writes complete.

    Waits (up to five seconds) for the queue to drain, then flushes every
    handler buffer. Safe to call from any thread.
    """
    if _state.queue_listener is None or _state.log_queue is None:
        return

    timeout = 5.0
    start_time = time.time()
    while not _state.log_queue.empty():
        if time.time() - start_time > timeout:
            break
        time.sleep(0.01)

    time.sleep(0.1)

    for handler in _state.queue_listener.handlers:
        with contextlib.suppress(OSError, ValueError):
            handler.flush()


def _cleanup_logging() -> None:
    if _state.queue_listener is not None:
        flush_all_handlers()
        _state.queue_listener.stop()
        _state.queue_listener = None


atexit.register(_cleanup_logging)


def setup_logging(
    name: str = ROOT_LOGGER_NAME,
    console_level: str | None = None,
    file_level: str | None = None,
    log_file: Path | None = None,
    enable_file_logging: bool = True,  # noqa: FBT001, FBT002
) -> logging.Logger:
    """Configure logging with async-safe QueueHandler architecture.

    The package root logger is initialized exactly once; child loggers
    created afterwards propagate to it.

    Handler Configuration (via QueueListener):
        - Console Handler: StreamHandler with hybrid colored output
        - File Handler: RotatingFileHandler (1MB, LOG_BACKUP_COUNT backups)
        - Queue Handler: Non-blocking handler on the root logger

    Args:
        name: Logger name, typically __name__ for module-level loggers
        console_level: Console log level ("DEBUG", "INFO", "WARNING")
        file_level: File log level ("DEBUG", "INFO")
        log_file: Path to log file (default: see default_log_file())
        enable_file_logging: Whether to enable file logging

    Returns:
        Logger instance

    Raises:
        ConfigurationError: If file logging setup fails

    """
    with _state.lock:
        if not _state.root_initialized:
            _setup_root_logger(
                console_level or DEFAULT_CONSOLE_LOG_LEVEL,
                file_level or DEFAULT_LOG_LEVEL,
                log_file or default_log_file(),
                enable_file_logging,
            )

    return logging.getLogger(name)


def get_logger(
    name: str = ROOT_LOGGER_NAME,
    enable_file_logging: bool = True,  # noqa: FBT001, FBT002
) -> logging.Logger:
    """Get or create logger instance.

    Example:
        >>> from extension_manager.logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Installing %s %s", extension_name, release_name)

    """
    return setup_logging(name=name, enable_file_logging=enable_file_logging)


def update_logger_from_settings(settings: "Settings") -> None:
    """Update handler levels from loaded settings.

    Only handler levels change; handlers are never added or removed.
    """
    console_level = getattr(
        logging, settings.console_log_level, logging.WARNING
    )
    file_level = getattr(logging, settings.log_level, logging.INFO)

    if _state.queue_listener is None:
        return

    for handler in _state.queue_listener.handlers:
        if isinstance(handler, RotatingFileHandler):
            handler.setLevel(file_level)
        elif isinstance(handler, logging.StreamHandler):
            handler.setLevel(console_level)


def clear_logger_state() -> None:
    """Clear global logger state for testing purposes.

    Stops the QueueListener, removes all handlers from package loggers and
    resets the initialization flag.

    Warning:
        This function is intended for testing only.

    """
    with _state.lock:
        if _state.queue_listener is not None:
            flush_all_handlers()
            _state.queue_listener.stop()
            _state.queue_listener = None

        _state.log_queue = None
        _state.root_initialized = False

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in root_logger.handlers[:]:
            handler.close()
            root_logger.removeHandler(handler)
