"""Logging utilities for extension-manager.

This package provides structured logging with:
- Colored console output with ANSI color codes
- File rotation using standard RotatingFileHandler
- Async-safe logging via QueueHandler/QueueListener
- Hierarchical logger naming (e.g., extension_manager.core.manager)

Architecture:
    Application → QueueHandler → Queue → QueueListener Thread
                                              ↓
                                    Console + File Handlers

Usage:
    >>> from extension_manager.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Fetching catalog %s", uri)  # Use %-style formatting

Environment Variables:
    EXTENSION_MANAGER_LOG_DIR: Overrides the log directory. Used by the test
        suite so test runs never write to the user's log file.

Rules for contributors:
    1. Always use: logger = get_logger(__name__)
    2. Never call logging.basicConfig()
    3. Never attach handlers to child loggers
    4. Never use f-strings in log calls
"""

from extension_manager.logger.formatters import (
    ColoredConsoleFormatter,
    HybridConsoleFormatter,
)
from extension_manager.logger.logger import (
    clear_logger_state,
    flush_all_handlers,
    get_logger,
    setup_logging,
    update_logger_from_settings,
)

__all__ = [
    "ColoredConsoleFormatter",
    "HybridConsoleFormatter",
    "clear_logger_state",
    "flush_all_handlers",
    "get_logger",
    "setup_logging",
    "update_logger_from_settings",
]
