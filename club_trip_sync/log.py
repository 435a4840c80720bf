"""
Logging for Club Trip Sync.

Keeps the verbosity model used by the command line (``-v`` for warnings,
``-vv`` for debug) and forwards everything to the standard ``logging``
module so Lambda and other hosts can route the output.
"""

import logging
from enum import Enum, auto
from typing import Optional

LOGGER_NAME = "club_trip_sync"


class LogLevel(Enum):
    """Logging levels for the sync."""
    NORMAL = auto()
    WARN = auto()
    DEBUG = auto()


_STDLIB_LEVELS = {
    LogLevel.NORMAL: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.DEBUG: logging.DEBUG,
}


class Logger:
    """Simple logger with configurable levels."""

    def __init__(
        self,
        level: LogLevel = LogLevel.NORMAL,
        name: str = LOGGER_NAME,
    ):
        self.level = level
        self._logger = logging.getLogger(name)

    def log(self, message: str, level: LogLevel = LogLevel.NORMAL) -> None:
        """
        Log a message if the current level is sufficient.

        Args:
            message: Message to log
            level: Level of the message
        """
        if level.value <= self.level.value:
            self._logger.log(_STDLIB_LEVELS[level], message)

    def normal(self, message: str) -> None:
        """Log a normal priority message."""
        self.log(message, LogLevel.NORMAL)

    def warn(self, message: str) -> None:
        """Log a warning priority message."""
        self.log(message, LogLevel.WARN)

    def debug(self, message: str) -> None:
        """Log a debug priority message."""
        self.log(message, LogLevel.DEBUG)

    def error(self, message: str, exc_info: bool = False) -> None:
        """Log a failure. Always emitted regardless of verbosity."""
        self._logger.error(message, exc_info=exc_info)


def get_log_level(verbose_count: int) -> LogLevel:
    """
    Convert verbose count to log level.

    Args:
        verbose_count: Number of -v flags

    Returns:
        Appropriate log level
    """
    if verbose_count >= 2:
        return LogLevel.DEBUG
    elif verbose_count == 1:
        return LogLevel.WARN
    return LogLevel.NORMAL


def parse_log_level(value: Optional[str]) -> LogLevel:
    """Read a LOG_LEVEL setting, defaulting to NORMAL for unknown names."""
    try:
        return LogLevel[(value or "NORMAL").strip().upper()]
    except KeyError:
        return LogLevel.NORMAL


def configure_logging(level: LogLevel) -> Logger:
    """Attach a console handler once and return a Logger at ``level``."""
    root = logging.getLogger(LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    return Logger(level)
