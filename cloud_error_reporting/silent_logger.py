# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Silent logger implementation for testing."""

from typing import Any

from .logger import Logger


class SilentLogger(Logger):
    """Logger that stores log messages in memory without output.

    Useful for tests that assert on exact warning text. SilentLogger does not
    filter by level; every record is captured.
    """

    def __init__(self, level: str = "WARNING", name: str | None = None):
        """Initialize silent logger.

        Args:
            level: Logging level (stored but not used for filtering)
            name: Optional logger name for identification
        """
        self.level = level.upper()
        self.name = name or "cloud_error_reporting"
        self.logs: list[dict[str, Any]] = []

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        log_entry: dict[str, Any] = {
            "level": level,
            "message": message,
        }

        if kwargs:
            log_entry["extra"] = kwargs

        self.logs.append(log_entry)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log("ERROR", message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log("DEBUG", message, **kwargs)

    def clear_logs(self) -> None:
        """Clear all stored log messages."""
        self.logs.clear()

    def get_logs(self, level: str | None = None) -> list[dict[str, Any]]:
        """Get stored log messages, optionally filtered by level.

        Args:
            level: Optional log level to filter by (DEBUG, INFO, WARNING, ERROR)

        Returns:
            List of log entries
        """
        if level is None:
            return self.logs
        return [log for log in self.logs if log["level"] == level]

    def get_messages(self, level: str | None = None) -> list[str]:
        """Get the message text of stored entries, optionally filtered by level."""
        return [log["message"] for log in self.get_logs(level)]

    def has_log(self, message: str, level: str | None = None) -> bool:
        """Check if a specific log message exists.

        Args:
            message: Message to search for (substring match)
            level: Optional log level to filter by

        Returns:
            True if message is found, False otherwise
        """
        return any(message in log["message"] for log in self.get_logs(level))
