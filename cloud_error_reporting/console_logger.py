# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Console logger implementation with structured JSON output."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from .logger import Logger

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class ConsoleLogger(Logger):
    """Logger that writes one JSON object per line to stderr.

    Records are also forwarded to the stdlib logger of the same name so host
    applications and test harnesses (caplog) can capture them.
    """

    def __init__(self, level: str = "WARNING", name: str | None = None, stream: TextIO | None = None):
        """Initialize console logger.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            name: Optional logger name for identification
            stream: Output stream (defaults to sys.stderr at write time)
        """
        self.level = level.upper()
        self.name = name or "cloud_error_reporting"
        self._stream = stream

        if self.level not in LEVELS:
            raise ValueError(f"Invalid log level: {level}. Must be one of {list(LEVELS.keys())}")

        self._stdlib_logger = logging.getLogger(self.name)
        # NOTSET inherits the root level; filtering for console output happens in _log
        self._stdlib_logger.setLevel(logging.NOTSET)

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        if LEVELS[level] < LEVELS[self.level]:
            return

        exc_info = kwargs.pop("exc_info", None)

        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "logger": self.name,
            "message": message,
        }
        if kwargs:
            log_entry["extra"] = kwargs

        stream = self._stream or sys.stderr
        try:
            print(json.dumps(log_entry, default=str), file=stream, flush=True)
        except (TypeError, ValueError) as e:
            print(f"{level}: {message} (JSON serialization failed: {e})", file=stream, flush=True)

        extra = {"extra": kwargs} if kwargs else None
        self._stdlib_logger.log(LEVELS[level], message, exc_info=exc_info, extra=extra)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log("ERROR", message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log("DEBUG", message, **kwargs)
