# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Logger interface for the library's own diagnostics.

The library logs about itself (configuration warnings, credential problems,
delivery retries), never about the errors it reports. Verbosity comes from
GCLOUD_ERRORS_LOGLEVEL or the ``log_level`` option:

    1 -> ERROR, 2 -> WARNING (also 0 or unset), 3 -> INFO, 4/5 -> DEBUG
"""

from abc import ABC, abstractmethod
from typing import Any


class Logger(ABC):
    """Abstract base class for the library's structured loggers.

    Implementations must be callable from any thread, since deliveries may run
    on a background event loop. Keyword arguments are structured fields such
    as ``attempt``, ``status_code`` or ``error``.
    """

    @abstractmethod
    def debug(self, message: str, **kwargs: Any) -> None:
        """Log per-attempt delivery details (level 4 and above)."""

    @abstractmethod
    def info(self, message: str, **kwargs: Any) -> None:
        """Log resolved configuration and authentication choices (level 3)."""

    @abstractmethod
    def warning(self, message: str, **kwargs: Any) -> None:
        """Log recoverable problems: ignored options, retried attempts, unhandled loop exceptions."""

    @abstractmethod
    def error(self, message: str, **kwargs: Any) -> None:
        """Log failures that prevent an event from being delivered."""

    @abstractmethod
    def exception(self, message: str, **kwargs: Any) -> None:
        """Log at error level with the active exception's traceback.

        Only meaningful inside an ``except`` block; used when a caller
        supplied callback raises.
        """
