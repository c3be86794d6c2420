# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Environment providers used to read process-level settings.

All reads of platform signals (K_SERVICE, FUNCTION_NAME, GAE_*, the production
flag, project id variables, GCLOUD_ERRORS_LOGLEVEL) go through a provider so
tests can substitute a static mapping instead of mutating ``os.environ``.
"""

import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any


class ConfigProvider(ABC):
    """Abstract base class for environment providers."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Get a raw value."""
        raise NotImplementedError

    def get_str(self, key: str) -> str | None:
        """Get a non-empty string value, or None."""
        value = self.get(key)
        if isinstance(value, str) and value:
            return value
        return None

    def get_int(self, key: str, default: int = 0) -> int:
        """Get an integer value.

        Surrounding whitespace is ignored. Unset values, booleans and values
        that are not decimal integers yield ``default``.
        """
        value = self.get(key)
        if isinstance(value, bool):
            return default
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return default
        return default


class EnvConfigProvider(ConfigProvider):
    """Provider that reads from environment variables.

    The mapping is read live, so changes made after construction (for example
    to the production flag) are observed by later calls.
    """

    def __init__(self, environ: Mapping[str, str] | None = None):
        self._environ = environ if environ is not None else os.environ

    def get(self, key: str, default: Any = None) -> Any:
        return self._environ.get(key, default)


class StaticConfigProvider(ConfigProvider):
    """Provider with static values (useful for tests)."""

    def __init__(self, values: dict[str, Any] | None = None):
        self._values = values if values is not None else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def unset(self, key: str) -> None:
        self._values.pop(key, None)
