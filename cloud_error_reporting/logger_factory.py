# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Factory functions for creating logger instances."""

from collections.abc import Mapping
from typing import Any

from .console_logger import LEVELS, ConsoleLogger
from .exceptions import ConfigurationValidationError
from .logger import Logger
from .providers import ConfigProvider, EnvConfigProvider
from .silent_logger import SilentLogger

LOG_LEVEL_ENV_VAR = "GCLOUD_ERRORS_LOGLEVEL"
LOG_TYPE_ENV_VAR = "LOG_TYPE"
DEFAULT_LOGGER_NAME = "cloud_error_reporting"

# Numeric levels 0..4 (5 is clamped to 4); 0 is treated as "unset"
_NUMERIC_LEVELS = ["ERROR", "ERROR", "WARNING", "INFO", "DEBUG"]
DEFAULT_NUMERIC_LEVEL = 2


def numeric_level_to_name(level: int) -> str:
    """Map a numeric verbosity (0-5) onto a logger level name."""
    if not level:
        level = DEFAULT_NUMERIC_LEVEL
    level = max(0, min(level, len(_NUMERIC_LEVELS) - 1))
    return _NUMERIC_LEVELS[level]


def _parse_numeric(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return 0


def resolve_log_level(options: Mapping[str, Any] | None = None, env: ConfigProvider | None = None) -> str:
    """Resolve the logger level name.

    Order of precedence:
    1) Environment variable GCLOUD_ERRORS_LOGLEVEL
    2) The ``log_level`` option
    3) WARNING

    Raises:
        ConfigurationValidationError: If ``log_level`` is neither a number nor a string
    """
    env = env or EnvConfigProvider()

    if env.get(LOG_LEVEL_ENV_VAR) is not None:
        return numeric_level_to_name(env.get_int(LOG_LEVEL_ENV_VAR))

    if not isinstance(options, Mapping) or options.get("log_level") is None:
        return numeric_level_to_name(DEFAULT_NUMERIC_LEVEL)

    value = options["log_level"]
    if isinstance(value, str):
        if value.upper() in LEVELS:
            return value.upper()
        return numeric_level_to_name(_parse_numeric(value))
    if isinstance(value, int) and not isinstance(value, bool):
        return numeric_level_to_name(value)

    raise ConfigurationValidationError(
        "log_level",
        "config.log_level must be a number or decimal representation of a number in string form",
    )


def create_logger(
    options: Mapping[str, Any] | None = None,
    logger_type: str | None = None,
    level: str | None = None,
    name: str | None = None,
    env: ConfigProvider | None = None,
) -> Logger:
    """Factory function to create a logger instance.

    Args:
        options: Configuration options; only ``log_level`` is consulted
        logger_type: "console" or "silent". Defaults to LOG_TYPE env or "console".
        level: Explicit level name; overrides environment and options
        name: Logger name. Defaults to "cloud_error_reporting".
        env: Environment provider (defaults to os.environ)

    Returns:
        Logger instance

    Raises:
        ValueError: If logger_type is not recognized
        ConfigurationValidationError: If the ``log_level`` option is invalid

    Example:
        >>> logger = create_logger({"log_level": 4})
        >>> logger.debug("Configuration resolved", service="checkout")
    """
    env = env or EnvConfigProvider()
    logger_type = (logger_type or env.get_str(LOG_TYPE_ENV_VAR) or "console").lower()
    level = (level or resolve_log_level(options, env)).upper()
    name = name or DEFAULT_LOGGER_NAME

    if logger_type == "console":
        return ConsoleLogger(level=level, name=name)
    elif logger_type == "silent":
        return SilentLogger(level=level, name=name)
    else:
        raise ValueError(
            f"Unknown logger_type: {logger_type}. "
            f"Must be one of: console, silent"
        )
