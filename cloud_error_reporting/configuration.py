# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Runtime configuration for the error reporting client.

A Configuration merges three sources, per field and independently:

1. Values supplied in the user options mapping (when correctly typed)
2. Values detected from the process environment / runtime platform
3. Hard-coded defaults

Options are validated once, at construction. An invalid option raises
ConfigurationValidationError and no partial configuration is exposed.
After construction the configuration is read-only apart from the
write-once project id cache.

Example:
    >>> config = Configuration({"report_mode": "always", "key": "api-key"})
    >>> config.is_reporting_enabled()
    True
    >>> config.get_service_context()
    ServiceContext(service='python', version=None)
"""

import threading
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import ConfigurationValidationError
from .logger import Logger
from .providers import ConfigProvider, EnvConfigProvider
from .silent_logger import SilentLogger

DEFAULT_SERVICE = "python"
PRODUCTION_FLAG_ENV_VAR = "ENVIRONMENT"
PROJECT_ID_ENV_VARS = ("GCLOUD_PROJECT", "GOOGLE_CLOUD_PROJECT")

DEPRECATED_TOGGLE_WARNING = (
    'The "ignore_environment_check" config option is deprecated. '
    'Use the "report_mode" config option instead.'
)
REPORT_MODE_OVERRIDE_WARNING = (
    'The "report_mode" and "ignore_environment_check" config options were both given. '
    'Using "report_mode" and ignoring "ignore_environment_check". '
    'To remove this warning, only set "report_mode".'
)
NOT_PRODUCTION_MESSAGE = (
    "The error reporting client is not configured to report errors: "
    'report_mode is "production" but the ' + PRODUCTION_FLAG_ENV_VAR + " environment "
    'variable is not set to "production". Set ' + PRODUCTION_FLAG_ENV_VAR + ' to "production" '
    'or set report_mode to "always" in the runtime configuration.'
)
NEVER_REPORT_MESSAGE = (
    "The error reporting client is not configured to report errors: "
    'report_mode is "never".'
)


class ReportMode(str, Enum):
    """Policy controlling whether error events are transmitted."""

    PRODUCTION = "production"
    ALWAYS = "always"
    NEVER = "never"


@dataclass(frozen=True)
class ServiceContext:
    """The (service, version) pair identifying the reporting application."""

    service: str = DEFAULT_SERVICE
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"service": self.service}
        if self.version is not None:
            data["version"] = self.version
        return data


@dataclass
class ValidationResult:
    """Outcome of validating a user options mapping.

    Attributes:
        values: Normalized values for every option that was supplied and valid
        errors: One ConfigurationValidationError per invalid option
    """

    values: dict[str, Any] = field(default_factory=dict)
    errors: list[ConfigurationValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _supplied(options: Mapping[str, Any], key: str) -> bool:
    return options.get(key) is not None


def _validate_string(options: Mapping[str, Any], key: str, result: ValidationResult) -> None:
    if not _supplied(options, key):
        return
    value = options[key]
    if isinstance(value, str):
        result.values[key] = value
    else:
        result.errors.append(ConfigurationValidationError(key, f"config.{key} must be a string"))


def _validate_bool(options: Mapping[str, Any], key: str, result: ValidationResult) -> None:
    if not _supplied(options, key):
        return
    value = options[key]
    if isinstance(value, bool):
        result.values[key] = value
    else:
        result.errors.append(ConfigurationValidationError(key, f"config.{key} must be a boolean"))


def _validate_credentials(options: Mapping[str, Any], result: ValidationResult) -> None:
    if not _supplied(options, "credentials"):
        return
    value = options["credentials"]
    if isinstance(value, Mapping):
        result.values["credentials"] = dict(value)
    else:
        result.errors.append(
            ConfigurationValidationError(
                "credentials", "config.credentials must be a valid credentials object"
            )
        )


def _validate_report_mode(options: Mapping[str, Any], result: ValidationResult) -> None:
    if not _supplied(options, "report_mode"):
        return
    value = options["report_mode"]
    if isinstance(value, str):
        try:
            result.values["report_mode"] = ReportMode(value.lower())
            return
        except ValueError:
            pass
    result.errors.append(
        ConfigurationValidationError(
            "report_mode",
            'config.report_mode must be a string that is one of "production", "always", or "never"',
        )
    )


def _validate_service_context(options: Mapping[str, Any], result: ValidationResult) -> None:
    context = options.get("service_context")
    if not isinstance(context, Mapping):
        # Anything other than a mapping is ignored
        return
    for key in ("service", "version"):
        if context.get(key) is None:
            continue
        if isinstance(context[key], str):
            result.values[f"service_context.{key}"] = context[key]
        else:
            result.errors.append(
                ConfigurationValidationError(
                    f"service_context.{key}", f"config.service_context.{key} must be a string"
                )
            )


def _normalize_project_id(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, int):
        return str(value)
    return None


def validate_options(options: Mapping[str, Any] | None) -> ValidationResult:
    """Validate a user options mapping once, collecting every error.

    Args:
        options: User-supplied options. Non-mapping values are treated as empty.

    Returns:
        ValidationResult with normalized values and any validation errors
    """
    result = ValidationResult()
    if not isinstance(options, Mapping):
        return result

    _validate_string(options, "key", result)
    _validate_string(options, "key_filename", result)
    _validate_string(options, "api_endpoint", result)
    _validate_credentials(options, result)
    _validate_bool(options, "report_unhandled_rejections", result)
    _validate_bool(options, "ignore_environment_check", result)
    _validate_report_mode(options, result)
    _validate_service_context(options, result)

    if _supplied(options, "project_id"):
        project_id = _normalize_project_id(options["project_id"])
        if project_id is not None:
            result.values["project_id"] = project_id
        else:
            result.values["invalid_project_id"] = options["project_id"]

    return result


def detect_service_context(env: ConfigProvider) -> ServiceContext:
    """Derive the service context from platform signals.

    Precedence: K_SERVICE/K_REVISION, then FUNCTION_NAME (service only),
    then GAE_SERVICE/GAE_VERSION, then GAE_MODULE_NAME/GAE_MODULE_VERSION,
    then the "python" placeholder with no version.
    """
    k_service = env.get_str("K_SERVICE")
    if k_service:
        return ServiceContext(service=k_service, version=env.get_str("K_REVISION"))

    function_name = env.get_str("FUNCTION_NAME")
    if function_name:
        return ServiceContext(service=function_name)

    gae_service = env.get_str("GAE_SERVICE")
    if gae_service:
        return ServiceContext(service=gae_service, version=env.get_str("GAE_VERSION"))

    gae_module = env.get_str("GAE_MODULE_NAME")
    if gae_module:
        return ServiceContext(service=gae_module, version=env.get_str("GAE_MODULE_VERSION"))

    return ServiceContext()


class Configuration:
    """Validated, read-only configuration snapshot for one client instance.

    Attributes:
        env: Environment provider consulted for platform signals
        report_mode: Resolved report mode
    """

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        logger: Logger | None = None,
        env: ConfigProvider | None = None,
    ):
        """Initialize configuration.

        Args:
            options: User options (project_id, key_filename, key, credentials,
                service_context, report_mode, ignore_environment_check,
                report_unhandled_rejections, api_endpoint). Unknown keys are ignored.
            logger: Logger for configuration warnings
            env: Environment provider (defaults to os.environ)

        Raises:
            ConfigurationValidationError: If any option has an invalid value
        """
        self._logger = logger or SilentLogger()
        self.env = env or EnvConfigProvider()
        self._given = dict(options) if isinstance(options, Mapping) else {}

        result = validate_options(self._given)
        if not result.is_valid:
            first = result.errors[0]
            first.errors = list(result.errors)
            raise first
        values = result.values

        self._key: str | None = values.get("key")
        self._key_filename: str | None = values.get("key_filename")
        self._credentials: dict[str, Any] | None = values.get("credentials")
        self._api_endpoint: str | None = values.get("api_endpoint")
        self._report_unhandled_rejections: bool = values.get("report_unhandled_rejections", False)
        self._given_project_id: str | None = values.get("project_id")
        if "invalid_project_id" in values:
            self._logger.warning(
                "Ignoring config.project_id; it must be a string or a number",
                project_id=repr(values["invalid_project_id"]),
            )

        self._service_context = self._resolve_service_context(values)
        self.report_mode = self._resolve_report_mode(values)

        self._project_id: str | None = None
        self._project_id_lock = threading.Lock()

        if not self.is_reporting_enabled():
            self._logger.warning(self.reporting_disabled_reason())

    def _resolve_service_context(self, values: dict[str, Any]) -> ServiceContext:
        detected = detect_service_context(self.env)
        return ServiceContext(
            service=values.get("service_context.service", detected.service),
            version=values.get("service_context.version", detected.version),
        )

    def _resolve_report_mode(self, values: dict[str, Any]) -> ReportMode:
        report_mode = values.get("report_mode")
        ignore_check = values.get("ignore_environment_check")

        if report_mode is not None:
            if ignore_check is not None:
                self._logger.warning(REPORT_MODE_OVERRIDE_WARNING)
            return report_mode

        if ignore_check is not None:
            self._logger.warning(DEPRECATED_TOGGLE_WARNING)
            return ReportMode.ALWAYS if ignore_check else ReportMode.PRODUCTION

        return ReportMode.PRODUCTION

    def is_reporting_enabled(self) -> bool:
        """Return whether submission is permitted right now.

        Production mode consults the production flag on every call, since
        the environment may change after construction.
        """
        if self.report_mode is ReportMode.ALWAYS:
            return True
        if self.report_mode is ReportMode.NEVER:
            return False
        return self.env.get(PRODUCTION_FLAG_ENV_VAR) == "production"

    def get_should_report_errors_to_api(self) -> bool:
        return self.is_reporting_enabled()

    def reporting_disabled_reason(self) -> str:
        """Human-readable explanation of why reporting is disabled."""
        if self.report_mode is ReportMode.NEVER:
            return NEVER_REPORT_MESSAGE
        return NOT_PRODUCTION_MESSAGE

    def _local_project_id(self) -> str | None:
        if self._given_project_id is not None:
            return self._given_project_id
        for env_var in PROJECT_ID_ENV_VARS:
            value = self.env.get_str(env_var)
            if value:
                return value
        return None

    def _cache_project_id(self, project_id: str | None) -> str | None:
        # Write-once: the first successful resolution wins
        with self._project_id_lock:
            if self._project_id is None and project_id:
                self._project_id = project_id
            return self._project_id

    def get_project_id(self) -> str | None:
        """Return the cached project id, resolving it locally on first use."""
        if self._project_id is not None:
            return self._project_id
        return self._cache_project_id(self._local_project_id())

    async def resolve_project_id(
        self, lookup: Callable[[], Awaitable[str | None]] | None = None
    ) -> str | None:
        """Resolve the project id, falling back to a remote metadata lookup.

        Args:
            lookup: Coroutine factory performing the remote lookup

        Returns:
            The cached project id, or None if it could not be resolved
        """
        project_id = self.get_project_id()
        if project_id is not None or lookup is None:
            return project_id

        remote = await lookup()
        if remote is not None:
            self._cache_project_id(str(remote))
        return self._project_id

    def get_key(self) -> str | None:
        return self._key

    def get_key_filename(self) -> str | None:
        return self._key_filename

    def get_credentials(self) -> dict[str, Any] | None:
        return self._credentials

    def get_api_endpoint(self) -> str | None:
        return self._api_endpoint

    def get_service_context(self) -> ServiceContext:
        return self._service_context

    def get_report_unhandled_rejections(self) -> bool:
        return self._report_unhandled_rejections
