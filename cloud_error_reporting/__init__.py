# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Cloud Error Reporting client.

Reports application exceptions to the Error Reporting API with
environment-driven configuration, API key or OAuth2 authentication, and
bounded retries for transient failures.

Example:
    >>> from cloud_error_reporting import ErrorReporting
    >>>
    >>> errors = ErrorReporting({"project_id": "my-project", "report_mode": "always"})
    >>> try:
    ...     handle_request()
    ... except Exception as e:
    ...     errors.report(e)
"""

__version__ = "0.1.0"

from .classification import ResponseClass, build_delivery_error, classify_response
from .client import ErrorReporting
from .configuration import Configuration, ReportMode, ServiceContext, validate_options
from .credentials import ApiKeyAuth, BearerTokenAuth, CredentialResolver
from .error_message import ErrorMessage
from .exceptions import (
    AuthResolutionError,
    ConfigurationValidationError,
    DeliveryError,
    ErrorReportingError,
    PermanentDeliveryError,
    ProjectIdUnavailableError,
    ReportingDisabledError,
    TransientDeliveryError,
)
from .logger import Logger
from .logger_factory import create_logger
from .middleware import ErrorReportingMiddleware
from .populate_error_message import build_stack_trace, populate_error_message
from .providers import ConfigProvider, EnvConfigProvider, StaticConfigProvider
from .request_handler import RequestHandler
from .request_information import (
    RequestInformationContainer,
    manual_request_information_extractor,
    starlette_request_information_extractor,
)
from .retry_policy import DeliveryAttempt, DeliveryState, RetryConfig, RetryPolicy

__all__ = [
    "__version__",
    "ApiKeyAuth",
    "AuthResolutionError",
    "BearerTokenAuth",
    "ConfigProvider",
    "Configuration",
    "ConfigurationValidationError",
    "CredentialResolver",
    "DeliveryAttempt",
    "DeliveryError",
    "DeliveryState",
    "EnvConfigProvider",
    "ErrorMessage",
    "ErrorReporting",
    "ErrorReportingError",
    "ErrorReportingMiddleware",
    "Logger",
    "PermanentDeliveryError",
    "ProjectIdUnavailableError",
    "ReportMode",
    "ReportingDisabledError",
    "RequestHandler",
    "RequestInformationContainer",
    "ResponseClass",
    "RetryConfig",
    "RetryPolicy",
    "ServiceContext",
    "StaticConfigProvider",
    "TransientDeliveryError",
    "build_delivery_error",
    "build_stack_trace",
    "classify_response",
    "create_logger",
    "manual_request_information_extractor",
    "populate_error_message",
    "starlette_request_information_extractor",
    "validate_options",
]
