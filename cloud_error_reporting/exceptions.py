# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Exceptions for error reporting configuration and delivery."""

from typing import Any


class ErrorReportingError(Exception):
    """Base exception for error reporting errors."""
    pass


class ConfigurationValidationError(ErrorReportingError):
    """Raised when a configuration option has an invalid value.

    Attributes:
        field: Name of the offending option (e.g. "key", "service_context.version")
        errors: Every validation error collected for the same configuration
    """

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.errors: list["ConfigurationValidationError"] = [self]


class ReportingDisabledError(ErrorReportingError):
    """Returned to callbacks when the report mode gates a submission."""
    pass


class AuthResolutionError(ErrorReportingError):
    """Raised when neither an API key nor default credentials are available."""
    pass


class DeliveryError(ErrorReportingError):
    """Base class for failed submissions to the Error Reporting API.

    The string form is the server-provided message, verbatim.

    Attributes:
        status_code: HTTP status code, or None when no response was received
        body: Decoded response body, if any
    """

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransientDeliveryError(DeliveryError):
    """Delivery failure that is likely to succeed if retried (e.g. HTTP 429)."""
    pass


class PermanentDeliveryError(DeliveryError):
    """Delivery failure that will recur without a configuration or payload change."""
    pass


class ProjectIdUnavailableError(DeliveryError):
    """Raised when no project id could be resolved for a submission."""
    pass
