# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Classification of Error Reporting API responses."""

from enum import Enum
from typing import Any

from .exceptions import DeliveryError, PermanentDeliveryError, TransientDeliveryError

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


class ResponseClass(str, Enum):
    """Outcome class of a single HTTP attempt."""

    SUCCESS = "success"
    RETRYABLE = "retryable"
    PERMANENT = "permanent"


def _error_reasons(body: Any) -> set[str]:
    if not isinstance(body, dict):
        return set()
    error = body.get("error")
    if not isinstance(error, dict):
        return set()
    items = error.get("errors")
    if not isinstance(items, list):
        return set()
    reasons = set()
    for item in items:
        if isinstance(item, dict) and isinstance(item.get("reason"), str):
            reasons.add(item["reason"])
    return reasons


def classify_response(status_code: int, body: Any = None) -> ResponseClass:
    """Classify an HTTP status (and body) as success, retryable or permanent.

    Args:
        status_code: HTTP status code of the response
        body: Decoded response body

    Returns:
        ResponseClass for the attempt
    """
    if 200 <= status_code < 300:
        return ResponseClass.SUCCESS
    if status_code in RETRYABLE_STATUS_CODES:
        return ResponseClass.RETRYABLE
    if status_code == 403 and _error_reasons(body) & RATE_LIMIT_REASONS:
        return ResponseClass.RETRYABLE
    return ResponseClass.PERMANENT


def extract_error_message(status_code: int, body: Any, reason_phrase: str = "") -> str:
    """Extract the server-provided error text from a response body."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    if isinstance(body, str) and body.strip():
        return body.strip()
    return f"HTTP {status_code}: {reason_phrase}".rstrip(": ")


def build_delivery_error(status_code: int, body: Any, reason_phrase: str = "") -> DeliveryError:
    """Build the error passed to callers for a non-2xx response.

    Raises:
        ValueError: If the status code is a success code
    """
    response_class = classify_response(status_code, body)
    if response_class is ResponseClass.SUCCESS:
        raise ValueError(f"HTTP {status_code} is not an error response")

    message = extract_error_message(status_code, body, reason_phrase)
    if response_class is ResponseClass.RETRYABLE:
        return TransientDeliveryError(message, status_code=status_code, body=body)
    return PermanentDeliveryError(message, status_code=status_code, body=body)
