# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Normalized request information attached to error events."""

from collections.abc import Mapping
from typing import Any


class RequestInformationContainer:
    """Standardized request details consumed by ErrorMessage.

    Setters are chainable and fall back to empty values for wrong types.
    """

    def __init__(self) -> None:
        self.url = ""
        self.method = ""
        self.referrer = ""
        self.user_agent = ""
        self.remote_address = ""
        self.status_code = 0

    def set_url(self, url: Any) -> "RequestInformationContainer":
        self.url = url if isinstance(url, str) else ""
        return self

    def set_method(self, method: Any) -> "RequestInformationContainer":
        self.method = method if isinstance(method, str) else ""
        return self

    def set_referrer(self, referrer: Any = None) -> "RequestInformationContainer":
        self.referrer = referrer if isinstance(referrer, str) else ""
        return self

    def set_user_agent(self, user_agent: Any = None) -> "RequestInformationContainer":
        self.user_agent = user_agent if isinstance(user_agent, str) else ""
        return self

    def set_remote_address(self, remote_address: Any = None) -> "RequestInformationContainer":
        self.remote_address = remote_address if isinstance(remote_address, str) else ""
        return self

    def set_status_code(self, status_code: Any) -> "RequestInformationContainer":
        valid = isinstance(status_code, int) and not isinstance(status_code, bool)
        self.status_code = status_code if valid else 0
        return self


def manual_request_information_extractor(request: Any) -> RequestInformationContainer:
    """Normalize a plain mapping describing a request.

    Recognized keys: method, url, user_agent, referrer, status_code,
    remote_address. Non-mapping input yields an empty container.
    """
    container = RequestInformationContainer()
    if not isinstance(request, Mapping):
        return container

    if "method" in request:
        container.set_method(request["method"])
    if "url" in request:
        container.set_url(request["url"])
    if "user_agent" in request:
        container.set_user_agent(request["user_agent"])
    if "referrer" in request:
        container.set_referrer(request["referrer"])
    if "status_code" in request:
        container.set_status_code(request["status_code"])
    if "remote_address" in request:
        container.set_remote_address(request["remote_address"])

    return container


def starlette_request_information_extractor(request: Any, status_code: int = 500) -> RequestInformationContainer:
    """Normalize a Starlette/FastAPI request.

    Args:
        request: starlette.requests.Request
        status_code: Response status code to record
    """
    client = getattr(request, "client", None)
    return (
        RequestInformationContainer()
        .set_method(request.method)
        .set_url(str(request.url))
        .set_user_agent(request.headers.get("user-agent"))
        .set_referrer(request.headers.get("referer"))
        .set_remote_address(client.host if client else None)
        .set_status_code(status_code)
    )
