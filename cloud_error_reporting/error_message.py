# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Wire-format error event builder.

ErrorMessage mirrors the ReportedErrorEvent resource accepted by the
events:report method. Setters are chainable and coerce values of the wrong
type to the field default, so a populated message is always serializable.
"""

from datetime import datetime, timezone
from typing import Any

from .configuration import DEFAULT_SERVICE
from .request_information import RequestInformationContainer


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _str_or_default(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _int_or_default(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


class ErrorMessage:
    """A single error event, ready to be serialized with ``to_dict()``.

    Attributes:
        event_time: RFC 3339 timestamp of the event
        service_context: {"service": ..., "version": ...}
        message: Error text, including a stack trace for grouping
        context: httpRequest, user and reportLocation details
    """

    def __init__(self) -> None:
        self.event_time = _utc_now()
        self.service_context: dict[str, Any] = {"service": DEFAULT_SERVICE, "version": None}
        self.message = ""
        self.context: dict[str, Any] = {
            "httpRequest": {
                "method": "",
                "url": "",
                "userAgent": "",
                "referrer": "",
                "responseStatusCode": 0,
                "remoteIp": "",
            },
            "user": "",
            "reportLocation": {
                "filePath": "",
                "lineNumber": 0,
                "functionName": "",
            },
        }
        # Set by ErrorReporting.event(); consumed once when the message is reported
        self.auto_generated_stack_trace: str | None = None

    def set_event_time_to_now(self) -> "ErrorMessage":
        self.event_time = _utc_now()
        return self

    def set_service_context(self, service: Any = None, version: Any = None) -> "ErrorMessage":
        self.service_context = {
            "service": service if isinstance(service, str) else DEFAULT_SERVICE,
            "version": version if isinstance(version, str) else None,
        }
        return self

    def set_message(self, message: Any = None) -> "ErrorMessage":
        self.message = _str_or_default(message)
        return self

    def set_http_method(self, method: Any = None) -> "ErrorMessage":
        self.context["httpRequest"]["method"] = _str_or_default(method)
        return self

    def set_url(self, url: Any = None) -> "ErrorMessage":
        self.context["httpRequest"]["url"] = _str_or_default(url)
        return self

    def set_user_agent(self, user_agent: Any = None) -> "ErrorMessage":
        self.context["httpRequest"]["userAgent"] = _str_or_default(user_agent)
        return self

    def set_referrer(self, referrer: Any = None) -> "ErrorMessage":
        self.context["httpRequest"]["referrer"] = _str_or_default(referrer)
        return self

    def set_response_status_code(self, status_code: Any = None) -> "ErrorMessage":
        self.context["httpRequest"]["responseStatusCode"] = _int_or_default(status_code)
        return self

    def set_remote_ip(self, remote_ip: Any = None) -> "ErrorMessage":
        self.context["httpRequest"]["remoteIp"] = _str_or_default(remote_ip)
        return self

    def set_user(self, user: Any = None) -> "ErrorMessage":
        self.context["user"] = _str_or_default(user)
        return self

    def set_file_path(self, file_path: Any = None) -> "ErrorMessage":
        self.context["reportLocation"]["filePath"] = _str_or_default(file_path)
        return self

    def set_line_number(self, line_number: Any = None) -> "ErrorMessage":
        self.context["reportLocation"]["lineNumber"] = _int_or_default(line_number)
        return self

    def set_function_name(self, function_name: Any = None) -> "ErrorMessage":
        self.context["reportLocation"]["functionName"] = _str_or_default(function_name)
        return self

    def consume_request_information(self, request_information: Any) -> "ErrorMessage":
        """Copy normalized request details into the httpRequest context.

        Anything other than a RequestInformationContainer is ignored.
        """
        if not isinstance(request_information, RequestInformationContainer):
            return self

        self.set_http_method(request_information.method)
        self.set_url(request_information.url)
        self.set_user_agent(request_information.user_agent)
        self.set_referrer(request_information.referrer)
        self.set_response_status_code(request_information.status_code)
        self.set_remote_ip(request_information.remote_address)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the events:report JSON body."""
        service_context = {"service": self.service_context["service"]}
        if self.service_context.get("version") is not None:
            service_context["version"] = self.service_context["version"]

        return {
            "eventTime": self.event_time,
            "serviceContext": service_context,
            "message": self.message,
            "context": {
                "httpRequest": dict(self.context["httpRequest"]),
                "user": self.context["user"],
                "reportLocation": dict(self.context["reportLocation"]),
            },
        }
