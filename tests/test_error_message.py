# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Tests for ErrorMessage and message population."""

import pytest

from cloud_error_reporting.error_message import ErrorMessage
from cloud_error_reporting.populate_error_message import build_stack_trace, populate_error_message
from cloud_error_reporting.request_information import RequestInformationContainer


class TestErrorMessage:
    """Tests for ErrorMessage setters and serialization."""

    def test_defaults(self):
        """Test a new message serializes with default values."""
        data = ErrorMessage().to_dict()
        assert data["serviceContext"] == {"service": "python"}
        assert data["message"] == ""
        assert data["context"]["httpRequest"] == {
            "method": "",
            "url": "",
            "userAgent": "",
            "referrer": "",
            "responseStatusCode": 0,
            "remoteIp": "",
        }
        assert data["context"]["user"] == ""
        assert data["context"]["reportLocation"] == {"filePath": "", "lineNumber": 0, "functionName": ""}
        assert data["eventTime"].endswith("Z")

    def test_setters_are_chainable(self):
        """Test setters return the message and populate wire keys."""
        data = (
            ErrorMessage()
            .set_message("boom")
            .set_service_context("checkout", "1.0")
            .set_http_method("POST")
            .set_url("/orders")
            .set_user_agent("curl/8.0")
            .set_referrer("https://example.com")
            .set_response_status_code(500)
            .set_remote_ip("10.0.0.1")
            .set_user("alice")
            .set_file_path("app/orders.py")
            .set_line_number(42)
            .set_function_name("create_order")
            .to_dict()
        )
        assert data["message"] == "boom"
        assert data["serviceContext"] == {"service": "checkout", "version": "1.0"}
        assert data["context"]["httpRequest"]["method"] == "POST"
        assert data["context"]["httpRequest"]["responseStatusCode"] == 500
        assert data["context"]["httpRequest"]["remoteIp"] == "10.0.0.1"
        assert data["context"]["user"] == "alice"
        assert data["context"]["reportLocation"] == {
            "filePath": "app/orders.py",
            "lineNumber": 42,
            "functionName": "create_order",
        }

    @pytest.mark.parametrize(
        "setter,key,bad,default",
        [
            ("set_http_method", "method", 1, ""),
            ("set_url", "url", None, ""),
            ("set_response_status_code", "responseStatusCode", "500", 0),
            ("set_response_status_code", "responseStatusCode", True, 0),
        ],
    )
    def test_wrong_types_fall_back(self, setter, key, bad, default):
        """Test values of the wrong type become the field default."""
        em = getattr(ErrorMessage(), setter)(bad)
        assert em.context["httpRequest"][key] == default

    def test_service_context_fallback(self):
        """Test a non-string service falls back to the placeholder."""
        em = ErrorMessage().set_service_context(None, 3)
        assert em.to_dict()["serviceContext"] == {"service": "python"}

    def test_set_event_time_to_now(self):
        """Test the event time can be refreshed."""
        em = ErrorMessage()
        em.event_time = "2020-01-01T00:00:00Z"
        em.set_event_time_to_now()
        assert em.event_time != "2020-01-01T00:00:00Z"

    def test_consume_request_information(self):
        """Test request details are copied from a container."""
        container = (
            RequestInformationContainer()
            .set_method("GET")
            .set_url("/health")
            .set_user_agent("curl/8.4.0")
            .set_referrer("")
            .set_status_code(503)
            .set_remote_address("127.0.0.1")
        )
        http_request = ErrorMessage().consume_request_information(container).to_dict()["context"]["httpRequest"]
        assert http_request == {
            "method": "GET",
            "url": "/health",
            "userAgent": "curl/8.4.0",
            "referrer": "",
            "responseStatusCode": 503,
            "remoteIp": "127.0.0.1",
        }

    def test_consume_ignores_other_types(self):
        """Test anything but a container is ignored."""
        em = ErrorMessage().consume_request_information({"method": "GET"})
        assert em.context["httpRequest"]["method"] == ""


class TestBuildStackTrace:
    """Tests for build_stack_trace."""

    def test_python_traceback_format(self):
        """Test the trace uses the Python traceback layout with the message last."""
        trace = build_stack_trace("Something broke")
        assert trace.startswith("Traceback (most recent call last):\n")
        assert trace.endswith("Something broke")

    def test_includes_caller_frame(self):
        """Test the calling test function appears in the trace."""
        trace = build_stack_trace("x")
        assert "test_includes_caller_frame" in trace

    def test_excludes_library_frames(self):
        """Test frames from the library itself are removed."""
        trace = build_stack_trace("x")
        assert "populate_error_message.py" not in trace

    def test_default_message(self):
        """Test an empty message still yields a final line."""
        assert build_stack_trace("").endswith("Error")


class TestPopulateErrorMessage:
    """Tests for populate_error_message."""

    def test_exception(self):
        """Test an exception contributes its formatted traceback."""
        try:
            raise ValueError("bad input")
        except ValueError as e:
            em = populate_error_message(e, ErrorMessage())

        assert em.message.startswith("Traceback (most recent call last):")
        assert em.message.endswith("ValueError: bad input")

    def test_exception_without_traceback(self):
        """Test an exception that was never raised still gets a message."""
        em = populate_error_message(RuntimeError("never raised"), ErrorMessage())
        assert em.message == "RuntimeError: never raised"

    def test_exception_attributes(self):
        """Test user and service_context attributes on exceptions are used."""
        error = KeyError("sku")
        error.user = "bob"
        error.service_context = {"service": "inventory", "version": "2"}

        em = populate_error_message(error, ErrorMessage())

        assert em.context["user"] == "bob"
        assert em.service_context == {"service": "inventory", "version": "2"}

    def test_mapping(self):
        """Test mapping keys populate the matching fields."""
        em = populate_error_message(
            {
                "message": "custom",
                "user": "carol",
                "file_path": "jobs/sync.py",
                "line_number": 7,
                "function_name": "run",
                "service_context": {"service": "sync"},
            },
            ErrorMessage(),
        )
        assert em.message == "custom"
        assert em.context["user"] == "carol"
        assert em.context["reportLocation"] == {"filePath": "jobs/sync.py", "lineNumber": 7, "functionName": "run"}
        assert em.service_context["service"] == "sync"

    def test_mapping_without_message(self):
        """Test a mapping without a message gets a stack trace of its contents."""
        em = populate_error_message({"user": "dave"}, ErrorMessage())
        assert em.message.endswith("{'user': 'dave'}")
        assert em.message.startswith("Traceback")

    @pytest.mark.parametrize("value,text", [("plain text", "plain text"), (42, "42"), (None, "None")])
    def test_other_values(self, value, text):
        """Test other values are converted with str() and given a stack trace."""
        em = populate_error_message(value, ErrorMessage())
        assert em.message.startswith("Traceback (most recent call last):")
        assert em.message.endswith(text)
