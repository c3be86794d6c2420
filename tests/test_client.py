# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Tests for the ErrorReporting facade."""

import asyncio
import threading

import httpx
import pytest

from cloud_error_reporting import ErrorReporting
from cloud_error_reporting.client import UNHANDLED_EXCEPTION_WARNING
from cloud_error_reporting.exceptions import ConfigurationValidationError, ReportingDisabledError
from cloud_error_reporting.middleware import ErrorReportingMiddleware
from cloud_error_reporting.retry_policy import DeliveryAttempt, DeliveryState, RetryConfig

OPTIONS = {"project_id": "test-project", "key": "api-key", "report_mode": "always"}


def _make_client(env, logger, transport, **options):
    return ErrorReporting(
        {**OPTIONS, **options},
        env=env,
        logger=logger,
        retry_config=RetryConfig(base_delay_ms=0),
        transport=transport,
    )


class TestConstruction:
    """Tests for ErrorReporting construction."""

    def test_invalid_options_raise(self, env, logger):
        """Test configuration errors propagate from the constructor."""
        with pytest.raises(ConfigurationValidationError):
            ErrorReporting({"key": 42}, env=env, logger=logger)

    def test_default_logger_from_options(self, env):
        """Test a logger is created from the log_level option."""
        errors = ErrorReporting({"report_mode": "never", "log_level": 4}, env=env)
        assert errors.logger.level == "DEBUG"

    def test_middleware_factory(self, env, logger, make_transport):
        """Test middleware() wraps an ASGI app."""
        errors = _make_client(env, logger, make_transport([httpx.Response(200, json={})]))

        async def app(scope, receive, send):
            pass

        middleware = errors.middleware(app)
        assert isinstance(middleware, ErrorReportingMiddleware)
        assert middleware.reporter is errors


class TestAsyncReporting:
    """Tests for reporting from async code."""

    @pytest.mark.asyncio
    async def test_report_runs_as_task(self, env, logger, make_transport):
        """Test report() schedules delivery on the running loop."""
        transport = make_transport([httpx.Response(200, json={})])
        errors = _make_client(env, logger, transport)
        results = []

        em = errors.report(ValueError("boom"), callback=lambda e, r, b: results.append((e, r.status_code)))
        await errors.flush()

        assert em.message.endswith("ValueError: boom")
        assert transport.call_count == 1
        assert results == [(None, 200)]
        await errors.aclose()

    @pytest.mark.asyncio
    async def test_send_waits_for_delivery(self, env, logger, make_transport):
        """Test send() returns the finished DeliveryAttempt."""
        transport = make_transport([httpx.Response(429, json={}), httpx.Response(200, json={})])
        errors = _make_client(env, logger, transport)

        attempt = await errors.send(RuntimeError("late"), request={"method": "GET", "url": "/x"})

        assert isinstance(attempt, DeliveryAttempt)
        assert attempt.state is DeliveryState.SUCCESS
        assert attempt.attempts == 2
        body = transport.json_bodies()[0]
        assert body["context"]["httpRequest"]["method"] == "GET"
        assert body["serviceContext"] == {"service": "python"}

    @pytest.mark.asyncio
    async def test_event_builder(self, env, logger, make_transport):
        """Test event() messages carry the construction-site stack trace."""
        transport = make_transport([httpx.Response(200, json={})])
        errors = _make_client(env, logger, transport)

        em = errors.event().set_message("Cart total mismatch").set_user("alice")
        errors.report(em)
        await errors.flush()

        sent = transport.json_bodies()[0]
        assert sent["message"].startswith("Cart total mismatch\nTraceback (most recent call last):")
        assert "test_event_builder" in sent["message"]
        assert sent["context"]["user"] == "alice"
        assert not logger.has_log("without a construction site stack trace")

    @pytest.mark.asyncio
    async def test_gated_callback_is_synchronous(self, env, logger, make_transport):
        """Test a disabled client calls back before report() returns."""
        transport = make_transport([httpx.Response(200, json={})])
        errors = _make_client(env, logger, transport, report_mode="never")
        calls = []

        errors.report("ignored", callback=lambda e, r, b: calls.append((e, r)))

        assert len(calls) == 1
        assert isinstance(calls[0][0], ReportingDisabledError)
        assert calls[0][1] is None
        await errors.flush()
        assert transport.call_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_reports(self, env, logger, make_transport):
        """Test several submissions complete independently."""
        transport = make_transport([httpx.Response(200, json={})])
        errors = _make_client(env, logger, transport)

        for i in range(5):
            errors.report(f"error {i}")
        await errors.flush()

        assert transport.call_count == 5
        messages = sorted(body["message"].splitlines()[-1] for body in transport.json_bodies())
        assert messages == [f"error {i}" for i in range(5)]


class TestSyncReporting:
    """Tests for reporting from synchronous code."""

    def test_report_uses_background_loop(self, env, logger, make_transport):
        """Test report() from sync code delivers on a background thread."""
        transport = make_transport([httpx.Response(200, json={})])
        errors = _make_client(env, logger, transport)
        delivered = threading.Event()

        errors.report(KeyError("sku"), callback=lambda e, r, b: delivered.set())

        assert delivered.wait(timeout=5)
        errors.close(timeout=5)
        assert transport.call_count == 1

    def test_close_without_reports(self, env, logger, make_transport):
        """Test close() is safe when nothing was reported."""
        errors = _make_client(env, logger, make_transport([httpx.Response(200, json={})]))
        errors.close()


class TestUnhandledExceptions:
    """Tests for the event loop exception hook."""

    @pytest.mark.asyncio
    async def test_loop_exceptions_reported(self, env, logger, make_transport):
        """Test exceptions reaching the loop handler are logged, reported and chained."""
        loop = asyncio.get_running_loop()
        chained = []
        loop.set_exception_handler(lambda lp, context: chained.append(context))
        transport = make_transport([httpx.Response(200, json={})])

        try:
            errors = _make_client(env, logger, transport, report_unhandled_rejections=True)
            error = ValueError("lost in a task")
            loop.call_exception_handler({"message": "Task exception was never retrieved", "exception": error})
            await errors.flush()
        finally:
            loop.set_exception_handler(None)

        assert logger.has_log(UNHANDLED_EXCEPTION_WARNING.format(reason=error), "WARNING")
        assert transport.call_count == 1
        assert transport.json_bodies()[0]["message"].endswith("ValueError: lost in a task")
        assert len(chained) == 1

    @pytest.mark.asyncio
    async def test_not_installed_by_default(self, env, logger, make_transport):
        """Test the hook is only installed when requested."""
        loop = asyncio.get_running_loop()
        previous = loop.get_exception_handler()

        _make_client(env, logger, make_transport([httpx.Response(200, json={})]))

        assert loop.get_exception_handler() is previous

    def _raise_on_background_loop(self, errors, error):
        """Fire a failing callback on the background loop and wait until it was handled."""
        loop = errors._background_loop().loop

        def fail():
            raise error

        loop.call_soon_threadsafe(fail)
        asyncio.run_coroutine_threadsafe(asyncio.sleep(0), loop).result(timeout=5)

    def test_background_loop_exceptions_flushed_by_aclose(self, env, logger, make_transport):
        """Test reports made on the background loop are awaited by aclose() from another loop."""
        transport = make_transport([httpx.Response(200, json={})])
        errors = _make_client(env, logger, transport, report_unhandled_rejections=True)
        delivered = threading.Event()
        errors.report("first", callback=lambda e, r, b: delivered.set())
        assert delivered.wait(timeout=5)

        self._raise_on_background_loop(errors, ValueError("background failure"))
        asyncio.run(errors.aclose())

        assert transport.call_count == 2
        assert transport.json_bodies()[1]["message"].endswith("ValueError: background failure")

    def test_background_loop_exceptions_flushed_by_close(self, env, logger, make_transport):
        """Test close() waits for reports made by the background loop's exception handler."""
        transport = make_transport([httpx.Response(200, json={})])
        errors = _make_client(env, logger, transport, report_unhandled_rejections=True)
        delivered = threading.Event()
        errors.report("first", callback=lambda e, r, b: delivered.set())
        assert delivered.wait(timeout=5)

        self._raise_on_background_loop(errors, KeyError("sku"))
        errors.close(timeout=5)

        assert transport.call_count == 2
        assert logger.has_log(UNHANDLED_EXCEPTION_WARNING.format(reason=KeyError("sku")), "WARNING")
