# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""ErrorReporting client facade.

Example:
    >>> errors = ErrorReporting({"project_id": "my-project", "key": "api-key"})
    >>> errors.report(ValueError("boom"))
    >>> await errors.aclose()
"""

import asyncio
import concurrent.futures
import threading
from collections.abc import Mapping
from typing import Any

import httpx

from . import manual
from .configuration import Configuration
from .error_message import ErrorMessage
from .logger import Logger
from .logger_factory import create_logger
from .middleware import ErrorReportingMiddleware
from .populate_error_message import build_stack_trace
from .providers import ConfigProvider, EnvConfigProvider
from .request_handler import Callback, RequestHandler, serialize_payload
from .retry_policy import DeliveryAttempt, RetryConfig

UNHANDLED_EXCEPTION_WARNING = (
    "Unhandled exception in event loop: {reason}. "
    "This exception has been reported to the error reporting console."
)


class _BackgroundLoop:
    """Event loop running in a daemon thread, for submissions made from sync code."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run, name="cloud-error-reporting", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def submit(self, coro: Any) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self, timeout: float | None = None) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout)
        if not self._thread.is_alive():
            self.loop.close()


class ErrorReporting:
    """Entry point for reporting errors to the Error Reporting API.

    Attributes:
        config: Resolved configuration
        logger: Library logger
        report: Fire-and-forget report function (see manual.handler_setup)
    """

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        env: ConfigProvider | None = None,
        logger: Logger | None = None,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            options: Configuration options
            env: Environment provider (defaults to os.environ)
            logger: Logger (defaults to create_logger(options))
            retry_config: Retry configuration for delivery
            transport: Optional httpx transport for delivery

        Raises:
            ConfigurationValidationError: If any option is invalid
        """
        self.env = env or EnvConfigProvider()
        self.logger = logger or create_logger(options, env=self.env)
        self.config = Configuration(options, self.logger, self.env)
        self._client = RequestHandler(self.config, self.logger, retry_config, transport)

        self._tasks: set[asyncio.Task] = set()
        self._futures: set[concurrent.futures.Future] = set()
        self._futures_lock = threading.Lock()
        self._background: _BackgroundLoop | None = None
        self._background_lock = threading.Lock()

        self.report = manual.handler_setup(self._dispatch, self.config, self.logger)

        if self.config.get_report_unhandled_rejections():
            try:
                self.install_exception_handler()
            except RuntimeError:
                # No running loop yet; the background loop gets it on first use
                pass

    @property
    def request_handler(self) -> RequestHandler:
        return self._client

    def event(self) -> ErrorMessage:
        """Create an ErrorMessage carrying the caller's stack trace.

        The stack trace is appended to the message when the event is reported.
        """
        service_context = self.config.get_service_context()
        em = ErrorMessage().set_service_context(service_context.service, service_context.version)
        em.auto_generated_stack_trace = build_stack_trace("")
        return em

    async def send(
        self,
        err: Any,
        request: Any = None,
        additional_message: str | None = None,
        callback: Callback | None = None,
    ) -> DeliveryAttempt:
        """Report a value and wait for delivery to finish."""
        em = manual.build_error_message(err, self.config, self.logger, request, additional_message)
        return await self._client.send_error(em, callback)

    def middleware(self, app: Any) -> ErrorReportingMiddleware:
        """Wrap an ASGI application with ErrorReportingMiddleware."""
        return ErrorReportingMiddleware(app, reporter=self)

    def install_exception_handler(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Report exceptions that reach the loop's exception handler.

        The previously installed handler (or the default one) is still called.

        Raises:
            RuntimeError: If no loop is given and none is running
        """
        loop = loop or asyncio.get_running_loop()
        previous = loop.get_exception_handler()

        def handle_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
            exception = context.get("exception")
            reason = exception if exception is not None else context.get("message", "")
            self.logger.warning(UNHANDLED_EXCEPTION_WARNING.format(reason=reason))
            self.report(reason)
            if previous is not None:
                previous(loop, context)
            else:
                loop.default_exception_handler(context)

        loop.set_exception_handler(handle_exception)

    def _background_loop(self) -> _BackgroundLoop:
        with self._background_lock:
            if self._background is None:
                self._background = _BackgroundLoop()
                if self.config.get_report_unhandled_rejections():
                    self.install_exception_handler(self._background.loop)
            return self._background

    def _track_future(self, future: concurrent.futures.Future) -> None:
        with self._futures_lock:
            self._futures.add(future)
        future.add_done_callback(self._forget_future)

    def _forget_future(self, future: concurrent.futures.Future) -> None:
        with self._futures_lock:
            self._futures.discard(future)

    def _pending_futures(self) -> list[concurrent.futures.Future]:
        with self._futures_lock:
            return list(self._futures)

    def _dispatch(self, em: ErrorMessage, callback: Callback | None) -> Any:
        attempt = DeliveryAttempt(payload=serialize_payload(em))
        if self._client.gate(attempt, callback):
            return attempt

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        background = self._background
        if loop is not None and (background is None or loop is not background.loop):
            task = loop.create_task(self._client.send_error(em, callback))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task

        # Work on the background loop is tracked as thread-safe futures
        future = self._background_loop().submit(self._client.send_error(em, callback))
        self._track_future(future)
        return future

    async def flush(self) -> None:
        """Wait for every submission started so far to finish."""
        loop = asyncio.get_running_loop()
        pending: list[Any] = [task for task in list(self._tasks) if task.get_loop() is loop]
        pending.extend(asyncio.wrap_future(f) for f in self._pending_futures())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        """Flush pending submissions and stop the background loop."""
        await self.flush()
        with self._background_lock:
            background, self._background = self._background, None
        if background is not None:
            await asyncio.to_thread(background.stop)

    def close(self, timeout: float | None = None) -> None:
        """Synchronous counterpart of aclose() for code without a running loop."""
        concurrent.futures.wait(self._pending_futures(), timeout=timeout)
        with self._background_lock:
            background, self._background = self._background, None
        if background is not None:
            background.stop(timeout)
