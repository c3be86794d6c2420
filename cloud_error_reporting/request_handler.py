# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Delivery of error events to the Error Reporting API.

Each submission runs to exactly one terminal state (gated, success,
permanent failure or exhausted retries) and invokes the callback once with
``(error, response, body)``. ``send_error`` never raises.
"""

import asyncio
import concurrent.futures
import threading
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from .classification import ResponseClass, build_delivery_error, classify_response
from .configuration import Configuration
from .credentials import CredentialResolver, build_report_url
from .exceptions import (
    AuthResolutionError,
    PermanentDeliveryError,
    ProjectIdUnavailableError,
    ReportingDisabledError,
    TransientDeliveryError,
)
from .logger import Logger
from .retry_policy import DeliveryAttempt, DeliveryState, RetryConfig, RetryPolicy

Callback = Callable[[Exception | None, httpx.Response | None, Any], None]

DEFAULT_TIMEOUT_SECONDS = 30.0
PROJECT_ID_UNAVAILABLE_MESSAGE = (
    "Unable to determine the project id. Set config.project_id or the "
    "GCLOUD_PROJECT environment variable."
)


def serialize_payload(error_message: Any) -> dict[str, Any]:
    """Convert an ErrorMessage (or a plain mapping) into the JSON body."""
    if hasattr(error_message, "to_dict"):
        return error_message.to_dict()
    if isinstance(error_message, Mapping):
        return dict(error_message)
    raise TypeError(f"Cannot serialize {type(error_message).__name__} as an error event")


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return response.text


class RequestHandler:
    """Authenticated, retrying client for the events:report method.

    Example:
        >>> handler = RequestHandler(config, logger)
        >>> attempt = await handler.send_error(error_message, callback)
        >>> attempt.state
        <DeliveryState.SUCCESS: 'success'>
    """

    def __init__(
        self,
        config: Configuration,
        logger: Logger,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initialize request handler.

        Args:
            config: Resolved configuration
            logger: Logger for delivery diagnostics
            retry_config: Retry configuration (uses defaults if None)
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
            timeout: Per-request timeout in seconds
        """
        self._config = config
        self._logger = logger
        self._policy = RetryPolicy(retry_config)
        self._transport = transport
        self._timeout = timeout
        self._credentials = CredentialResolver(config, logger)
        self._init_future: concurrent.futures.Future | None = None
        self._init_lock = threading.Lock()

    @property
    def credentials(self) -> CredentialResolver:
        return self._credentials

    async def _ensure_initialized(self) -> None:
        # Concurrent first submissions (possibly on different loops) share one initialization
        with self._init_lock:
            owner = self._init_future is None
            if self._init_future is None:
                self._init_future = concurrent.futures.Future()
            pending = self._init_future

        if not owner:
            await asyncio.wrap_future(pending)
            return

        try:
            await self._credentials.initialize()
        finally:
            pending.set_result(None)

    async def send_error(self, error_message: Any, callback: Callback | None = None) -> DeliveryAttempt:
        """Submit an error event.

        Args:
            error_message: ErrorMessage (or mapping in wire form) to submit
            callback: Invoked once with (error, response, body) on completion

        Returns:
            The finished DeliveryAttempt
        """
        try:
            attempt = DeliveryAttempt(payload=serialize_payload(error_message))
        except TypeError as e:
            attempt = DeliveryAttempt(payload={})
            self._finish(attempt, DeliveryState.PERMANENT_FAILURE, PermanentDeliveryError(str(e)), callback)
            return attempt

        if self.gate(attempt, callback):
            return attempt

        try:
            await self._deliver(attempt, callback)
        except Exception as e:
            self._logger.exception("Unexpected failure while sending error event", error=str(e))
            if not attempt.is_finished:
                failure = PermanentDeliveryError(f"Unexpected failure while sending error event: {e}")
                failure.__cause__ = e
                self._finish(attempt, DeliveryState.PERMANENT_FAILURE, failure, callback)
        return attempt

    def gate(self, attempt: DeliveryAttempt, callback: Callback | None = None) -> bool:
        """Finish ``attempt`` as GATED when reporting is disabled right now.

        Runs synchronously, so callers scheduling delivery in the background
        still see the callback before control returns to them.

        Returns:
            True if the submission was gated
        """
        if self._config.is_reporting_enabled():
            return False
        error = ReportingDisabledError(self._config.reporting_disabled_reason())
        self._finish(attempt, DeliveryState.GATED, error, callback)
        return True

    async def _deliver(self, attempt: DeliveryAttempt, callback: Callback | None) -> None:
        attempt.transition(DeliveryState.AUTHENTICATING)
        await self._ensure_initialized()

        project_id = await self._config.resolve_project_id(self._credentials.lookup_project_id)
        if project_id is None:
            error = ProjectIdUnavailableError(PROJECT_ID_UNAVAILABLE_MESSAGE)
            self._finish(attempt, DeliveryState.PERMANENT_FAILURE, error, callback)
            return

        params: dict[str, str] = {}
        headers: dict[str, str] = {}
        try:
            auth = await self._credentials.resolve_auth()
            auth.apply(params, headers)
        except AuthResolutionError as e:
            self._logger.error("Sending error event without credentials", error=str(e))

        url = build_report_url(self._config, project_id)

        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            while True:
                attempt.transition(DeliveryState.SENDING)
                attempt.attempts += 1
                retryable = await self._send_once(client, url, params, headers, attempt)

                if attempt.succeeded:
                    self._invoke_callback(callback, None, attempt.response, attempt.body)
                    return

                if not retryable:
                    self._finish(attempt, DeliveryState.PERMANENT_FAILURE, attempt.last_error, callback)
                    return

                if not self._policy.should_retry(attempt):
                    self._logger.warning(
                        f"Giving up on error event after {attempt.attempts} attempts "
                        f"({attempt.elapsed_seconds():.2f}s): {attempt.last_error}"
                    )
                    self._finish(attempt, DeliveryState.EXHAUSTED, attempt.last_error, callback)
                    return

                delay_ms = self._policy.calculate_delay_ms(attempt.attempts + 1)
                self._logger.warning(
                    f"Retryable error on attempt {attempt.attempts}, retrying in {delay_ms}ms: "
                    f"{attempt.last_error}"
                )
                attempt.transition(DeliveryState.RETRY_WAIT)
                await self._policy.sleep(delay_ms)

    async def _send_once(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict[str, str],
        headers: dict[str, str],
        attempt: DeliveryAttempt,
    ) -> bool:
        """Make one POST. Returns True when a failure is retryable."""
        try:
            response = await client.post(url, params=params, headers=headers, json=attempt.payload)
        except httpx.TransportError as e:
            error = build_transport_error(e)
            attempt.last_error = error
            attempt.response = None
            attempt.body = None
            return True

        body = _decode_body(response)
        attempt.response = response
        attempt.body = body

        response_class = classify_response(response.status_code, body)
        if response_class is ResponseClass.SUCCESS:
            attempt.last_error = None
            attempt.transition(DeliveryState.SUCCESS)
            return False

        attempt.last_error = build_delivery_error(response.status_code, body, response.reason_phrase)
        return response_class is ResponseClass.RETRYABLE

    def _finish(
        self,
        attempt: DeliveryAttempt,
        state: DeliveryState,
        error: Exception | None,
        callback: Callback | None,
    ) -> None:
        attempt.last_error = error
        attempt.transition(state)
        self._invoke_callback(callback, error, attempt.response, attempt.body)

    def _invoke_callback(
        self,
        callback: Callback | None,
        error: Exception | None,
        response: httpx.Response | None,
        body: Any,
    ) -> None:
        if callback is None:
            if error is not None:
                self._logger.debug("Error event not delivered", error=str(error))
            return
        try:
            callback(error, response, body)
        except Exception:
            self._logger.exception("Error reporting callback raised an exception")


def build_transport_error(error: httpx.TransportError) -> Exception:
    """Wrap a transport failure as a retryable delivery error."""
    wrapped = TransientDeliveryError(f"Transport error: {error}")
    wrapped.__cause__ = error
    return wrapped
