# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Bounded exponential backoff for error event delivery."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts including the first one (default: 4)
        base_delay_ms: Base delay in milliseconds (default: 250)
        backoff_factor: Exponential backoff multiplier (default: 2.0)
        max_delay_ms: Maximum delay cap in milliseconds (default: 32000)
    """
    max_attempts: int = 4
    base_delay_ms: int = 250
    backoff_factor: float = 2.0
    max_delay_ms: int = 32000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must not be negative")
        # Keeps delays non-decreasing between attempts
        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be at least 1.0")


class DeliveryState(str, Enum):
    """States of a single submission."""

    IDLE = "idle"
    GATED = "gated"
    AUTHENTICATING = "authenticating"
    SENDING = "sending"
    RETRY_WAIT = "retry_wait"
    SUCCESS = "success"
    PERMANENT_FAILURE = "permanent_failure"
    EXHAUSTED = "exhausted"


TERMINAL_STATES = frozenset({
    DeliveryState.GATED,
    DeliveryState.SUCCESS,
    DeliveryState.PERMANENT_FAILURE,
    DeliveryState.EXHAUSTED,
})


@dataclass
class DeliveryAttempt:
    """Per-submission delivery state threaded through the retry loop.

    Attributes:
        payload: Serialized error event
        attempts: Number of HTTP requests made so far
        state: Current state; one of TERMINAL_STATES once finished
        start_time: Timestamp when the submission started
        last_error: Last error encountered (None on success)
        response: Last HTTP response received, if any
        body: Decoded body of the last response, if any
    """
    payload: dict[str, Any]
    attempts: int = 0
    state: DeliveryState = DeliveryState.IDLE
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_error: Exception | None = None
    response: Any = None
    body: Any = None

    def elapsed_seconds(self) -> float:
        """Calculate elapsed time since the submission started."""
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    @property
    def is_finished(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def succeeded(self) -> bool:
        return self.state is DeliveryState.SUCCESS

    def transition(self, state: DeliveryState) -> None:
        """Move to a new state. Terminal states are final."""
        if self.is_finished:
            raise RuntimeError(f"Delivery already finished in state {self.state.value}")
        self.state = state


class RetryPolicy:
    """Retry policy with bounded, monotonically non-decreasing backoff."""

    def __init__(self, config: RetryConfig | None = None):
        """Initialize retry policy.

        Args:
            config: Retry configuration (uses defaults if None)
        """
        self.config = config or RetryConfig()

    def calculate_delay_ms(self, attempt_number: int) -> int:
        """Calculate the delay to wait before the given attempt.

        Args:
            attempt_number: Attempt about to be made (1-indexed)

        Returns:
            Delay in milliseconds
        """
        if attempt_number <= 1:
            return 0

        exponent = attempt_number - 1
        delay_ms = int(self.config.base_delay_ms * (self.config.backoff_factor ** exponent))
        return min(delay_ms, self.config.max_delay_ms)

    def should_retry(self, attempt: DeliveryAttempt) -> bool:
        """Determine if another attempt may be made after a retryable failure."""
        return attempt.attempts < self.config.max_attempts

    async def sleep(self, delay_ms: int) -> None:
        """Suspend for the specified delay without blocking the event loop.

        Args:
            delay_ms: Delay in milliseconds
        """
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000.0)
