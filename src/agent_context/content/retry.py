"""Bounded retry with linear backoff for backend calls.

The delay before attempt ``n + 1`` is ``n * base_delay`` seconds. Only
:class:`~agent_context.content.backend.BackendError` failures with the
``TRANSIENT`` code are retried; any other code is re-raised on the spot with
``attempts`` set, and the caller decides what it means.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from agent_context.content.backend import BackendError
from agent_context.errors import NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for one backend operation.

    Parameters
    ----------
    max_attempts:
        Total number of attempts, including the first. Must be >= 1.
    base_delay:
        Seconds multiplied by the attempt number to get the next delay.
    """

    max_attempts: int = 3
    base_delay: float = 0.5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number *attempt* (1-based)."""
        return attempt * self.base_delay


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run *operation* until it succeeds or the retry budget is spent.

    Parameters
    ----------
    operation:
        Zero-argument coroutine factory; called once per attempt.
    policy:
        Attempt limit and backoff.
    description:
        Short label used in log lines and in the resulting error.
    sleep:
        Awaitable sleep, injectable for tests.

    Raises
    ------
    BackendError
        Re-raised immediately for non-transient failures, with ``attempts``
        set to the attempt on which it occurred.
    NetworkError
        When every attempt failed with a transient error.
    """
    last_error = ""
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except BackendError as exc:
            exc.attempts = attempt
            if not exc.retryable:
                raise
            last_error = exc.message
            if attempt == policy.max_attempts:
                break
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                description,
                attempt,
                policy.max_attempts,
                exc.message,
                delay,
            )
            await sleep(delay)
    raise NetworkError(description, policy.max_attempts, last_error)


__all__ = ["RetryPolicy", "call_with_retry"]
