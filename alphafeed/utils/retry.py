"""Retry and backoff utilities for external API calls."""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

from tenacity import AsyncRetrying, RetryCallState, RetryError, before_sleep_log, stop_after_attempt

from alphafeed.clients.base import APIError

log = logging.getLogger("alphafeed.retry")

T = TypeVar("T")

DEFAULT_ATTEMPTS = 2
BACKOFF_BASE_SEC = 0.2
BACKOFF_JITTER_SEC = 0.3

_default_rng = random.Random()


class UniformSource(Protocol):
    def uniform(self, a: float, b: float) -> float: ...


class RetryExhaustedError(APIError):
    """Raised after the last attempt failed. Carries the last underlying error."""

    def __init__(self, last_error: BaseException, attempts: int):
        message = str(last_error) or type(last_error).__name__
        provider = getattr(last_error, "provider", "")
        status_code = getattr(last_error, "status_code", 0)
        super().__init__(message, status_code=status_code, provider=provider, retryable=False)
        self.last_error = last_error
        self.attempts = attempts


def jittered_wait(rng: UniformSource) -> Callable[[RetryCallState], float]:
    """200ms + uniform(0, 300ms) between attempts."""

    def _wait(retry_state: RetryCallState) -> float:
        return BACKOFF_BASE_SEC + rng.uniform(0, BACKOFF_JITTER_SEC)

    return _wait


async def retry_request(
    operation: Callable[[], Awaitable[T]],
    attempts: int = DEFAULT_ATTEMPTS,
    *,
    rng: Optional[UniformSource] = None,
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
) -> T:
    """Run an async operation with bounded retry and jittered backoff.

    Args:
        operation: Zero-argument coroutine function
        attempts: Total attempts including the first (values < 1 mean 1)
        rng: Anything with uniform(a, b); pass random.Random(seed) for
            deterministic timing
        sleep: Awaitable sleep, defaults to asyncio.sleep

    Raises:
        RetryExhaustedError: every attempt failed
    """
    attempts = max(1, attempts)
    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=jittered_wait(rng or _default_rng),
        sleep=sleep or asyncio.sleep,
        before_sleep=before_sleep_log(log, logging.DEBUG),
        reraise=False,
    )
    try:
        return await retrying(operation)
    except RetryError as e:
        last = e.last_attempt.exception()
        raise RetryExhaustedError(last, attempts) from last
