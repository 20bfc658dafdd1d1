# tradesight/core/retry.py
"""
Bounded exponential-backoff retry for remote calls.

Only rate-limit / quota failures are retried; anything else is re-raised on
the spot so the retry budget is not spent on errors that will not resolve
themselves (bad request, auth failure).
"""
from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from tradesight.core.exceptions import (
    FatalProviderError,
    ProviderError,
    TransientProviderError,
)
from tradesight.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_RATE_LIMIT_MARKERS = ("429", "quota", "too many requests", "resource_exhausted", "rate limit")


def is_rate_limited(exc: BaseException) -> bool:
    """
    True when `exc` signals throttling rather than a permanent failure.

    Explicit status fields are checked first; matching on the message text
    is the last resort for providers that expose nothing else.
    """
    if isinstance(exc, TransientProviderError):
        return True
    if isinstance(exc, FatalProviderError):
        return False

    # google.genai.errors.APIError carries the HTTP code and the RPC status
    code = getattr(exc, "code", None)
    if code == 429:
        return True
    status = getattr(exc, "status", None)
    if isinstance(status, str) and status.upper() == "RESOURCE_EXHAUSTED":
        return True

    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 429

    if isinstance(code, int) or isinstance(status, int):
        # The provider told us what it was, and it was not 429
        return False

    message = str(exc).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


def as_provider_error(exc: BaseException) -> ProviderError:
    """Classify a final failure for the caller: transient vs fatal."""
    if isinstance(exc, ProviderError):
        return exc
    if is_rate_limited(exc):
        return TransientProviderError()
    return FatalProviderError(f"Provider call failed: {exc}")


class RetryScheduler:
    """
    Run a coroutine factory with up to `max_attempts` attempts.

    Backoff before attempt n+1 is base_delay_ms * 2**(n-1) plus a uniform
    jitter in [0, jitter_ms]. Sleeping uses `asyncio.sleep`, so it only
    suspends the calling task.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_ms: float = 1000.0,
        jitter_ms: float = 1000.0,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.jitter_ms = jitter_ms
        self._sleep = sleep
        self._jitter = jitter

    def backoff_seconds(self, attempt: int, base_delay_ms: Optional[float] = None) -> float:
        base = self.base_delay_ms if base_delay_ms is None else base_delay_ms
        delay_ms = base * (2 ** (attempt - 1)) + self._jitter(0.0, self.jitter_ms)
        return delay_ms / 1000.0

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[float] = None,
        name: str = "operation",
    ) -> T:
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        for attempt in range(1, attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if attempt == attempts:
                    logger.error(f"[Retry] {name} failed after {attempt} attempt(s): {e}")
                    raise
                if not is_rate_limited(e):
                    logger.error(f"[Retry] {name} non-retryable error: {e}")
                    raise

                delay = self.backoff_seconds(attempt, base_delay_ms)
                logger.warning(
                    f"[Retry] {name} rate limited (attempt {attempt}/{attempts}), "
                    f"retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

        # Unreachable: the loop either returns or raises
        raise RuntimeError("Max retries exceeded")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_ms: float = 1000.0,
) -> T:
    """Shorthand for a one-off RetryScheduler run with default jitter."""
    return await RetryScheduler(max_attempts=max_attempts, base_delay_ms=base_delay_ms).run(operation)
