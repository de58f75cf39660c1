"""
Retry with exponential backoff for reasoning-provider calls.

Only transient failures are retried: rate limits, throttling, 5xx,
timeouts and network errors. Anything else propagates on the first
attempt. The sleep function is injectable so tests run instantly.
"""

import asyncio
import logging
import random
import socket
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from .errors import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_CODES = {
    "rate_limit_exceeded",
    "ThrottlingException",
    "ServiceUnavailableException",
    "ModelNotReadyException",
    "ETIMEDOUT",
    "ECONNRESET",
    "ECONNREFUSED",
    "ENOTFOUND",
}

_RETRYABLE_MESSAGE_FRAGMENTS = ("timeout", "timed out", "network", "quota", "rate limit")


@dataclass
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    # random extra delay in seconds, added before capping
    jitter: float = 1.0
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number attempt+1 (attempt is 0-based)."""
        delay = self.base_delay * (2 ** attempt) + random.random() * self.jitter
        return min(delay, self.max_delay)


def _is_retryable_status(status: int | None) -> bool:
    return status is not None and (status == 429 or 500 <= status < 600)


def is_retryable_error(exc: BaseException) -> bool:
    """Classify an exception as transient (retry) or permanent (propagate)."""
    if isinstance(exc, ProviderError):
        if exc.retryable is not None:
            return exc.retryable
        if _is_retryable_status(exc.status_code):
            return True
        if exc.code in _RETRYABLE_CODES:
            return True

    if isinstance(exc, httpx.HTTPStatusError):
        return _is_retryable_status(exc.response.status_code)
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError, socket.gaierror)):
        return True

    message = str(exc).lower()
    return any(fragment in message for fragment in _RETRYABLE_MESSAGE_FRAGMENTS)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    log: logging.Logger | None = None,
) -> T:
    """
    Await fn() up to policy.max_retries + 1 times.

    Raises the last error once retries are exhausted, or the first
    non-retryable error immediately.
    """
    policy = policy or RetryPolicy()
    log = log or logger

    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if attempt >= policy.max_retries or not is_retryable(exc):
                raise
            delay = policy.delay_for(attempt)
            log.warning(
                "Reasoning call failed (attempt %d/%d), retrying in %.1fs: %s",
                attempt + 1,
                policy.max_retries + 1,
                delay,
                exc,
            )
            await policy.sleep(delay)
            attempt += 1
