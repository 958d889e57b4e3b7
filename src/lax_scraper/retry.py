"""Retry policies composed around single fetch calls.

Two independent loops:

* transient retry: exponential backoff on NetworkError/RequestTimeoutError only
* rate-limit retry: honours the server's Retry-After hint on RateLimitError,
  always capped by ``max_wait_ms``

Every other error kind passes straight through both loops.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from .config import AppSettings
from .errors import TRANSIENT_ERRORS, RateLimitError
from .lax_logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

DEFAULT_RATE_LIMIT_WAIT_MS = 1000
MAX_RATE_LIMIT_WAIT_MS = 60000


@dataclass(frozen=True)
class RetryPolicy:
    """Retry bounds for one source."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 60000
    rate_limit_max_retries: int = 3
    rate_limit_default_wait_ms: int = DEFAULT_RATE_LIMIT_WAIT_MS
    rate_limit_max_wait_ms: int = MAX_RATE_LIMIT_WAIT_MS

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "RetryPolicy":
        return cls(
            max_retries=settings.RETRY_MAX,
            base_delay_ms=settings.RETRY_BASE_DELAY_MS,
            rate_limit_max_retries=settings.RATE_LIMIT_MAX_RETRIES,
            rate_limit_default_wait_ms=settings.RATE_LIMIT_DEFAULT_WAIT_MS,
            rate_limit_max_wait_ms=settings.RATE_LIMIT_MAX_WAIT_MS,
        )


class wait_retry_after(wait_base):
    """Wait for the latest RateLimitError's Retry-After, bounded by ``max_ms``."""

    def __init__(self, default_ms: int, max_ms: int) -> None:
        self.default_ms = default_ms
        self.max_ms = max_ms

    def __call__(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        hint = getattr(error, "retry_after_ms", None)
        wait_ms = hint if hint is not None else self.default_ms
        return min(wait_ms, self.max_ms) / 1000


def _log_retry(kind: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Request failed, retrying",
            retry_kind=kind,
            attempt=retry_state.attempt_number,
            next_delay_s=retry_state.next_action.sleep if retry_state.next_action else None,
            error_type=type(error).__name__,
            error=str(error),
        )
    return before_sleep


async def with_transient_retry(
    call: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    base_delay_ms: int = 1000,
    max_delay_ms: int = 60000,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Retry ``call`` on transient transport failures with exponential backoff.

    Makes at most ``max_retries + 1`` attempts, then re-raises the last error.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=base_delay_ms / 1000, max=max_delay_ms / 1000),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=_log_retry("transient"),
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await call()
    raise AssertionError("unreachable")  # pragma: no cover


async def with_rate_limit_retry(
    call: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    default_wait_ms: int = DEFAULT_RATE_LIMIT_WAIT_MS,
    max_wait_ms: int = MAX_RATE_LIMIT_WAIT_MS,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Retry ``call`` after server-signalled rate limiting.

    Each wait is ``min(retry_after_ms or default_wait_ms, max_wait_ms)`` read
    from the most recent error. After ``max_retries`` retries the last
    RateLimitError propagates.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_retry_after(default_wait_ms, max_wait_ms),
        retry=retry_if_exception_type(RateLimitError),
        before_sleep=_log_retry("rate_limit"),
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await call()
    raise AssertionError("unreachable")  # pragma: no cover


async def fetch_with_retries(
    call: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``call`` under both policies: rate-limit loop outside, transient inside."""
    policy = policy or RetryPolicy()

    async def transient() -> T:
        return await with_transient_retry(
            call,
            max_retries=policy.max_retries,
            base_delay_ms=policy.base_delay_ms,
            max_delay_ms=policy.max_delay_ms,
            sleep=sleep,
        )

    return await with_rate_limit_retry(
        transient,
        max_retries=policy.rate_limit_max_retries,
        default_wait_ms=policy.rate_limit_default_wait_ms,
        max_wait_ms=policy.rate_limit_max_wait_ms,
        sleep=sleep,
    )
