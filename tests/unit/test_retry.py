"""Unit tests for the transient and rate-limit retry policies."""

import pytest

from lax_scraper.errors import HttpError, NetworkError, ParseError, RateLimitError, RequestTimeoutError
from lax_scraper.retry import (
    RetryPolicy,
    fetch_with_retries,
    with_rate_limit_retry,
    with_transient_retry,
)

URL = "https://api.example.test/standings"


class FlakyCall:
    """Raises the queued errors in order, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class AlwaysFails:
    def __init__(self, make_error):
        self.make_error = make_error
        self.calls = 0
        self.raised = []

    async def __call__(self):
        self.calls += 1
        error = self.make_error()
        self.raised.append(error)
        raise error


class TestRateLimitRetry:
    """Server-signalled rate limiting honours Retry-After within bounds."""

    async def test_succeeds_after_two_rate_limits(self, sleep):
        call = FlakyCall([
            RateLimitError("429", URL, retry_after_ms=500),
            RateLimitError("429", URL, retry_after_ms=500),
        ])

        result = await with_rate_limit_retry(call, max_retries=2, sleep=sleep)

        assert result == "ok"
        assert call.calls == 3
        assert sleep.calls == [0.5, 0.5]

    async def test_always_rate_limited_raises_last_error(self, sleep):
        call = AlwaysFails(lambda: RateLimitError("429", URL, retry_after_ms=500))

        with pytest.raises(RateLimitError) as exc_info:
            await with_rate_limit_retry(call, max_retries=2, sleep=sleep)

        assert call.calls == 3
        assert exc_info.value is call.raised[-1]

    async def test_wait_capped_at_max(self, sleep):
        call = FlakyCall([RateLimitError("429", URL, retry_after_ms=120_000)])

        await with_rate_limit_retry(call, max_retries=1, max_wait_ms=60_000, sleep=sleep)

        assert sleep.calls == [60.0]

    async def test_default_wait_without_hint(self, sleep):
        call = FlakyCall([RateLimitError("429", URL)])

        await with_rate_limit_retry(call, max_retries=1, default_wait_ms=1000, sleep=sleep)

        assert sleep.calls == [1.0]

    async def test_each_wait_uses_latest_hint(self, sleep):
        call = FlakyCall([
            RateLimitError("429", URL, retry_after_ms=500),
            RateLimitError("429", URL, retry_after_ms=2000),
            RateLimitError("429", URL),
        ])

        result = await with_rate_limit_retry(call, max_retries=3, default_wait_ms=700, sleep=sleep)

        assert result == "ok"
        assert sleep.calls == [0.5, 2.0, 0.7]

    async def test_other_errors_pass_through(self, sleep):
        call = FlakyCall([HttpError("HTTP 404", URL, status_code=404)])

        with pytest.raises(HttpError):
            await with_rate_limit_retry(call, max_retries=3, sleep=sleep)

        assert call.calls == 1
        assert sleep.calls == []


class TestTransientRetry:
    """Only network failures and timeouts are retried with backoff."""

    async def test_retries_network_and_timeout(self, sleep):
        call = FlakyCall([
            NetworkError("reset", URL),
            RequestTimeoutError("timed out", URL, timeout_ms=30000),
        ])

        result = await with_transient_retry(call, max_retries=3, base_delay_ms=1000, sleep=sleep)

        assert result == "ok"
        assert call.calls == 3
        assert len(sleep.calls) == 2
        assert sleep.calls[1] >= sleep.calls[0]

    async def test_exhausted_retries_reraise(self, sleep):
        call = AlwaysFails(lambda: NetworkError("refused", URL))

        with pytest.raises(NetworkError):
            await with_transient_retry(call, max_retries=2, sleep=sleep)

        assert call.calls == 3

    @pytest.mark.parametrize("error", [
        HttpError("HTTP 503", URL, status_code=503),
        ParseError("bad shape", URL),
        RateLimitError("429", URL),
    ])
    async def test_non_transient_not_retried(self, error, sleep):
        call = FlakyCall([error])

        with pytest.raises(type(error)):
            await with_transient_retry(call, max_retries=3, sleep=sleep)

        assert call.calls == 1


class TestFetchWithRetries:
    """Rate-limit loop wraps the transient loop."""

    async def test_mixed_failures_recover(self, sleep):
        call = FlakyCall([
            NetworkError("reset", URL),
            RateLimitError("429", URL, retry_after_ms=250),
            NetworkError("reset", URL),
        ], result=[1, 2, 3])
        policy = RetryPolicy(max_retries=2, rate_limit_max_retries=2)

        result = await fetch_with_retries(call, policy, sleep=sleep)

        assert result == [1, 2, 3]
        assert call.calls == 4
        assert 0.25 in sleep.calls
