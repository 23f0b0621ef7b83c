# SPDX-License-Identifier: MIT
"""Tests for retry utilities."""

from unittest.mock import AsyncMock

import pytest

from market_sync.config import RetryConfig
from market_sync.enums import ExhaustedOutcome
from market_sync.exceptions import (
    NotFoundError,
    RateLimitedError,
    UpstreamStatusError,
    UpstreamUnavailableError,
)
from market_sync.retry_utils import RetryPolicy, with_retry


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep():
    return RecordingSleep()


class TestRetryPolicy:
    """Test cases for RetryPolicy.call."""

    @pytest.mark.asyncio
    async def test_successful_call_no_retry(self, sleep):
        """Successful calls are not retried."""
        func = AsyncMock(return_value="ok")
        policy = RetryPolicy(sleep=sleep)

        assert await policy.call(func, "a", b=1) == "ok"
        func.assert_awaited_once_with("a", b=1)
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self, sleep):
        """Transient failures are retried until the call succeeds."""
        func = AsyncMock(
            side_effect=[RateLimitedError(), UpstreamUnavailableError(status_code=503), "ok"]
        )
        policy = RetryPolicy(max_retries=5, base_delay=1.5, sleep=sleep)

        assert await policy.call(func) == "ok"
        assert func.await_count == 3
        assert sleep.delays == [1.5, 3.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_yield_default(self, sleep):
        """An always-transient upstream is retried exactly max_retries times."""
        func = AsyncMock(side_effect=RateLimitedError())
        policy = RetryPolicy(
            max_retries=5,
            on_exhausted=ExhaustedOutcome.DEFAULT,
            default=0.0,
            sleep=sleep,
        )

        result = await policy.call(func)

        assert result == 0.0
        assert func.await_count == 6  # initial call + 5 retries
        assert len(sleep.delays) == 5

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(self, sleep):
        """Bulk fetch policies re-raise once retries are exhausted."""
        func = AsyncMock(side_effect=UpstreamUnavailableError(status_code=503))
        policy = RetryPolicy(max_retries=2, sleep=sleep)

        with pytest.raises(UpstreamUnavailableError):
            await policy.call(func)
        assert func.await_count == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            NotFoundError("missing"),
            UpstreamStatusError("bad request", status_code=400),
            UpstreamUnavailableError("network down"),
            UpstreamUnavailableError("bad gateway", status_code=502),
            ValueError("parse failure"),
        ],
    )
    async def test_non_transient_fails_immediately(self, sleep, error):
        """Anything other than 429/503 is not retried."""
        func = AsyncMock(side_effect=error)
        policy = RetryPolicy(
            on_exhausted=ExhaustedOutcome.DEFAULT, default=None, sleep=sleep
        )

        with pytest.raises(type(error)):
            await policy.call(func)
        func.assert_awaited_once()
        assert sleep.delays == []

    def test_linear_backoff(self):
        """Delay before retry n+1 is base * (n + 1)."""
        policy = RetryPolicy(base_delay=2.0)
        assert [policy.delay_for(n) for n in range(3)] == [2.0, 4.0, 6.0]

    def test_negative_retries_rejected(self):
        """max_retries cannot be negative."""
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)

    def test_from_config(self):
        """Policy fields come from RetryConfig."""
        config = RetryConfig(max_retries=2, base_delay=0.5, transient_statuses=[503])
        policy = RetryPolicy.from_config(config)

        assert policy.max_retries == 2
        assert policy.base_delay == 0.5
        assert policy.transient_statuses == (503,)
        assert policy.on_exhausted == ExhaustedOutcome.RAISE

    @pytest.mark.asyncio
    async def test_custom_transient_statuses(self, sleep):
        """Only configured statuses are retried."""
        func = AsyncMock(side_effect=[RateLimitedError(), "ok"])
        policy = RetryPolicy(transient_statuses=(503,), sleep=sleep)

        with pytest.raises(RateLimitedError):
            await policy.call(func)
        func.assert_awaited_once()


class TestWithRetry:
    """Test cases for the with_retry decorator."""

    @pytest.mark.asyncio
    async def test_decorated_function_is_retried(self, sleep):
        """The decorator delegates to the policy."""
        call_count = 0

        @with_retry(RetryPolicy(max_retries=3, sleep=sleep))
        async def flaky():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise RateLimitedError()
            return "done"

        assert await flaky() == "done"
        assert call_count == 3
        assert flaky.__name__ == "flaky"
