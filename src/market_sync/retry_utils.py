# SPDX-License-Identifier: MIT
"""Retry utilities for upstream calls."""

import asyncio
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, Generic, TypeVar

from .config import RetryConfig
from .constants import MAX_RETRIES, RETRY_BASE_DELAY, TRANSIENT_STATUS_CODES
from .enums import ExhaustedOutcome
from .exceptions import is_transient
from .logging_config import get_detail_logger


detail_logger = get_detail_logger()

T = TypeVar("T")


class RetryPolicy(Generic[T]):
    """Bounded retry with linear backoff around a single upstream call.

    Transient failures (rate-limited, service-unavailable) are retried after
    `base_delay * (attempt + 1)` seconds, at most `max_retries` times. Any
    other failure propagates immediately. Once retries are exhausted the
    policy either re-raises (bulk fetches, where partial data is not
    acceptable) or returns `default` (point lookups, where availability wins).
    """

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY,
        transient_statuses: tuple[int, ...] = TRANSIENT_STATUS_CODES,
        on_exhausted: ExhaustedOutcome = ExhaustedOutcome.RAISE,
        default: T | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.transient_statuses = tuple(transient_statuses)
        self.on_exhausted = on_exhausted
        self.default = default
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: RetryConfig,
        on_exhausted: ExhaustedOutcome = ExhaustedOutcome.RAISE,
        default: T | None = None,
    ) -> "RetryPolicy[T]":
        return cls(
            max_retries=config.max_retries,
            base_delay=config.base_delay,
            transient_statuses=tuple(config.transient_statuses),
            on_exhausted=on_exhausted,
            default=default,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number attempt + 1."""
        return self.base_delay * (attempt + 1)

    async def call(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T | None:
        """Invoke func, retrying transient failures.

        Returns:
            func's result, or `default` when retries are exhausted and the
            policy's outcome is DEFAULT
        """
        attempt = 0
        while True:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if not is_transient(e, self.transient_statuses):
                    raise

                if attempt >= self.max_retries:
                    detail_logger.debug(
                        f"{_name(func)} failed after {self.max_retries} retries: {e}"
                    )
                    if self.on_exhausted == ExhaustedOutcome.DEFAULT:
                        return self.default
                    raise

                delay = self.delay_for(attempt)
                detail_logger.debug(
                    f"{_name(func)} failed (attempt {attempt + 1}/{self.max_retries}): "
                    f"{e}. Retrying in {delay:.1f}s..."
                )
                await self._sleep(delay)
                attempt += 1


def with_retry(
    policy: RetryPolicy[T],
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T | None]]]:
    """Decorator form of `RetryPolicy.call`.

    Example:
        >>> @with_retry(RetryPolicy(max_retries=3))
        ... async def fetch_page():
        ...     return await client.post_json(url, body)
    """

    def decorator(
        func: Callable[..., Awaitable[T]],
    ) -> Callable[..., Awaitable[T | None]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T | None:
            return await policy.call(func, *args, **kwargs)

        return wrapper

    return decorator


def _name(func: Callable[..., Any]) -> str:
    return getattr(func, "__name__", repr(func))
