# SPDX-License-Identifier: MIT
"""Per-upstream token-bucket scheduler.

One `RateLimiter` is built per upstream service at process start and passed
explicitly to whatever talks to that upstream. Permit accounting is
per-process; under horizontal scaling this loosens upstream politeness but
never affects the one-sync-per-resource guarantee, which lives in the shared
cache database.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .config import AppConfig, RateLimitConfig
from .logging_config import get_detail_logger


detail_logger = get_detail_logger()

T = TypeVar("T")


class RateLimiter:
    """Token-bucket limiter bounding call rate, concurrency and spacing.

    A dispatch needs three things at once: a reservoir permit, a free
    concurrency slot and `min_time` elapsed since the previous dispatch.
    Callers queue on an `asyncio.Lock`, whose waiters are woken in FIFO order,
    so tasks are dispatched in the order they were scheduled.

    Every `refresh_interval` seconds the reservoir is reset to
    `refresh_amount` (not incremented), matching a fixed per-window quota.
    """

    def __init__(
        self,
        name: str,
        reservoir: int,
        refresh_amount: int,
        refresh_interval: float,
        max_concurrent: int,
        min_time: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if reservoir < 1 or refresh_amount < 1:
            raise ValueError("Reservoir and refresh amount must be positive")
        if refresh_interval <= 0:
            raise ValueError("Refresh interval must be positive")
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        self.name = name
        self.refresh_amount = refresh_amount
        self.refresh_interval = refresh_interval
        self.max_concurrent = max_concurrent
        self.min_time = min_time
        self._clock = clock

        self._reservoir = reservoir
        self._window_started = clock()
        self._last_dispatch: float | None = None
        self._dispatch_lock = asyncio.Lock()
        self._slots = asyncio.Semaphore(max_concurrent)

        # Statistics
        self.total_dispatched = 0
        self.total_waits = 0

    @classmethod
    def from_config(cls, name: str, config: RateLimitConfig) -> "RateLimiter":
        return cls(
            name=name,
            reservoir=config.reservoir,
            refresh_amount=config.refresh_amount,
            refresh_interval=config.refresh_interval,
            max_concurrent=config.max_concurrent,
            min_time=config.min_time,
        )

    @property
    def reservoir(self) -> int:
        """Permits left in the current window."""
        self._refill()
        return self._reservoir

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._window_started
        if elapsed >= self.refresh_interval:
            windows = int(elapsed // self.refresh_interval)
            self._window_started += windows * self.refresh_interval
            self._reservoir = self.refresh_amount

    def _seconds_until_permit(self) -> float:
        self._refill()
        if self._reservoir > 0:
            return 0.0
        return self._window_started + self.refresh_interval - self._clock()

    def _seconds_until_spacing(self) -> float:
        if self._last_dispatch is None or self.min_time <= 0:
            return 0.0
        return self._last_dispatch + self.min_time - self._clock()

    async def _wait_for_dispatch(self) -> None:
        """Block until a permit and the minimum spacing are both available."""
        while True:
            wait = max(self._seconds_until_permit(), self._seconds_until_spacing())
            if wait <= 0:
                return
            self.total_waits += 1
            detail_logger.debug(f"[{self.name}] Rate limiter waiting {wait:.2f}s")
            await asyncio.sleep(wait)

    async def schedule(
        self, task: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Run task once a permit, a slot and the spacing allow it.

        Args:
            task: Coroutine function performing one upstream call
            *args: Positional arguments for task
            **kwargs: Keyword arguments for task

        Returns:
            Whatever task returns; its exceptions propagate unchanged
        """
        async with self._dispatch_lock:
            await self._slots.acquire()
            try:
                await self._wait_for_dispatch()
            except BaseException:
                self._slots.release()
                raise
            self._reservoir -= 1
            self._last_dispatch = self._clock()
            self.total_dispatched += 1

        try:
            return await task(*args, **kwargs)
        finally:
            self._slots.release()

    def get_stats(self) -> dict[str, Any]:
        """Get limiter statistics."""
        return {
            "upstream": self.name,
            "reservoir": self.reservoir,
            "max_concurrent": self.max_concurrent,
            "total_dispatched": self.total_dispatched,
            "total_waits": self.total_waits,
        }


class NoopRateLimiter:
    """Limiter that dispatches immediately; used by tests and offline tools."""

    def __init__(self, name: str = "noop"):
        self.name = name
        self.total_dispatched = 0

    async def schedule(
        self, task: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        self.total_dispatched += 1
        return await task(*args, **kwargs)


def build_rate_limiters(config: AppConfig) -> dict[str, RateLimiter]:
    """Construct one limiter per configured upstream."""
    limiters = {
        name: RateLimiter.from_config(name, limit_config)
        for name, limit_config in config.rate_limits.items()
    }
    detail_logger.debug(f"Built rate limiters for: {', '.join(limiters)}")
    return limiters
