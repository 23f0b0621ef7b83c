# SPDX-License-Identifier: MIT
"""Protocols for upstream collaborators of the sync engine."""

from typing import Any, Protocol, runtime_checkable

from ..models import TimeSeriesRecord


@runtime_checkable
class SeriesSource(Protocol):
    """A paged upstream time series.

    Implementations perform exactly one upstream request per `fetch_page`
    call and raise the exceptions of `market_sync.exceptions`; rate limiting
    and retries are applied by the caller.
    """

    @property
    def name(self) -> str:
        """Upstream name; selects the rate limiter used for this source."""
        ...

    async def prepare(self, identifier: str) -> None:
        """Resolve anything page requests need (e.g. a pool id) before paging."""
        ...

    async def fetch_page(
        self,
        identifier: str,
        start_ms: int,
        end_ms: int,
        first: int,
        skip: int,
    ) -> list[TimeSeriesRecord]:
        """Fetch up to `first` records in [start_ms, end_ms], skipping `skip`."""
        ...


class Scheduler(Protocol):
    """Anything that can run an upstream call under a rate limit."""

    async def schedule(self, task: Any, *args: Any, **kwargs: Any) -> Any: ...
