# SPDX-License-Identifier: MIT
"""Bounded pagination of upstream series under a rate limit.

The loop is a linear pipeline of small pure steps (size the next page,
accumulate, move the cursor, decide whether to continue) around one
rate-limited, retried page request, so each transition can be tested on its
own.

Upstreams cap the `skip` offset (subgraphs reject values above 5000). Once
the offset would pass `max_skip` the window start moves up to the newest
timestamp seen and the offset restarts at zero; records re-read at that
timestamp are dropped by id.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from .constants import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_RECORD_CAP,
    INTER_PAGE_DELAY,
    MAX_SKIP,
)
from .logging_config import get_detail_logger, get_status_logger
from .models import TimeSeriesRecord
from .retry_utils import RetryPolicy
from .upstream.protocols import Scheduler, SeriesSource


detail_logger = get_detail_logger()
status_logger = get_status_logger()


@dataclass
class PageState:
    """Accumulated state of one pagination run."""

    records: list[TimeSeriesRecord] = field(default_factory=list)
    seen_ids: set[str] = field(default_factory=set)
    cursor_ms: int = 0
    newest_ms: int | None = None
    skip: int = 0
    pages: int = 0
    exhausted: bool = False
    stalled: bool = False


def next_page_size(page_size: int, record_cap: int, fetched: int) -> int:
    """Size of the next request, never overshooting the record cap."""
    return max(0, min(page_size, record_cap - fetched))


def accumulate(
    state: PageState, page: list[TimeSeriesRecord], requested: int
) -> PageState:
    """Fold one page into the state and advance the offset.

    Records already seen in this run are skipped; exhaustion still looks at
    the raw page length.
    """
    for record in page:
        if record.id in state.seen_ids:
            continue
        state.seen_ids.add(record.id)
        state.records.append(record)
        if state.newest_ms is None or record.timestamp > state.newest_ms:
            state.newest_ms = record.timestamp
    state.pages += 1
    state.skip += len(page)
    state.exhausted = len(page) < requested
    return state


def advance_cursor(state: PageState, max_skip: int) -> PageState:
    """Restart the offset from the newest timestamp once it passes max_skip.

    A run whose newest timestamp does not move past the current cursor
    cannot make progress and is marked stalled.
    """
    if state.skip <= max_skip:
        return state
    if state.newest_ms is None or state.newest_ms <= state.cursor_ms:
        state.stalled = True
        return state
    state.cursor_ms = state.newest_ms
    state.skip = 0
    return state


def should_continue(state: PageState, record_cap: int) -> bool:
    """Continue until a short or empty page, a stall, or the record cap."""
    return (
        not state.exhausted
        and not state.stalled
        and len(state.records) < record_cap
    )


class PaginatedFetcher:
    """Drives repeated page requests until exhaustion or the record cap."""

    def __init__(
        self,
        source: SeriesSource,
        limiter: Scheduler,
        retry_policy: RetryPolicy[list[TimeSeriesRecord]],
        page_size: int = DEFAULT_PAGE_SIZE,
        record_cap: int = DEFAULT_RECORD_CAP,
        page_delay: float = INTER_PAGE_DELAY,
        max_skip: int = MAX_SKIP,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.source = source
        self.limiter = limiter
        self.retry_policy = retry_policy
        self.page_size = page_size
        self.record_cap = record_cap
        self.page_delay = page_delay
        self.max_skip = max_skip
        self._sleep = sleep

    async def _request_page(
        self, identifier: str, start_ms: int, end_ms: int, first: int, skip: int
    ) -> list[TimeSeriesRecord]:
        # Every attempt, retries included, passes through the limiter
        page = await self.retry_policy.call(
            self.limiter.schedule,
            self.source.fetch_page,
            identifier,
            start_ms,
            end_ms,
            first,
            skip,
        )
        return page or []

    async def fetch(
        self,
        identifier: str,
        start_ms: int,
        end_ms: int,
        page_size: int | None = None,
        record_cap: int | None = None,
    ) -> list[TimeSeriesRecord]:
        """Fetch all records in [start_ms, end_ms] in upstream order.

        Raises:
            MarketSyncError: Any page failure aborts the whole fetch
        """
        page_size = page_size or self.page_size
        record_cap = record_cap or self.record_cap
        state = PageState(cursor_ms=start_ms)
        await self.source.prepare(identifier)

        detail_logger.debug(
            f"[{self.source.name}] Fetch {identifier} {start_ms}->{end_ms} "
            f"(page_size={page_size}, cap={record_cap}, max_skip={self.max_skip})"
        )

        while True:
            requested = next_page_size(page_size, record_cap, len(state.records))
            page = await self._request_page(
                identifier, state.cursor_ms, end_ms, requested, state.skip
            )
            accumulate(state, page, requested)
            detail_logger.debug(
                f"[{self.source.name}] page={state.pages} skip={state.skip} "
                f"received={len(page)} total={len(state.records)}"
            )

            if not state.exhausted:
                cursor_before = state.cursor_ms
                advance_cursor(state, self.max_skip)
                if state.cursor_ms != cursor_before:
                    detail_logger.debug(
                        f"[{self.source.name}] Skip limit reached, cursor moved to "
                        f"{state.cursor_ms}"
                    )
            if state.stalled:
                status_logger.warning(
                    f"[{self.source.name}] More than {self.max_skip} records share "
                    f"timestamp {state.cursor_ms} for {identifier}; stopping at "
                    f"{len(state.records)} records"
                )

            if not should_continue(state, record_cap):
                break
            await self._sleep(self.page_delay)

        detail_logger.debug(
            f"[{self.source.name}] Total records={len(state.records)} "
            f"in {state.pages} pages"
        )
        return state.records
