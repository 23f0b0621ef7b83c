# SPDX-License-Identifier: MIT
"""Check / lock / fetch / merge / persist state machine for one resource."""

import time
from collections.abc import Callable

from ..cache import FreshnessPolicy, SeriesCache, UpdateLock
from ..candles import build_candles, fill_gaps
from ..config import AppConfig, get_config_manager
from ..constants import MS_PER_DAY, RAW_RESOLUTION
from ..enums import FetchMode, ResourceKind, SyncState, UpdateStatus
from ..exceptions import MarketSyncError, NotFoundError, ValidationError
from ..logging_config import get_detail_logger, get_status_logger
from ..merger import filter_window, merge_records, timestamp_bounds
from ..models import (
    ResourceKey,
    SeriesRequest,
    StoredSeries,
    SyncMetadata,
    SyncResult,
    SyncStats,
    TimeSeriesRecord,
)
from ..pagination import PaginatedFetcher


FetcherKey = tuple[str, ResourceKind]


class SyncOrchestrator:
    """Serves a resource from cache and refreshes it from upstream when stale.

    One run walks Idle -> Checking -> {Fresh | NeedsSync -> Locking ->
    {LockBusy -> ServeStale | LockAcquired -> Fetching -> Merging ->
    Persisting -> Done}}, ending in Failed when the upstream cannot be
    reached and nothing is cached. Every transition is written to the detail
    log with the resource key.

    At most one run per resource key fetches at a time; runs that lose the
    lock race serve the current cache annotated `updating` instead of
    waiting.
    """

    def __init__(
        self,
        series_cache: SeriesCache,
        update_lock: UpdateLock,
        fetchers: dict[FetcherKey, PaginatedFetcher],
        config: AppConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.series_cache = series_cache
        self.update_lock = update_lock
        self.fetchers = fetchers
        self.config = config or get_config_manager().load_config()
        self.clock = clock
        self.detail_logger = get_detail_logger()
        self.status_logger = get_status_logger()

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _transition(self, key: ResourceKey, state: SyncState) -> SyncState:
        self.detail_logger.debug(f"[{key}] -> {state.value}")
        return state

    def _fetcher_for(self, key: ResourceKey) -> PaginatedFetcher:
        try:
            return self.fetchers[(key.chain, key.kind)]
        except KeyError:
            raise ValidationError(
                f"Unsupported resource: {key.kind.value} on chain '{key.chain}'"
            ) from None

    def _window(self, request: SeriesRequest, now_ms: int) -> tuple[int | None, int | None]:
        if request.window_start is not None or request.window_end is not None:
            return request.window_start, request.window_end
        if request.window_days is not None:
            return now_ms - request.window_days * MS_PER_DAY, now_ms
        return None, None

    def _serve(
        self,
        stored: StoredSeries,
        window: tuple[int | None, int | None],
        cached: bool,
        update_status: UpdateStatus,
        stats: SyncStats | None = None,
        message: str | None = None,
    ) -> SyncResult:
        start_ms, end_ms = window
        return SyncResult(
            records=filter_window(stored.records, start_ms, end_ms),
            metadata=stored.metadata,
            cached=cached,
            update_status=update_status,
            stats=stats,
            message=message,
        )

    async def sync(self, request: SeriesRequest) -> SyncResult:
        """Serve the requested window, refreshing the stored series if needed.

        Args:
            request: Validated request; candle keys are served from the swap
                series of the same identifier

        Returns:
            SyncResult with the window slice, freshness and sync statistics

        Raises:
            NotFoundError: The upstream has no data and nothing is cached
            MarketSyncError: The upstream failed and nothing is cached
        """
        key = request.key
        if key.kind == ResourceKind.CANDLES:
            return await self.serve_candles(request)

        fetcher = self._fetcher_for(key)
        now_ms = self._now_ms()
        window = self._window(request, now_ms)
        policy = FreshnessPolicy.from_config(self.config.resource_policy(key.kind))

        self._transition(key, SyncState.IDLE)
        self._transition(key, SyncState.CHECKING)
        stored = self.series_cache.load(key)
        metadata = stored.metadata if stored else None

        if (
            stored is not None
            and metadata is not None
            and not request.force
            and policy.is_metadata_fresh(metadata, now_ms)
        ):
            self._transition(key, SyncState.FRESH)
            self.detail_logger.debug(
                f"[{key}] Cache hit: {len(stored.records)} records, "
                f"last update {metadata.last_update_at}"
            )
            return self._serve(stored, window, cached=True, update_status=UpdateStatus.FRESH)

        self._transition(key, SyncState.NEEDS_SYNC)
        self._transition(key, SyncState.LOCKING)
        owner = self.update_lock.acquire(key.lock_key, self.config.cache.lock_ttl_seconds)

        if owner is None:
            if not request.force:
                self._transition(key, SyncState.LOCK_BUSY)
                self._transition(key, SyncState.SERVE_STALE)
                if stored is None:
                    raise NotFoundError(
                        f"No data available yet for {key}; an update is in progress"
                    )
                self.status_logger.info(f"[{key}] Update in progress, serving existing data")
                return self._serve(
                    stored,
                    window,
                    cached=True,
                    update_status=UpdateStatus.UPDATING,
                    message="Data update in progress, returning existing data",
                )
            # The other holder keeps its lock; this forced run does not own it
            self.status_logger.warning(
                f"[{key}] Forced refresh while another update holds the lock"
            )
        else:
            self._transition(key, SyncState.LOCK_ACQUIRED)

        return await self._refresh(key, fetcher, stored, window, owner, now_ms)

    async def _refresh(
        self,
        key: ResourceKey,
        fetcher: PaginatedFetcher,
        stored: StoredSeries | None,
        window: tuple[int | None, int | None],
        owner: str | None,
        now_ms: int,
    ) -> SyncResult:
        metadata = stored.metadata if stored else None

        if metadata is None:
            mode = FetchMode.FULL
            start_ms = now_ms - self.config.fetch.full_lookback_days * MS_PER_DAY
        else:
            mode = FetchMode.INCREMENTAL
            start_ms = metadata.last_record_timestamp + 1

        self._transition(key, SyncState.FETCHING)
        self.status_logger.info(f"[{key}] {mode.value.capitalize()} fetch {start_ms} -> {now_ms}")

        try:
            fetched = await fetcher.fetch(key.identifier, start_ms, now_ms)
        except Exception as e:
            self._transition(key, SyncState.FAILED)
            if not isinstance(e, MarketSyncError):
                self.detail_logger.exception(f"[{key}] Unexpected fetch failure")
            if isinstance(e, NotFoundError) and owner is not None:
                self.update_lock.release(key.lock_key, owner)
            if stored is None:
                self.status_logger.error(f"[{key}] Fetch failed with no cached data: {e}")
                raise
            self.status_logger.warning(f"[{key}] Fetch failed, serving cached data: {e}")
            return self._serve(
                stored,
                window,
                cached=True,
                update_status=UpdateStatus.UPDATING,
                message="Upstream unavailable, returning existing data",
            )

        if mode == FetchMode.FULL and not fetched:
            self._transition(key, SyncState.FAILED)
            if owner is not None:
                self.update_lock.release(key.lock_key, owner)
            raise NotFoundError(f"No history found for {key}")

        self._transition(key, SyncState.MERGING)
        existing = stored.records if stored else []
        merged = merge_records(existing, fetched)
        self.detail_logger.debug(
            f"[{key}] Merged {len(existing)} + {len(fetched)} = {len(merged)}"
        )

        self._transition(key, SyncState.PERSISTING)
        updated = StoredSeries(records=merged, metadata=self._build_metadata(key, merged, now_ms))
        policy = self.config.resource_policy(key.kind)
        self.series_cache.save(key, updated, policy.retention_ttl_seconds)
        if owner is not None and self.config.cache.clear_lock_on_success:
            self.update_lock.release(key.lock_key, owner)

        self._transition(key, SyncState.DONE)
        stats = SyncStats(
            total_stored=len(merged),
            new_fetched=len(fetched),
            existing=len(existing),
        )
        self.status_logger.info(
            f"[{key}] Stored {stats.total_stored} records ({stats.new_fetched} fetched)"
        )
        return self._serve(
            updated,
            window,
            cached=False,
            update_status=UpdateStatus.UPDATED,
            stats=stats,
        )

    def _build_metadata(
        self, key: ResourceKey, records: list[TimeSeriesRecord], now_ms: int
    ) -> SyncMetadata:
        first, last = timestamp_bounds(records) or (now_ms, now_ms)
        return SyncMetadata(
            resource_key=str(key),
            last_update_at=now_ms,
            last_record_timestamp=last,
            data_range_start=first,
            data_range_end=last,
            record_count=len(records),
        )

    async def serve_candles(
        self, request: SeriesRequest, synthetic_fill: bool | None = None
    ) -> SyncResult:
        """Candles for the window, aggregated from the synced swap series.

        Gap filling only runs when asked for, here or in `CandleConfig`.
        """
        key = request.key
        resolution = key.resolution if key.resolution != RAW_RESOLUTION else "1h"
        swaps_key = ResourceKey(
            chain=key.chain,
            kind=ResourceKind.SWAPS,
            identifier=key.identifier,
            resolution=RAW_RESOLUTION,
        )
        result = await self.sync(request.model_copy(update={"key": swaps_key}))

        candles = build_candles(result.records, resolution)
        if synthetic_fill is None:
            synthetic_fill = self.config.candles.synthetic_fill
        if synthetic_fill:
            candles = fill_gaps(candles, resolution)
        return result.model_copy(update={"records": candles})

    def clear(self, key: ResourceKey) -> bool:
        """Delete the stored series and any update lock for the key."""
        if key.kind == ResourceKind.CANDLES:
            key = key.model_copy(
                update={"kind": ResourceKind.SWAPS, "resolution": RAW_RESOLUTION}
            )
        deleted = self.series_cache.delete(key)
        self.update_lock.clear(key.lock_key)
        self.status_logger.info(f"[{key}] Cleared cached data (existed={deleted})")
        return deleted
