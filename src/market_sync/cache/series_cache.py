# SPDX-License-Identifier: MIT
"""Serialization of stored series on top of the cache store."""

from pydantic import ValidationError as PydanticValidationError

from ..logging_config import get_detail_logger, get_status_logger
from ..models import ResourceKey, StoredSeries
from .store import CacheStore


detail_logger = get_detail_logger()
status_logger = get_status_logger()


class SeriesCache:
    """Loads and saves `StoredSeries` payloads keyed by resource."""

    def __init__(self, store: CacheStore):
        self.store = store

    def load(self, key: ResourceKey) -> StoredSeries | None:
        """Load the stored series, or None when absent, expired or unreadable.

        A payload that no longer parses is treated as a miss so the next sync
        rebuilds it with a full fetch.
        """
        entry = self.store.get(key.cache_key)
        if entry is None:
            return None

        try:
            return StoredSeries.model_validate_json(entry.payload)
        except PydanticValidationError as e:
            status_logger.warning(f"[{key}] Invalid cached data structure, ignoring")
            detail_logger.debug(f"[{key}] Cached payload failed validation: {e}")
            return None

    def save(self, key: ResourceKey, series: StoredSeries, ttl_seconds: int) -> None:
        self.store.set(key.cache_key, series.model_dump_json(), ttl_seconds)
        detail_logger.debug(
            f"[{key}] Saved {len(series.records)} records (ttl={ttl_seconds}s)"
        )

    def delete(self, key: ResourceKey) -> bool:
        return self.store.delete(key.cache_key)
