# SPDX-License-Identifier: MIT
"""Freshness arithmetic, independent of storage retention."""

from dataclasses import dataclass

from ..config import ResourcePolicyConfig
from ..models import CacheEntry, SyncMetadata


def is_fresh(entry: CacheEntry, max_age_ms: int, now_ms: int) -> bool:
    """Return True if the entry is younger than max_age_ms."""
    return now_ms - int(entry.stored_at * 1000) < max_age_ms


@dataclass(frozen=True)
class FreshnessPolicy:
    """Retention TTL (how long data is kept) and freshness window (how long it
    is served without attempting a refresh) for one resource kind."""

    retention_ttl_seconds: int
    freshness_window_ms: int

    @classmethod
    def from_config(cls, policy: ResourcePolicyConfig) -> "FreshnessPolicy":
        return cls(
            retention_ttl_seconds=policy.retention_ttl_seconds,
            freshness_window_ms=policy.freshness_window_seconds * 1000,
        )

    def is_entry_fresh(self, entry: CacheEntry, now_ms: int) -> bool:
        return is_fresh(entry, self.freshness_window_ms, now_ms)

    def is_metadata_fresh(self, metadata: SyncMetadata, now_ms: int) -> bool:
        """True while the last successful sync is inside the freshness window."""
        return now_ms - metadata.last_update_at < self.freshness_window_ms
