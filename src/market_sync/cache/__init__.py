# SPDX-License-Identifier: MIT
"""Cache module: the shared store, update locks and freshness policy.

- CacheStore: key/value entries with per-entry TTL
- UpdateLock: atomic set-if-absent lock with self-expiry
- SeriesCache: (de)serialization of stored series
- FreshnessPolicy: retention TTL vs. freshness window per resource kind
"""

from .freshness import FreshnessPolicy, is_fresh
from .series_cache import SeriesCache
from .store import CacheStore
from .update_lock import UpdateLock


# Global cache store instance with factory pattern
_cache_store_instance: CacheStore | None = None


def get_cache_store() -> CacheStore:
    """Get or create the global cache store instance.

    Returns:
        The global CacheStore instance
    """
    global _cache_store_instance
    if _cache_store_instance is None:
        _cache_store_instance = CacheStore()
    return _cache_store_instance


def reset_cache_store() -> None:
    """Reset the cache store instance (primarily for testing)."""
    global _cache_store_instance
    _cache_store_instance = None


__all__ = [
    "CacheStore",
    "FreshnessPolicy",
    "SeriesCache",
    "UpdateLock",
    "get_cache_store",
    "is_fresh",
    "reset_cache_store",
]
