# SPDX-License-Identifier: MIT
"""Shared key/value cache store with per-entry TTL."""

from ..constants import MAX_CACHE_KEY_LENGTH
from ..logging_config import get_detail_logger
from ..models import CacheEntry
from .base import CacheBase
from .connection_utils import get_configured_connection


detail_logger = get_detail_logger()


def _validate_key(key: str) -> None:
    if not key or not key.strip():
        raise ValueError("Cache key cannot be empty")
    if len(key) > MAX_CACHE_KEY_LENGTH:
        raise ValueError(
            f"Cache key exceeds maximum length ({MAX_CACHE_KEY_LENGTH} characters)"
        )


class CacheStore(CacheBase):
    """Key/value store backed by the shared SQLite database.

    The store is the only durable state of the engine. Entries are invisible
    once `expires_at` has passed and are physically removed by
    `cleanup_expired`.
    """

    def get(self, key: str) -> CacheEntry | None:
        """Get a live cache entry by key.

        Returns:
            The entry, or None if absent or expired

        Raises:
            ValueError: If key is empty or too long
        """
        _validate_key(key)

        with get_configured_connection(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT value, stored_at, ttl_seconds FROM cache_entries
                WHERE key = ? AND expires_at > ?
                """,
                (key, self.clock()),
            ).fetchone()

        if row is None:
            detail_logger.debug(f"Cache miss for key '{key}' (not found or expired)")
            return None

        detail_logger.debug(f"Cache hit for key '{key}'")
        return CacheEntry(key=key, payload=row[0], stored_at=row[1], ttl_seconds=row[2])

    def set(self, key: str, payload: str, ttl_seconds: int) -> None:
        """Store a payload under key with the given TTL.

        Raises:
            ValueError: If key is empty, too long, or TTL is not positive
        """
        _validate_key(key)
        if ttl_seconds <= 0:
            raise ValueError("TTL must be positive")

        now = self.clock()
        with get_configured_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO cache_entries
                    (key, value, stored_at, ttl_seconds, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (key, payload, now, ttl_seconds, now + ttl_seconds),
            )
            conn.commit()

        detail_logger.debug(
            f"Stored cache entry: key='{key}', ttl_seconds={ttl_seconds}, "
            f"bytes={len(payload)}"
        )

    def delete(self, key: str) -> bool:
        """Delete an entry; returns True if something was removed."""
        _validate_key(key)
        with get_configured_connection(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
            conn.commit()
            removed = cursor.rowcount > 0

        detail_logger.debug(f"Deleted cache entry '{key}': removed={removed}")
        return removed

    def cleanup_expired(self) -> int:
        """Remove expired cache entries and lock rows.

        Returns:
            Number of rows removed
        """
        now = self.clock()
        with get_configured_connection(self.db_path) as conn:
            entries = conn.execute(
                "DELETE FROM cache_entries WHERE expires_at <= ?", (now,)
            ).rowcount
            locks = conn.execute(
                "DELETE FROM update_locks WHERE expires_at <= ?", (now,)
            ).rowcount
            conn.commit()

        detail_logger.debug(
            f"Cleanup removed {entries} expired entries and {locks} expired locks"
        )
        return entries + locks
