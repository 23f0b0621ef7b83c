# SPDX-License-Identifier: MIT
"""TTL-based mutual exclusion built on the shared cache database."""

import uuid

from ..logging_config import get_detail_logger
from .base import CacheBase
from .connection_utils import get_configured_connection


detail_logger = get_detail_logger()


class UpdateLock(CacheBase):
    """Prevents duplicate concurrent syncs of the same resource.

    Acquisition is a single conditional upsert, so two processes racing for
    the same key cannot both succeed. A lock row whose `expires_at` has passed
    is treated as absent and can be taken over; no explicit release is
    required for recovery from a crashed holder.
    """

    def acquire(self, key: str, ttl_seconds: int) -> str | None:
        """Try to take the lock for key.

        Args:
            key: Lock key
            ttl_seconds: Seconds until the lock self-expires

        Returns:
            An owner token on success, None if a live lock exists
        """
        if ttl_seconds <= 0:
            raise ValueError("Lock TTL must be positive")

        owner = uuid.uuid4().hex
        now = self.clock()
        with get_configured_connection(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO update_locks (key, owner, acquired_at, expires_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    owner = excluded.owner,
                    acquired_at = excluded.acquired_at,
                    expires_at = excluded.expires_at
                WHERE update_locks.expires_at <= ?
                """,
                (key, owner, now, now + ttl_seconds, now),
            )
            conn.commit()
            acquired = cursor.rowcount == 1

        detail_logger.debug(f"Lock '{key}' acquire: acquired={acquired}")
        return owner if acquired else None

    def release(self, key: str, owner: str) -> bool:
        """Clear the lock early, only if owner still holds it."""
        with get_configured_connection(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM update_locks WHERE key = ? AND owner = ?", (key, owner)
            )
            conn.commit()
            released = cursor.rowcount == 1

        detail_logger.debug(f"Lock '{key}' release: released={released}")
        return released

    def clear(self, key: str) -> bool:
        """Remove any lock for key regardless of owner (administrative clear)."""
        with get_configured_connection(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM update_locks WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0

    def is_locked(self, key: str) -> bool:
        """Return True if a live lock exists for key."""
        with get_configured_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT 1 FROM update_locks WHERE key = ? AND expires_at > ?",
                (key, self.clock()),
            ).fetchone()
        return row is not None
