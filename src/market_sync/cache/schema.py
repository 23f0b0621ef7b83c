# SPDX-License-Identifier: MIT
"""Database schema initialization for the shared cache store."""

from pathlib import Path

from .connection_utils import get_configured_connection


def init_database(db_path: Path) -> None:
    """Initialize the cache schema.

    Times are stored as epoch seconds (REAL) so expiry comparisons use the same
    clock the application injects, independent of SQLite's CURRENT_TIMESTAMP.

    Args:
        db_path: Path to the SQLite database file
    """
    with get_configured_connection(db_path) as conn:
        conn.executescript(
            """
            -- Serialized series payloads with per-entry TTL
            CREATE TABLE IF NOT EXISTS cache_entries (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                stored_at REAL NOT NULL,
                ttl_seconds INTEGER NOT NULL,
                expires_at REAL NOT NULL
            );

            -- Update locks, only ever created through a conditional upsert
            CREATE TABLE IF NOT EXISTS update_locks (
                key TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                acquired_at REAL NOT NULL,
                expires_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_cache_entries_expires
                ON cache_entries(expires_at);
            CREATE INDEX IF NOT EXISTS idx_update_locks_expires
                ON update_locks(expires_at);
            """
        )
        conn.commit()
