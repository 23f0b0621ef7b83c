# SPDX-License-Identifier: MIT
"""Centralized SQLite connection configuration utilities.

Every cache and lock access goes through `get_configured_connection()` so all
server processes sharing the database file use WAL mode and the same busy
timeout. WAL lets readers serve cached series while a sync is writing.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..logging_config import get_detail_logger


detail_logger = get_detail_logger()


def configure_sqlite_connection(
    conn: sqlite3.Connection,
    enable_wal: bool = True,
) -> None:
    """Configure SQLite connection with WAL mode and performance PRAGMAs.

    Args:
        conn: SQLite database connection to configure
        enable_wal: Whether to enable WAL mode (default: True)
    """
    if enable_wal:
        conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA cache_size = 10000")
    conn.execute("PRAGMA temp_store = MEMORY")


@contextmanager
def get_configured_connection(
    db_path: str | Path,
    timeout: float = 30.0,
    enable_wal: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Get a configured SQLite connection with proper timeout and settings.

    Args:
        db_path: Path to the SQLite database file
        timeout: Busy timeout in seconds (default: 30.0)
        enable_wal: Whether to enable WAL mode (default: True)

    Yields:
        Configured SQLite connection, closed on exit

    Example:
        ```python
        with get_configured_connection(store.db_path) as conn:
            conn.execute("SELECT value FROM cache_entries WHERE key = ?", (key,))
        ```
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout)

    try:
        configure_sqlite_connection(conn, enable_wal=enable_wal)
        yield conn
    finally:
        conn.close()
        detail_logger.debug(f"Closed SQLite connection to {db_path}")
