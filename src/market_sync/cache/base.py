# SPDX-License-Identifier: MIT
"""Base utilities for cache components."""

import sqlite3
import time
from collections.abc import Callable
from pathlib import Path

from ..logging_config import get_detail_logger, get_status_logger


detail_logger = get_detail_logger()
status_logger = get_status_logger()


class CacheBase:
    """Base class for cache components sharing one SQLite database."""

    def __init__(
        self,
        db_path: Path | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize cache base with database path.

        Args:
            db_path: Path to the SQLite database file. If None, gets from config.
            clock: Source of epoch seconds, injectable for expiry tests.

        Raises:
            RuntimeError: If the database directory or schema cannot be created.
        """
        if db_path is None:
            # Local import to avoid circular dependency (config -> cache)
            from ..config import get_config_manager

            db_path = Path(get_config_manager().load_config().cache.db_path)
            detail_logger.debug(f"Using database path from config: {db_path}")

        # Local import to avoid circular dependency (schema -> connection_utils)
        from .schema import init_database

        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            init_database(db_path)
        except (sqlite3.Error, OSError) as e:
            error_msg = f"Failed to initialize database at {db_path}"
            status_logger.error(error_msg)
            detail_logger.exception(f"{error_msg}: {e}")
            raise RuntimeError(error_msg) from e

        self.db_path = db_path
        self.clock = clock
