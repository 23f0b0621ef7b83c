# SPDX-License-Identifier: MIT
"""Enums for the market data sync engine."""

from enum import Enum


class UpdateStatus(str, Enum):
    """Freshness annotation attached to every served series."""

    FRESH = "fresh"
    UPDATING = "updating"
    UPDATED = "updated"


class ResponseStatus(str, Enum):
    """Top-level status of a response envelope."""

    SUCCESS = "success"
    ERROR = "error"


class ResourceKind(str, Enum):
    """Kinds of synchronized time series."""

    SWAPS = "swaps"
    PRICES = "prices"
    CANDLES = "candles"


class SyncState(str, Enum):
    """States of a single orchestrator run."""

    IDLE = "idle"
    CHECKING = "checking"
    FRESH = "fresh"
    NEEDS_SYNC = "needs_sync"
    LOCKING = "locking"
    LOCK_ACQUIRED = "lock_acquired"
    LOCK_BUSY = "lock_busy"
    SERVE_STALE = "serve_stale"
    FETCHING = "fetching"
    MERGING = "merging"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class FetchMode(str, Enum):
    """Whether a sync fetches the full lookback or only newer records."""

    FULL = "full"
    INCREMENTAL = "incremental"


class ExhaustedOutcome(str, Enum):
    """What a retry policy does once retries are exhausted."""

    RAISE = "raise"
    DEFAULT = "default"
