# SPDX-License-Identifier: MIT
"""Core data models for the market data sync engine."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from .constants import RAW_RESOLUTION
from .enums import ResourceKind, ResponseStatus, UpdateStatus


class ResourceKey(BaseModel):
    """Identity of one synchronized time series.

    Only parameters that change the stored series belong here; the requested
    window does not, since every resource stores its full lookback.
    """

    model_config = {"frozen": True}

    chain: str = Field(..., description="Chain or network name")
    kind: ResourceKind = Field(..., description="Kind of series")
    identifier: str = Field(..., description="Token, pool or coin identifier")
    resolution: str = Field(RAW_RESOLUTION, description="Stored series resolution")

    @field_validator("chain", "identifier", "resolution")
    @classmethod
    def normalize_component(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("Resource key components cannot be empty")
        return value

    @property
    def cache_key(self) -> str:
        """Cache store key for the serialized series."""
        return f"series:{self.suffix}"

    @property
    def lock_key(self) -> str:
        """Cache store key for the update lock."""
        return f"lock:{self.suffix}"

    @property
    def suffix(self) -> str:
        return f"{self.chain}:{self.kind.value}:{self.identifier}:{self.resolution}"

    def __str__(self) -> str:
        return self.suffix


class TimeSeriesRecord(BaseModel):
    """One upstream record (a swap, a price point or a candle)."""

    id: str = Field(..., description="Upstream-unique record id")
    timestamp: int = Field(..., description="Epoch milliseconds")
    price: float | None = Field(None, description="Token price in USD")
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float | None = None
    volume: float | None = Field(None, description="Token-side volume in USD")
    total_volume: float | None = Field(None, description="Total trade volume in USD")
    synthetic: bool = Field(
        False, description="True only for opt-in gap-fill candles, never upstream data"
    )


class SyncMetadata(BaseModel):
    """Bookkeeping for one resource; absent means never synced."""

    resource_key: str
    last_update_at: int = Field(..., description="Epoch ms of last successful sync")
    last_record_timestamp: int = Field(
        ..., description="max(timestamp) over the stored records"
    )
    data_range_start: int
    data_range_end: int
    record_count: int = 0


class StoredSeries(BaseModel):
    """Serialized cache payload: records plus their metadata."""

    records: list[TimeSeriesRecord] = Field(default_factory=list)
    metadata: SyncMetadata


class CacheEntry(BaseModel):
    """A raw cache store entry."""

    key: str
    payload: str
    stored_at: float = Field(..., description="Epoch seconds when written")
    ttl_seconds: int


class SeriesRequest(BaseModel):
    """A validated read request handed to the orchestrator."""

    key: ResourceKey
    window_days: int | None = Field(None, ge=1, description="Trailing window size")
    window_start: int | None = Field(None, description="Inclusive window start (ms)")
    window_end: int | None = Field(None, description="Inclusive window end (ms)")
    force: bool = False


class SyncStats(BaseModel):
    """Counters reported after a sync that touched the upstream."""

    total_stored: int
    new_fetched: int
    existing: int


class SyncResult(BaseModel):
    """Outcome of one orchestrator run."""

    records: list[TimeSeriesRecord] = Field(default_factory=list)
    metadata: SyncMetadata | None = None
    cached: bool = False
    update_status: UpdateStatus = UpdateStatus.FRESH
    stats: SyncStats | None = None
    message: str | None = None


class ResponseData(BaseModel):
    """Payload of a successful response envelope."""

    records: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None


class ResponseEnvelope(BaseModel):
    """JSON envelope returned to endpoint callers."""

    status: ResponseStatus
    data: ResponseData | None = None
    cached: bool = False
    update_status: UpdateStatus | None = Field(None, serialization_alias="updateStatus")
    message: str | None = None
    stats: SyncStats | None = None
