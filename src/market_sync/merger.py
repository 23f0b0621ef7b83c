# SPDX-License-Identifier: MIT
"""Merging, ordering and slicing of record sets."""

from collections.abc import Iterable

from .models import TimeSeriesRecord


def merge_records(
    existing: Iterable[TimeSeriesRecord], incoming: Iterable[TimeSeriesRecord]
) -> list[TimeSeriesRecord]:
    """Merge two record sets by id, incoming winning on collision.

    The result is ordered ascending by timestamp. Merging the same incoming
    set again yields the same result.
    """
    by_id: dict[str, TimeSeriesRecord] = {record.id: record for record in existing}
    for record in incoming:
        by_id[record.id] = record
    return sorted(by_id.values(), key=lambda record: record.timestamp)


def filter_window(
    records: Iterable[TimeSeriesRecord], start_ms: int | None, end_ms: int | None
) -> list[TimeSeriesRecord]:
    """Records with start_ms <= timestamp <= end_ms (either bound optional)."""
    return [
        record
        for record in records
        if (start_ms is None or record.timestamp >= start_ms)
        and (end_ms is None or record.timestamp <= end_ms)
    ]


def timestamp_bounds(records: list[TimeSeriesRecord]) -> tuple[int, int] | None:
    """(min, max) timestamp, or None for an empty set."""
    if not records:
        return None
    timestamps = [record.timestamp for record in records]
    return min(timestamps), max(timestamps)
