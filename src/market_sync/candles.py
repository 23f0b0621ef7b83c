# SPDX-License-Identifier: MIT
"""OHLC candles aggregated from swap records."""

from collections.abc import Iterable

from .constants import RESOLUTION_MS
from .models import TimeSeriesRecord


def resolution_to_ms(resolution: str) -> int:
    """Bucket width for a resolution string such as '5m' or '1d'."""
    try:
        return RESOLUTION_MS[resolution]
    except KeyError as e:
        raise ValueError(
            f"Unsupported resolution '{resolution}'. "
            f"Expected one of: {', '.join(RESOLUTION_MS)}"
        ) from e


def build_candles(
    records: Iterable[TimeSeriesRecord], resolution: str
) -> list[TimeSeriesRecord]:
    """Bucket priced records into candles, ascending by bucket start.

    Records without a price are skipped. Volume sums the token-side volume.
    The candle id is its bucket start, so rebuilding a bucket with more swaps
    replaces the earlier candle on merge.
    """
    width = resolution_to_ms(resolution)
    buckets: dict[int, list[TimeSeriesRecord]] = {}
    for record in sorted(records, key=lambda r: r.timestamp):
        if record.price is None:
            continue
        bucket = record.timestamp // width * width
        buckets.setdefault(bucket, []).append(record)

    candles = []
    for bucket_start in sorted(buckets):
        swaps = buckets[bucket_start]
        prices = [swap.price for swap in swaps if swap.price is not None]
        candles.append(
            TimeSeriesRecord(
                id=f"{resolution}:{bucket_start}",
                timestamp=bucket_start,
                open=prices[0],
                high=max(prices),
                low=min(prices),
                close=prices[-1],
                volume=sum(swap.volume or 0.0 for swap in swaps),
            )
        )
    return candles


def fill_gaps(
    candles: list[TimeSeriesRecord], resolution: str
) -> list[TimeSeriesRecord]:
    """Insert flat carry-forward candles for empty buckets.

    Opt-in only. Inserted candles repeat the previous close with zero volume
    and are flagged `synthetic=True` so they can never pass for market data.
    """
    if len(candles) < 2:
        return list(candles)

    width = resolution_to_ms(resolution)
    filled = [candles[0]]
    for candle in candles[1:]:
        previous = filled[-1]
        gap_start = previous.timestamp + width
        for bucket_start in range(gap_start, candle.timestamp, width):
            filled.append(
                TimeSeriesRecord(
                    id=f"{resolution}:{bucket_start}",
                    timestamp=bucket_start,
                    open=previous.close,
                    high=previous.close,
                    low=previous.close,
                    close=previous.close,
                    volume=0.0,
                    synthetic=True,
                )
            )
        filled.append(candle)
    return filled
