# SPDX-License-Identifier: MIT
"""Tests for the subgraph swap source."""

from unittest.mock import AsyncMock, Mock

import pytest

from market_sync.exceptions import NotFoundError, UpstreamStatusError
from market_sync.rate_limiter import NoopRateLimiter
from market_sync.upstream import SeriesSource, SubgraphSwapSource
from market_sync.upstream.subgraph import SWAPS_QUERY_V2, SWAPS_QUERY_V3, parse_swap


TOKEN = "0x" + "aa" * 20
OTHER = "0x" + "bb" * 20


def _pools_response(token0=TOKEN, token1=OTHER, key="pools"):
    return {
        "data": {
            key: [
                {
                    "id": "0xpool",
                    "token0": {"id": token0, "symbol": "A", "name": "A", "decimals": "18"},
                    "token1": {"id": token1, "symbol": "B", "name": "B", "decimals": "18"},
                }
            ]
        }
    }


def _swap_row(row_id="s1", timestamp="1700000000"):
    return {
        "id": row_id,
        "timestamp": timestamp,
        "token0PriceUSD": "1.5",
        "token1PriceUSD": "0.25",
        "amount0USD": "-100",
        "amount1USD": "99",
        "amountUSD": "100",
    }


def _source(responses, version="v3"):
    client = Mock()
    client.post_json = AsyncMock(side_effect=responses)
    limiter = NoopRateLimiter()
    return SubgraphSwapSource(client, "https://example.test/graphql", version, limiter), client, limiter


class TestParseSwap:
    """Test cases for parse_swap."""

    def test_token0_side(self):
        """Token0 takes token0 price and volume; seconds become ms."""
        record = parse_swap(_swap_row(), is_token0=True)

        assert record.id == "s1"
        assert record.timestamp == 1_700_000_000_000
        assert record.price == 1.5
        assert record.volume == 100.0
        assert record.total_volume == 100.0

    def test_token1_side(self):
        """Token1 takes token1 price and volume."""
        record = parse_swap(_swap_row(), is_token0=False)

        assert record.price == 0.25
        assert record.volume == 99.0


class TestSubgraphSwapSource:
    """Test cases for SubgraphSwapSource."""

    def test_satisfies_protocol(self):
        """The source is a SeriesSource."""
        source, _, _ = _source([])
        assert isinstance(source, SeriesSource)

    def test_unknown_version_rejected(self):
        """Only v2 and v3 schemas are supported."""
        with pytest.raises(ValueError):
            SubgraphSwapSource(Mock(), "https://example.test", version="v4")

    @pytest.mark.asyncio
    async def test_prepare_resolves_pool_once(self):
        """The highest-TVL pool is looked up once per token."""
        source, client, limiter = _source([_pools_response()])

        await source.prepare(TOKEN.upper().replace("0X", "0x"))
        await source.prepare(TOKEN)

        assert client.post_json.await_count == 1
        assert limiter.total_dispatched == 1
        pool = await source.resolve_pool(TOKEN)
        assert pool.pool_id == "0xpool"
        assert pool.is_token0 is True

    @pytest.mark.asyncio
    async def test_token1_pool_side(self):
        """A token found as token1 reads token1 fields."""
        source, _, _ = _source([_pools_response(token0=OTHER, token1=TOKEN)])

        pool = await source.resolve_pool(TOKEN)

        assert pool.is_token0 is False

    @pytest.mark.asyncio
    async def test_no_pools_is_not_found(self):
        """Tokens without pools are NotFound."""
        source, _, _ = _source([{"data": {"pools": []}}])

        with pytest.raises(NotFoundError):
            await source.prepare(TOKEN)

    @pytest.mark.asyncio
    async def test_graphql_errors_raise(self):
        """GraphQL error payloads are non-transient upstream failures."""
        source, _, _ = _source([{"errors": [{"message": "bad query"}]}])

        with pytest.raises(UpstreamStatusError, match="bad query"):
            await source.prepare(TOKEN)

    @pytest.mark.asyncio
    async def test_fetch_page_v3(self):
        """v3 pages query by pool id with second-resolution bounds."""
        source, client, _ = _source(
            [_pools_response(), {"data": {"swaps": [_swap_row("s1"), _swap_row("s2")]}}]
        )
        await source.prepare(TOKEN)

        records = await source.fetch_page(TOKEN, 1_000_500, 5_000_999, first=1000, skip=0)

        assert [r.id for r in records] == ["s1", "s2"]
        body = client.post_json.await_args.args[1]
        assert body["query"] == SWAPS_QUERY_V3
        assert body["variables"] == {
            "poolId": "0xpool",
            "startTime": 1001,
            "endTime": 5000,
            "first": 1000,
            "skip": 0,
        }

    @pytest.mark.asyncio
    async def test_fetch_page_v2(self):
        """v2 pages query pairs with BigInt string bounds."""
        source, client, _ = _source(
            [_pools_response(key="pairs"), {"data": {"swaps": []}}], version="v2"
        )
        await source.prepare(TOKEN)

        records = await source.fetch_page(TOKEN, 1_000_000, 2_000_000, first=10, skip=20)

        assert records == []
        body = client.post_json.await_args.args[1]
        assert body["query"] == SWAPS_QUERY_V2
        assert body["variables"]["pairId"] == "0xpool"
        assert body["variables"]["startTime"] == "1000"
        assert body["variables"]["skip"] == 20

    @pytest.mark.asyncio
    async def test_malformed_swap_row(self):
        """Rows missing required fields fail as upstream errors."""
        source, _, _ = _source(
            [_pools_response(), {"data": {"swaps": [{"id": "s1", "timestamp": "soon"}]}}]
        )
        await source.prepare(TOKEN)

        with pytest.raises(UpstreamStatusError, match="Malformed swap row"):
            await source.fetch_page(TOKEN, 0, 1_000_000, first=10, skip=0)

    @pytest.mark.asyncio
    async def test_malformed_pool_row(self):
        source, _, _ = _source([{"data": {"pools": [{"id": "0xpool"}]}}])

        with pytest.raises(UpstreamStatusError, match="Malformed pool row"):
            await source.prepare(TOKEN)

    @pytest.mark.asyncio
    async def test_fetch_page_requires_prepare(self):
        """Pages cannot be fetched before the pool is resolved."""
        source, _, _ = _source([])

        with pytest.raises(RuntimeError):
            await source.fetch_page(TOKEN, 0, 1, first=1, skip=0)
