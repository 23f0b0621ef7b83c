# SPDX-License-Identifier: MIT
"""Swap history from a DEX subgraph (GraphQL, skip/first pagination)."""

from dataclasses import dataclass
from typing import Any

from ..exceptions import NotFoundError, UpstreamStatusError
from ..logging_config import get_detail_logger
from ..models import TimeSeriesRecord
from ..rate_limiter import NoopRateLimiter
from ..retry_utils import RetryPolicy
from .client import UpstreamClient
from .protocols import Scheduler


detail_logger = get_detail_logger()

_TOKEN_FIELDS = "id symbol name decimals"

POOLS_QUERY_V3 = f"""
query GetPoolsByTVL($tokenAddress: String!) {{
  pools(
    where: {{ or: [{{ token0: $tokenAddress }}, {{ token1: $tokenAddress }}] }}
    orderBy: totalValueLockedUSD
    orderDirection: desc
    first: 10
  ) {{
    id
    token0 {{ {_TOKEN_FIELDS} }}
    token1 {{ {_TOKEN_FIELDS} }}
    totalValueLockedUSD
  }}
}}
"""

POOLS_QUERY_V2 = f"""
query GetPairsByTVL($tokenAddress: Bytes!) {{
  pairs(
    where: {{ or: [{{ token0: $tokenAddress }}, {{ token1: $tokenAddress }}] }}
    orderBy: reserveUSD
    orderDirection: desc
    first: 10
  ) {{
    id
    token0 {{ {_TOKEN_FIELDS} }}
    token1 {{ {_TOKEN_FIELDS} }}
    reserveUSD
  }}
}}
"""

SWAPS_QUERY_V3 = """
query GetSwaps($poolId: String!, $startTime: Int!, $endTime: Int!, $first: Int!, $skip: Int!) {
  swaps(
    where: { pool: $poolId, timestamp_gte: $startTime, timestamp_lte: $endTime }
    orderBy: timestamp
    orderDirection: asc
    first: $first
    skip: $skip
  ) {
    id
    timestamp
    token0PriceUSD
    token1PriceUSD
    amount0USD
    amount1USD
    amountUSD
  }
}
"""

SWAPS_QUERY_V2 = """
query GetSwaps($pairId: Bytes!, $startTime: BigInt!, $endTime: BigInt!, $first: Int!, $skip: Int!) {
  swaps(
    where: { pair: $pairId, timestamp_gte: $startTime, timestamp_lte: $endTime }
    orderBy: timestamp
    orderDirection: asc
    first: $first
    skip: $skip
  ) {
    id
    timestamp
    token0PriceUSD
    token1PriceUSD
    amount0USD
    amount1USD
    amountUSD
  }
}
"""


@dataclass(frozen=True)
class PoolRef:
    """The pool a token's swaps are read from, and which side the token is."""

    pool_id: str
    is_token0: bool


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_swap(raw: dict[str, Any], is_token0: bool) -> TimeSeriesRecord:
    """Convert one subgraph swap row into a record priced for the token side."""
    side = "0" if is_token0 else "1"
    return TimeSeriesRecord(
        id=str(raw["id"]),
        timestamp=int(raw["timestamp"]) * 1000,
        price=_to_float(raw.get(f"token{side}PriceUSD")),
        volume=abs(_to_float(raw.get(f"amount{side}USD"))),
        total_volume=_to_float(raw.get("amountUSD")),
    )


class SubgraphSwapSource:
    """Reads a token's swaps from its highest-TVL pool on one chain.

    The pool is resolved once per token by `prepare` and remembered for the
    process lifetime; the lookup goes through the same limiter as page
    requests, but outside any page dispatch.
    """

    def __init__(
        self,
        client: UpstreamClient,
        url: str,
        version: str = "v3",
        limiter: Scheduler | None = None,
        retry_policy: RetryPolicy[Any] | None = None,
    ):
        if version not in ("v2", "v3"):
            raise ValueError(f"Unsupported subgraph version: {version}")
        self.client = client
        self.url = url
        self.version = version
        self.limiter = limiter or NoopRateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self._pools: dict[str, PoolRef] = {}

    @property
    def name(self) -> str:
        return "subgraph"

    async def _query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        payload = await self.client.post_json(
            self.url, {"query": query, "variables": variables}
        )
        if not isinstance(payload, dict):
            raise UpstreamStatusError("Subgraph returned a non-object body", upstream=self.name)
        if payload.get("errors"):
            raise UpstreamStatusError(
                f"Subgraph query failed: {payload['errors']}", upstream=self.name
            )
        return payload.get("data") or {}

    async def prepare(self, identifier: str) -> None:
        await self.resolve_pool(identifier)

    async def resolve_pool(self, token_address: str) -> PoolRef:
        """Find the highest-TVL pool containing the token.

        Raises:
            NotFoundError: If no pool contains the token
        """
        token_address = token_address.lower()
        if token_address in self._pools:
            return self._pools[token_address]

        query = POOLS_QUERY_V3 if self.version == "v3" else POOLS_QUERY_V2
        data = await self.retry_policy.call(
            self.limiter.schedule,
            self._query,
            query,
            {"tokenAddress": token_address},
        )
        pools = (data or {}).get("pools" if self.version == "v3" else "pairs") or []
        if not pools:
            raise NotFoundError(
                f"No pools found for token {token_address}", upstream=self.name
            )

        top = pools[0]
        try:
            ref = PoolRef(
                pool_id=str(top["id"]),
                is_token0=str(top["token0"]["id"]).lower() == token_address,
            )
        except (KeyError, TypeError) as e:
            raise UpstreamStatusError(
                f"Malformed pool row from subgraph: {e!r}", upstream=self.name
            ) from e
        detail_logger.debug(f"[subgraph] Highest TVL pool for {token_address}: {ref}")
        self._pools[token_address] = ref
        return ref

    async def fetch_page(
        self,
        identifier: str,
        start_ms: int,
        end_ms: int,
        first: int,
        skip: int,
    ) -> list[TimeSeriesRecord]:
        pool = self._pools.get(identifier.lower())
        if pool is None:
            raise RuntimeError(f"Pool for {identifier} not resolved; call prepare() first")

        # Subgraph timestamps are whole seconds; round the start up
        start_s = -(-start_ms // 1000)
        end_s = end_ms // 1000
        if self.version == "v3":
            query = SWAPS_QUERY_V3
            variables: dict[str, Any] = {
                "poolId": pool.pool_id,
                "startTime": start_s,
                "endTime": end_s,
                "first": first,
                "skip": skip,
            }
        else:
            query = SWAPS_QUERY_V2
            variables = {
                "pairId": pool.pool_id,
                "startTime": str(start_s),
                "endTime": str(end_s),
                "first": first,
                "skip": skip,
            }

        data = await self._query(query, variables)
        try:
            return [parse_swap(row, pool.is_token0) for row in data.get("swaps") or []]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise UpstreamStatusError(
                f"Malformed swap row from subgraph: {e!r}", upstream=self.name
            ) from e
