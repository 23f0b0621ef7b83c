# SPDX-License-Identifier: MIT
"""Price chart series and point price lookups from a CoinGecko-style API."""

from typing import Any

from ..enums import ExhaustedOutcome
from ..exceptions import UpstreamStatusError
from ..logging_config import get_detail_logger, get_status_logger
from ..models import TimeSeriesRecord
from ..rate_limiter import NoopRateLimiter
from ..retry_utils import RetryPolicy
from .client import UpstreamClient
from .protocols import Scheduler


detail_logger = get_detail_logger()
status_logger = get_status_logger()


def _chart_path(platform: str, identifier: str) -> str:
    if identifier.startswith("0x"):
        return f"/coins/{platform}/contract/{identifier}/market_chart/range"
    return f"/coins/{identifier}/market_chart/range"


def parse_price_chart(payload: dict[str, Any]) -> list[TimeSeriesRecord]:
    """Turn `prices` / `total_volumes` pairs into records keyed by timestamp.

    Raises:
        UpstreamStatusError: If the payload does not have the chart shape
    """
    try:
        return _chart_records(payload)
    except (AttributeError, TypeError, ValueError) as e:
        raise UpstreamStatusError(
            f"Malformed price chart response: {e}", upstream="price_api"
        ) from e


def _chart_records(payload: dict[str, Any]) -> list[TimeSeriesRecord]:
    volumes = {int(ts): vol for ts, vol in payload.get("total_volumes") or []}
    return [
        TimeSeriesRecord(
            id=str(int(ts)),
            timestamp=int(ts),
            price=float(price),
            total_volume=volumes.get(int(ts)),
        )
        for ts, price in payload.get("prices") or []
        if price is not None
    ]


class PriceChartSource:
    """Price history for a coin or contract.

    The API answers a whole range in one response. That response is kept for
    the range it was requested for and served in `first`/`skip` slices, so
    pagination sees every point.
    """

    def __init__(self, client: UpstreamClient, base_url: str, platform: str = "ethereum"):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.platform = platform
        self._range: tuple[str, int, int] | None = None
        self._range_records: list[TimeSeriesRecord] = []

    @property
    def name(self) -> str:
        return "price_api"

    async def prepare(self, identifier: str) -> None:
        return None

    async def fetch_page(
        self,
        identifier: str,
        start_ms: int,
        end_ms: int,
        first: int,
        skip: int,
    ) -> list[TimeSeriesRecord]:
        requested_range = (identifier, start_ms, end_ms)
        if self._range != requested_range:
            payload = await self.client.get_json(
                self.base_url + _chart_path(self.platform, identifier),
                params={
                    "vs_currency": "usd",
                    "from": -(-start_ms // 1000),
                    "to": end_ms // 1000,
                },
            )
            self._range_records = parse_price_chart(payload or {})
            self._range = requested_range
            detail_logger.debug(
                f"[{self.name}] {len(self._range_records)} points for {identifier}"
            )

        page = self._range_records[skip : skip + first]
        if len(page) < first:
            # Last slice; the next fetch asks the API again
            self._range = None
            self._range_records = []
        return page


class PriceLookup:
    """Point price lookups that degrade instead of failing.

    Once transient failures exhaust the retry budget the configured fallback
    is returned. The default fallback is None ("unknown"): zero looks like a
    real price to anything computing ratios downstream.
    """

    def __init__(
        self,
        client: UpstreamClient,
        base_url: str,
        limiter: Scheduler | None = None,
        retry_policy: RetryPolicy[float] | None = None,
        fallback: float | None = None,
        platform: str = "ethereum",
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.limiter = limiter or NoopRateLimiter()
        self.retry_policy = retry_policy or RetryPolicy(
            on_exhausted=ExhaustedOutcome.DEFAULT, default=fallback
        )
        self.fallback = fallback
        self.platform = platform

    async def _fetch_price(self, address: str) -> float | None:
        payload = await self.client.get_json(
            f"{self.base_url}/simple/token_price/{self.platform}",
            params={"contract_addresses": address, "vs_currencies": "usd"},
        )
        price = ((payload or {}).get(address) or {}).get("usd")
        return float(price) if price is not None else self.fallback

    async def fetch_token_price(self, address: str) -> float | None:
        """Price of one token in USD, or the fallback.

        Raises:
            MarketSyncError: On non-transient failures, which are not retried
        """
        address = address.lower()
        price = await self.retry_policy.call(
            self.limiter.schedule, self._fetch_price, address
        )
        if price is None:
            status_logger.warning(f"No price available for {address}, using fallback")
        detail_logger.debug(f"Price for {address}: {price}")
        return price

    async def fetch_token_prices(self, addresses: list[str]) -> dict[str, float | None]:
        """Sequential lookups for several tokens."""
        results: dict[str, float | None] = {}
        for address in addresses:
            results[address.lower()] = await self.fetch_token_price(address)
        return results
