# SPDX-License-Identifier: MIT
"""Wiring of upstream sources, limiters and caches into an orchestrator."""

import time
from collections.abc import Callable
from pathlib import Path

from ..cache import CacheStore, SeriesCache, UpdateLock
from ..config import AppConfig
from ..enums import ResourceKind
from ..logging_config import get_detail_logger
from ..pagination import PaginatedFetcher
from ..rate_limiter import NoopRateLimiter, RateLimiter, build_rate_limiters
from ..retry_utils import RetryPolicy
from ..upstream import PriceChartSource, SubgraphSwapSource, UpstreamClient
from .orchestrator import FetcherKey, SyncOrchestrator


detail_logger = get_detail_logger()


def build_fetchers(
    config: AppConfig,
    subgraph_client: UpstreamClient,
    price_client: UpstreamClient,
    limiters: dict[str, RateLimiter],
) -> dict[FetcherKey, PaginatedFetcher]:
    """One fetcher per (chain, kind) the upstream configuration covers.

    All sources of one upstream share that upstream's limiter.
    """
    retry_policy: RetryPolicy = RetryPolicy.from_config(config.retry)
    subgraph_limiter = limiters.get("subgraph") or NoopRateLimiter("subgraph")
    price_limiter = limiters.get("price_api") or NoopRateLimiter("price_api")
    fetch = config.fetch

    fetchers: dict[FetcherKey, PaginatedFetcher] = {}
    for chain, url in config.upstream.subgraph_urls.items():
        source = SubgraphSwapSource(
            subgraph_client,
            url,
            version=config.upstream.subgraph_versions.get(chain, "v3"),
            limiter=subgraph_limiter,
            retry_policy=retry_policy,
        )
        fetchers[(chain, ResourceKind.SWAPS)] = PaginatedFetcher(
            source,
            subgraph_limiter,
            retry_policy,
            page_size=fetch.page_size,
            record_cap=fetch.record_cap,
            page_delay=fetch.inter_page_delay,
            max_skip=fetch.max_skip,
        )
        fetchers[(chain, ResourceKind.PRICES)] = PaginatedFetcher(
            PriceChartSource(price_client, config.upstream.price_api_base_url, chain),
            price_limiter,
            retry_policy,
            page_size=fetch.page_size,
            record_cap=fetch.record_cap,
            page_delay=fetch.inter_page_delay,
            max_skip=fetch.max_skip,
        )

    detail_logger.debug(f"Built fetchers: {sorted(f'{c}/{k.value}' for c, k in fetchers)}")
    return fetchers


def build_orchestrator(
    config: AppConfig,
    subgraph_client: UpstreamClient,
    price_client: UpstreamClient,
    db_path: Path | None = None,
    clock: Callable[[], float] = time.time,
) -> SyncOrchestrator:
    """Construct an orchestrator backed by the configured cache database."""
    db_path = db_path or Path(config.cache.db_path)
    store = CacheStore(db_path, clock=clock)
    limiters = build_rate_limiters(config)
    return SyncOrchestrator(
        series_cache=SeriesCache(store),
        update_lock=UpdateLock(db_path, clock=clock),
        fetchers=build_fetchers(config, subgraph_client, price_client, limiters),
        config=config,
        clock=clock,
    )


def price_api_headers(config: AppConfig) -> dict[str, str]:
    """Request headers for the price API, carrying the key when configured."""
    if config.upstream.price_api_key:
        return {"x-cg-demo-api-key": config.upstream.price_api_key}
    return {}
