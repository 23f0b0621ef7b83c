# SPDX-License-Identifier: MIT
"""Command-line interface for the market data sync engine."""

import asyncio
import functools
import json
import sys
import traceback
from collections.abc import Callable
from typing import Any, TypeVar

import click

from . import __version__
from .api import handle_series_request
from .cache import SeriesCache, UpdateLock, get_cache_store
from .config import get_config_manager
from .constants import DEFAULT_WINDOW_DAYS
from .enums import ExhaustedOutcome, ResourceKind
from .logging_config import get_status_logger, setup_logging
from .models import ResourceKey
from .rate_limiter import build_rate_limiters
from .retry_utils import RetryPolicy
from .sync import SyncOrchestrator, build_orchestrator, price_api_headers
from .upstream import PriceLookup, UpstreamClient
from .validation import validate_token_address


F = TypeVar("F", bound=Callable[..., Any])


def handle_cli_errors(func: F) -> F:
    """Decorator to handle common CLI error patterns.

    Logs the error (with a traceback when --verbose was given) and exits
    with status code 1.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        status_logger = get_status_logger()
        verbose = kwargs.get("verbose", False)

        try:
            return func(*args, **kwargs)
        except Exception as e:
            if verbose:
                status_logger.error(f"Error in {func.__name__}: {e}")
                traceback.print_exc()
            else:
                status_logger.error(f"Error: {e}")
            sys.exit(1)

    return wrapper  # type: ignore


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit if requested."""
    if value:
        # Ensure logging is set up before using it (--version is eager)
        setup_logging()
        status_logger = get_status_logger()
        status_logger.info(f"market-sync version {__version__}")
        ctx.exit(0)


@click.group()
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version information and exit",
)
def main() -> None:
    """market-sync - Cached, rate-limited market time series."""
    detail_logger, status_logger = setup_logging()
    detail_logger.debug("CLI initialized")


def _print_envelope(status: int, envelope: dict[str, Any]) -> None:
    print(json.dumps(envelope, indent=2))
    if status != 200:
        sys.exit(1)


async def _serve(params: dict[str, Any]) -> tuple[int, dict[str, Any]]:
    config = get_config_manager().load_config()
    async with (
        UpstreamClient("subgraph", config.fetch.timeout_seconds) as subgraph_client,
        UpstreamClient(
            "price_api", config.fetch.timeout_seconds, price_api_headers(config)
        ) as price_client,
    ):
        orchestrator = build_orchestrator(config, subgraph_client, price_client)
        return await handle_series_request(orchestrator, params)


def _local_orchestrator() -> SyncOrchestrator:
    """Orchestrator for cache administration; it never talks to upstreams."""
    config = get_config_manager().load_config()
    store = get_cache_store()
    return SyncOrchestrator(
        series_cache=SeriesCache(store),
        update_lock=UpdateLock(store.db_path),
        fetchers={},
        config=config,
    )


@main.command()
@click.argument("identifier")
@click.option("--chain", required=True, help="Chain name, e.g. katana or ethereum")
@click.option(
    "--kind",
    default=ResourceKind.SWAPS.value,
    type=click.Choice([ResourceKind.SWAPS.value, ResourceKind.PRICES.value]),
    help="Series kind",
)
@click.option("--days", default=DEFAULT_WINDOW_DAYS, help="Trailing window in days")
@click.option("--force", is_flag=True, help="Refresh even if cached data is fresh")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@handle_cli_errors
def series(
    identifier: str, chain: str, kind: str, days: int, force: bool, verbose: bool
) -> None:
    """Print a synced series as a JSON envelope.

    IDENTIFIER: Token address, or a coin id for --kind prices
    """
    params = {
        "chain": chain,
        "kind": kind,
        "identifier": identifier,
        "days": days,
        "force": force,
    }
    _print_envelope(*asyncio.run(_serve(params)))


@main.command()
@click.argument("token_address")
@click.option("--chain", required=True, help="Chain name, e.g. katana or ethereum")
@click.option("--resolution", default="1h", help="Bucket size: 5m, 15m, 30m, 1h, 4h, 1d, 1w")
@click.option("--days", default=DEFAULT_WINDOW_DAYS, help="Trailing window in days")
@click.option("--force", is_flag=True, help="Refresh even if cached data is fresh")
@click.option(
    "--fill-gaps/--no-fill-gaps",
    default=None,
    help="Insert flagged carry-forward candles for empty buckets",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@handle_cli_errors
def candles(
    token_address: str,
    chain: str,
    resolution: str,
    days: int,
    force: bool,
    fill_gaps: bool | None,
    verbose: bool,
) -> None:
    """Print OHLC candles aggregated from a token's swaps.

    TOKEN_ADDRESS: The token whose highest-TVL pool is read
    """
    params: dict[str, Any] = {
        "chain": chain,
        "kind": ResourceKind.CANDLES.value,
        "identifier": token_address,
        "resolution": resolution,
        "days": days,
        "force": force,
    }
    if fill_gaps is not None:
        params["fill_gaps"] = fill_gaps
    _print_envelope(*asyncio.run(_serve(params)))


async def _lookup_prices(addresses: list[str]) -> dict[str, float | None]:
    config = get_config_manager().load_config()
    limiters = build_rate_limiters(config)
    fallback = config.upstream.price_fallback
    async with UpstreamClient(
        "price_api", config.fetch.timeout_seconds, price_api_headers(config)
    ) as client:
        lookup = PriceLookup(
            client,
            config.upstream.price_api_base_url,
            limiter=limiters.get("price_api"),
            retry_policy=RetryPolicy.from_config(
                config.retry, on_exhausted=ExhaustedOutcome.DEFAULT, default=fallback
            ),
            fallback=fallback,
        )
        return await lookup.fetch_token_prices(addresses)


@main.command()
@click.argument("addresses", nargs=-1, required=True)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@handle_cli_errors
def prices(addresses: tuple[str, ...], verbose: bool) -> None:
    """Look up current USD prices for token addresses.

    Tokens whose price cannot be obtained print the configured fallback
    (null unless configured otherwise).
    """
    validated = [validate_token_address(address) for address in addresses]
    print(json.dumps(asyncio.run(_lookup_prices(validated)), indent=2))


@main.command()
@click.argument("identifier")
@click.option("--chain", required=True, help="Chain name")
@click.option(
    "--kind",
    default=ResourceKind.SWAPS.value,
    type=click.Choice([kind.value for kind in ResourceKind]),
    help="Series kind",
)
@click.option("--confirm", is_flag=True, help="Skip confirmation prompt")
@handle_cli_errors
def clear(
    identifier: str, chain: str, kind: str, confirm: bool
) -> None:
    """Delete a stored series and its update lock."""
    status_logger = get_status_logger()
    key = ResourceKey(chain=chain, kind=ResourceKind(kind), identifier=identifier)

    if not confirm:
        click.confirm(f"This will delete cached data for {key}. Continue?", abort=True)

    if _local_orchestrator().clear(key):
        status_logger.info(f"Cleared cached data for {key}.")
    else:
        status_logger.info(f"No cached data for {key}.")


@main.command()
@handle_cli_errors
def cleanup() -> None:
    """Remove expired cache entries and expired update locks."""
    removed = get_cache_store().cleanup_expired()
    get_status_logger().info(f"Removed {removed} expired row(s).")


@main.command()
@handle_cli_errors
def config() -> None:
    """Show the complete current configuration."""
    config_output = get_config_manager().show_config()
    print(config_output)


if __name__ == "__main__":
    main()
