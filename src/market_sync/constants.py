# SPDX-License-Identifier: MIT
"""Constants used throughout the market data sync engine.

This module centralizes the numeric defaults for:

- **Cache lifetimes**: long retention TTL for stored series vs. the short
  freshness window used to decide whether a refresh is attempted
- **Update locks**: how long a sync attempt may hold a resource before the
  lock self-expires
- **Pagination**: page size, hard record cap and the pacing delay between pages
- **Upstream politeness**: token-bucket reservoirs per upstream service
- **Retries**: transient status codes and the linear backoff base
"""

# Cache retention (seconds)
SERIES_RETENTION_TTL: int = 365 * 24 * 60 * 60  # 1 year
PRICE_RETENTION_TTL: int = 10 * 365 * 24 * 60 * 60  # 10 years

# Freshness windows (seconds)
SWAP_FRESHNESS_WINDOW: int = 60 * 60  # 1 hour
PRICE_FRESHNESS_WINDOW: int = 5 * 60  # 5 minutes

# Update lock
UPDATE_LOCK_TTL: int = 15 * 60
CLEAR_LOCK_ON_SUCCESS: bool = True

# Full sync lookback
FULL_LOOKBACK_DAYS: int = 365

# Pagination
DEFAULT_PAGE_SIZE: int = 1000
DEFAULT_RECORD_CAP: int = 50_000
INTER_PAGE_DELAY: float = 0.5
MAX_SKIP: int = 5000

# Per-call upstream timeout (seconds)
UPSTREAM_TIMEOUT: float = 15.0

# Retry policy
MAX_RETRIES: int = 5
RETRY_BASE_DELAY: float = 1.5
TRANSIENT_STATUS_CODES: tuple[int, ...] = (429, 503)

# Rate limits: subgraph (per minute reservoir)
SUBGRAPH_RESERVOIR: int = 60
SUBGRAPH_REFRESH_INTERVAL: float = 60.0
SUBGRAPH_MAX_CONCURRENT: int = 2
SUBGRAPH_MIN_TIME: float = 1.0

# Rate limits: price API
PRICE_API_RESERVOIR: int = 30
PRICE_API_REFRESH_INTERVAL: float = 60.0
PRICE_API_MAX_CONCURRENT: int = 1
PRICE_API_MIN_TIME: float = 2.0

# Request validation
MIN_WINDOW_DAYS: int = 1
MAX_WINDOW_DAYS: int = 365
DEFAULT_WINDOW_DAYS: int = 365
MAX_CACHE_KEY_LENGTH: int = 255

# Candle resolutions (milliseconds)
RESOLUTION_MS: dict[str, int] = {
    "5m": 5 * 60 * 1000,
    "15m": 15 * 60 * 1000,
    "30m": 30 * 60 * 1000,
    "1h": 60 * 60 * 1000,
    "4h": 4 * 60 * 60 * 1000,
    "1d": 24 * 60 * 60 * 1000,
    "1w": 7 * 24 * 60 * 60 * 1000,
}
RAW_RESOLUTION: str = "raw"

# Degraded value for exhausted point price lookups (None means "unknown")
DEFAULT_PRICE_FALLBACK: float | None = None

MS_PER_DAY: int = 24 * 60 * 60 * 1000
