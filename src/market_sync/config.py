# SPDX-License-Identifier: MIT
"""Configuration management for the market data sync engine."""

import copy
import os
from pathlib import Path
from typing import Any, get_args

import yaml
from pydantic import BaseModel, Field, TypeAdapter

from .constants import (
    CLEAR_LOCK_ON_SUCCESS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PRICE_FALLBACK,
    DEFAULT_RECORD_CAP,
    FULL_LOOKBACK_DAYS,
    INTER_PAGE_DELAY,
    MAX_RETRIES,
    MAX_SKIP,
    PRICE_API_MAX_CONCURRENT,
    PRICE_API_MIN_TIME,
    PRICE_API_REFRESH_INTERVAL,
    PRICE_API_RESERVOIR,
    PRICE_FRESHNESS_WINDOW,
    PRICE_RETENTION_TTL,
    RETRY_BASE_DELAY,
    SERIES_RETENTION_TTL,
    SUBGRAPH_MAX_CONCURRENT,
    SUBGRAPH_MIN_TIME,
    SUBGRAPH_REFRESH_INTERVAL,
    SUBGRAPH_RESERVOIR,
    SWAP_FRESHNESS_WINDOW,
    TRANSIENT_STATUS_CODES,
    UPDATE_LOCK_TTL,
    UPSTREAM_TIMEOUT,
)
from .enums import ResourceKind


ENV_PREFIX = "MARKET_SYNC_"


class CacheConfig(BaseModel):
    """Configuration for the shared cache store and update locks."""

    db_path: str = Field(
        str(Path.cwd() / ".market-sync" / "cache.db"),
        description="SQLite database shared by all server processes on this host",
    )
    lock_ttl_seconds: int = Field(
        UPDATE_LOCK_TTL, ge=1, description="Update lock self-expiry"
    )
    clear_lock_on_success: bool = Field(
        CLEAR_LOCK_ON_SUCCESS,
        description="Clear the update lock as soon as a sync persists",
    )


class FetchConfig(BaseModel):
    """Configuration for paginated upstream fetches."""

    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=5000)
    record_cap: int = Field(DEFAULT_RECORD_CAP, ge=1)
    inter_page_delay: float = Field(INTER_PAGE_DELAY, ge=0.0)
    max_skip: int = Field(
        MAX_SKIP, ge=0, description="Largest skip offset the upstream accepts"
    )
    full_lookback_days: int = Field(FULL_LOOKBACK_DAYS, ge=1)
    timeout_seconds: float = Field(UPSTREAM_TIMEOUT, gt=0.0)


class RetryConfig(BaseModel):
    """Configuration for transient-failure retries."""

    max_retries: int = Field(MAX_RETRIES, ge=0)
    base_delay: float = Field(RETRY_BASE_DELAY, ge=0.0)
    transient_statuses: list[int] = Field(
        default_factory=lambda: list(TRANSIENT_STATUS_CODES)
    )


class RateLimitConfig(BaseModel):
    """Token-bucket settings for one upstream service."""

    reservoir: int = Field(..., ge=1, description="Permits available per interval")
    refresh_amount: int = Field(..., ge=1, description="Reservoir value after refill")
    refresh_interval: float = Field(..., gt=0.0, description="Refill period (s)")
    max_concurrent: int = Field(..., ge=1, description="Max in-flight calls")
    min_time: float = Field(0.0, ge=0.0, description="Min spacing between dispatches")


class ResourcePolicyConfig(BaseModel):
    """Retention and freshness for one resource kind."""

    retention_ttl_seconds: int = Field(..., ge=1)
    freshness_window_seconds: int = Field(..., ge=0)


class CandleConfig(BaseModel):
    """Configuration for candle aggregation."""

    synthetic_fill: bool = Field(
        False,
        description="Insert flagged carry-forward candles for empty buckets",
    )


class UpstreamConfig(BaseModel):
    """Endpoints of upstream data providers."""

    subgraph_urls: dict[str, str] = Field(
        default_factory=lambda: {
            "katana": "https://api.studio.thegraph.com/query/106601/sushi-v-3-katana/version/latest",
            "ethereum": "https://api.studio.thegraph.com/query/119169/sushi-v-2-eth/version/latest",
        }
    )
    subgraph_versions: dict[str, str] = Field(
        default_factory=lambda: {"katana": "v3", "ethereum": "v2"}
    )
    price_api_base_url: str = Field("https://api.coingecko.com/api/v3")
    price_api_key: str | None = Field(None, description="Optional price API key")
    price_fallback: float | None = Field(
        DEFAULT_PRICE_FALLBACK,
        description="Value returned by point lookups once retries are exhausted",
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    cache: CacheConfig = CacheConfig()
    fetch: FetchConfig = FetchConfig()
    retry: RetryConfig = RetryConfig()
    rate_limits: dict[str, RateLimitConfig] = Field(default_factory=dict)
    resources: dict[ResourceKind, ResourcePolicyConfig] = Field(default_factory=dict)
    candles: CandleConfig = CandleConfig()
    upstream: UpstreamConfig = UpstreamConfig()

    def resource_policy(self, kind: ResourceKind) -> ResourcePolicyConfig:
        """Policy for a resource kind; candles are served from the swap series."""
        if kind == ResourceKind.CANDLES:
            kind = ResourceKind.SWAPS
        try:
            return self.resources[kind]
        except KeyError:
            return ResourcePolicyConfig(**DEFAULT_RESOURCE_POLICIES[kind.value])


DEFAULT_RATE_LIMITS: dict[str, dict[str, Any]] = {
    "subgraph": {
        "reservoir": SUBGRAPH_RESERVOIR,
        "refresh_amount": SUBGRAPH_RESERVOIR,
        "refresh_interval": SUBGRAPH_REFRESH_INTERVAL,
        "max_concurrent": SUBGRAPH_MAX_CONCURRENT,
        "min_time": SUBGRAPH_MIN_TIME,
    },
    "price_api": {
        "reservoir": PRICE_API_RESERVOIR,
        "refresh_amount": PRICE_API_RESERVOIR,
        "refresh_interval": PRICE_API_REFRESH_INTERVAL,
        "max_concurrent": PRICE_API_MAX_CONCURRENT,
        "min_time": PRICE_API_MIN_TIME,
    },
}

DEFAULT_RESOURCE_POLICIES: dict[str, dict[str, Any]] = {
    ResourceKind.SWAPS.value: {
        "retention_ttl_seconds": SERIES_RETENTION_TTL,
        "freshness_window_seconds": SWAP_FRESHNESS_WINDOW,
    },
    ResourceKind.PRICES.value: {
        "retention_ttl_seconds": PRICE_RETENTION_TTL,
        "freshness_window_seconds": PRICE_FRESHNESS_WINDOW,
    },
}


class ConfigManager:
    """Manages application configuration from files and environment."""

    def __init__(self, config_path: Path | None = None):
        self.config_path = config_path or self._find_config_file()
        self._config: AppConfig | None = None

    def _find_config_file(self) -> Path | None:
        """Find configuration file in standard locations."""
        search_paths = [
            Path.cwd() / ".market-sync" / "config.yaml",
            Path.cwd() / "config" / "config.yaml",
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "market-sync" / "config.yaml",
            Path("/etc/market-sync/config.yaml"),
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def load_config(self) -> AppConfig:
        """Load configuration from file or create default."""
        if self._config is not None:
            return self._config

        default_config = self.get_default_config()

        if self.config_path and self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
            config_data = self._deep_merge_configs(default_config, file_config)
        else:
            config_data = default_config

        config_data = self._apply_env_overrides(config_data)

        self._config = AppConfig(**config_data)
        return self._config

    def _deep_merge_configs(
        self, default_config: dict[str, Any], override_config: dict[str, Any]
    ) -> dict[str, Any]:
        """Deep merge override config into default config.

        Keyed sections (``rate_limits``, ``resources``) merge per entry, so a
        user can override a single field of one upstream's limiter, e.g.::

            rate_limits:
              subgraph:
                max_concurrent: 1

        keeps every other subgraph limiter setting at its default.
        """
        result = copy.deepcopy(default_config)

        for key, value in override_config.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                if key in ("rate_limits", "resources"):
                    for entry_name, entry_config in value.items():
                        if entry_name in result[key] and isinstance(entry_config, dict):
                            result[key][entry_name].update(entry_config)
                        else:
                            result[key][entry_name] = entry_config
                else:
                    result[key].update(value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_data: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variable overrides to scalar config fields.

        ``MARKET_SYNC_CACHE_DB_PATH=/srv/cache.db`` sets ``cache.db_path``.
        """
        sections: dict[str, type[BaseModel]] = {
            "cache": CacheConfig,
            "fetch": FetchConfig,
            "retry": RetryConfig,
            "candles": CandleConfig,
            "upstream": UpstreamConfig,
        }
        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            config_key = key[len(ENV_PREFIX) :].lower()
            for section, model in sections.items():
                prefix = f"{section}_"
                if config_key.startswith(prefix):
                    field_name = config_key[len(prefix) :]
                    config_data.setdefault(section, {})[field_name] = _coerce_env(
                        value, model, field_name
                    )
                    break

        return config_data

    def get_complete_config_dict(self) -> dict[str, Any]:
        """Get the complete configuration as a dictionary for display."""
        config = self.load_config()
        return config.model_dump(mode="json")

    def show_config(self) -> str:
        """Show the complete configuration in YAML format."""
        config_dict = self.get_complete_config_dict()
        return yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    def get_default_config(self) -> dict[str, Any]:
        """Get default configuration with every upstream and resource kind."""
        return {
            "cache": CacheConfig().model_dump(),
            "fetch": FetchConfig().model_dump(),
            "retry": RetryConfig().model_dump(),
            "rate_limits": copy.deepcopy(DEFAULT_RATE_LIMITS),
            "resources": copy.deepcopy(DEFAULT_RESOURCE_POLICIES),
            "candles": CandleConfig().model_dump(),
            "upstream": UpstreamConfig().model_dump(),
        }


def _coerce_env(value: str, model: type[BaseModel], field_name: str) -> Any:
    """Coerce an environment string to the type of the field it overrides.

    ``none``/``null`` clear optional fields; unknown fields stay strings.
    """
    field = model.model_fields.get(field_name)
    if field is None:
        return value
    if value.lower() in ("none", "null") and type(None) in get_args(field.annotation):
        return None
    return TypeAdapter(field.annotation).validate_python(value)


# Global config manager instance with factory pattern
_config_manager_instance: ConfigManager | None = None


def get_config_manager(config_path: Path | None = None) -> ConfigManager:
    """Get or create the global config manager instance.

    Args:
        config_path: Optional path to config file (only used on first call)

    Returns:
        The global ConfigManager instance
    """
    global _config_manager_instance
    if _config_manager_instance is None:
        _config_manager_instance = ConfigManager(config_path)
    return _config_manager_instance


def set_config_manager(manager: ConfigManager) -> None:
    """Set the config manager instance (primarily for testing)."""
    global _config_manager_instance
    _config_manager_instance = manager


def reset_config_manager() -> None:
    """Reset the config manager instance (primarily for testing)."""
    global _config_manager_instance
    _config_manager_instance = None
