# SPDX-License-Identifier: MIT
"""Tests for the configuration management module."""

import pytest
import yaml
from pydantic import ValidationError

from market_sync.config import (
    AppConfig,
    ConfigManager,
    get_config_manager,
    reset_config_manager,
    set_config_manager,
)
from market_sync.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_RETRIES,
    SUBGRAPH_MIN_TIME,
    SUBGRAPH_RESERVOIR,
    SWAP_FRESHNESS_WINDOW,
    UPDATE_LOCK_TTL,
)
from market_sync.enums import ResourceKind


@pytest.fixture
def temp_config_file(tmp_path):
    """Write a partial configuration file."""
    config_data = {
        "cache": {"lock_ttl_seconds": 120},
        "fetch": {"page_size": 500},
        "rate_limits": {"subgraph": {"max_concurrent": 1}},
        "resources": {"swaps": {"freshness_window_seconds": 600}},
        "upstream": {"price_fallback": 0.0},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump(config_data))
    return path


class TestConfigManager:
    """Test cases for ConfigManager."""

    def test_defaults_without_file(self, tmp_path):
        """Defaults come from constants when no file exists."""
        config = ConfigManager(tmp_path / "missing.yaml").load_config()

        assert isinstance(config, AppConfig)
        assert config.cache.lock_ttl_seconds == UPDATE_LOCK_TTL
        assert config.fetch.page_size == DEFAULT_PAGE_SIZE
        assert config.retry.max_retries == MAX_RETRIES
        assert config.rate_limits["subgraph"].reservoir == SUBGRAPH_RESERVOIR
        assert config.upstream.price_fallback is None
        assert config.candles.synthetic_fill is False

    def test_file_values_merge_over_defaults(self, temp_config_file):
        """File values override single fields and keep the rest."""
        config = ConfigManager(temp_config_file).load_config()

        assert config.cache.lock_ttl_seconds == 120
        assert config.cache.clear_lock_on_success is True
        assert config.fetch.page_size == 500
        assert config.rate_limits["subgraph"].max_concurrent == 1
        assert config.rate_limits["subgraph"].min_time == SUBGRAPH_MIN_TIME
        assert "price_api" in config.rate_limits
        assert config.resource_policy(ResourceKind.SWAPS).freshness_window_seconds == 600
        assert config.upstream.price_fallback == 0.0

    def test_config_is_cached(self, temp_config_file):
        """load_config returns the same instance on repeated calls."""
        manager = ConfigManager(temp_config_file)
        assert manager.load_config() is manager.load_config()

    def test_env_overrides(self, tmp_path, monkeypatch):
        """MARKET_SYNC_<SECTION>_<FIELD> overrides scalar fields."""
        monkeypatch.setenv("MARKET_SYNC_CACHE_DB_PATH", "/srv/cache.db")
        monkeypatch.setenv("MARKET_SYNC_FETCH_RECORD_CAP", "1000")
        monkeypatch.setenv("MARKET_SYNC_CANDLES_SYNTHETIC_FILL", "true")

        config = ConfigManager(tmp_path / "missing.yaml").load_config()

        assert config.cache.db_path == "/srv/cache.db"
        assert config.fetch.record_cap == 1000
        assert config.candles.synthetic_fill is True

    def test_env_overrides_follow_field_types(self, tmp_path, monkeypatch):
        """Numeric-looking strings stay strings where the field is text."""
        monkeypatch.setenv("MARKET_SYNC_UPSTREAM_PRICE_API_KEY", "123456")
        monkeypatch.setenv("MARKET_SYNC_UPSTREAM_PRICE_FALLBACK", "0")
        monkeypatch.setenv("MARKET_SYNC_FETCH_MAX_SKIP", "4000")
        monkeypatch.setenv("MARKET_SYNC_FETCH_INTER_PAGE_DELAY", "1")

        config = ConfigManager(tmp_path / "missing.yaml").load_config()

        assert config.upstream.price_api_key == "123456"
        assert config.upstream.price_fallback == 0.0
        assert isinstance(config.upstream.price_fallback, float)
        assert config.fetch.max_skip == 4000
        assert config.fetch.inter_page_delay == 1.0

    def test_env_null_clears_optional_field(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"upstream": {"price_fallback": 0.0}}))
        monkeypatch.setenv("MARKET_SYNC_UPSTREAM_PRICE_FALLBACK", "null")

        config = ConfigManager(path).load_config()

        assert config.upstream.price_fallback is None

    def test_invalid_values_rejected(self, tmp_path):
        """Out-of-range values fail validation."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"fetch": {"page_size": 0}}))

        with pytest.raises(ValidationError):
            ConfigManager(path).load_config()

    def test_show_config_is_yaml(self, tmp_path):
        """show_config renders the effective configuration."""
        output = ConfigManager(tmp_path / "missing.yaml").show_config()
        data = yaml.safe_load(output)

        assert data["fetch"]["page_size"] == DEFAULT_PAGE_SIZE
        assert set(data["rate_limits"]) == {"subgraph", "price_api"}


class TestResourcePolicy:
    """Test cases for AppConfig.resource_policy."""

    def test_candles_use_swap_policy(self):
        """Candles are served from swaps and share their policy."""
        config = ConfigManager().get_default_config()
        app_config = AppConfig(**config)

        assert app_config.resource_policy(ResourceKind.CANDLES) == app_config.resource_policy(
            ResourceKind.SWAPS
        )
        assert (
            app_config.resource_policy(ResourceKind.SWAPS).freshness_window_seconds
            == SWAP_FRESHNESS_WINDOW
        )

    def test_missing_policy_falls_back_to_default(self):
        """An AppConfig built without resources still has policies."""
        policy = AppConfig().resource_policy(ResourceKind.PRICES)
        assert policy.retention_ttl_seconds > policy.freshness_window_seconds


class TestConfigManagerSingleton:
    """Test cases for the global config manager accessors."""

    def test_get_set_reset(self, tmp_path):
        """The global instance can be replaced and reset."""
        custom = ConfigManager(tmp_path / "missing.yaml")
        set_config_manager(custom)
        assert get_config_manager() is custom

        reset_config_manager()
        assert get_config_manager() is not custom
