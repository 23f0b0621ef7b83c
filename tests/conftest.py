# SPDX-License-Identifier: MIT
"""Pytest configuration and shared fixtures."""

import pytest

from market_sync.cache import reset_cache_store
from market_sync.config import AppConfig, reset_config_manager
from market_sync.enums import ResourceKind
from market_sync.models import ResourceKey, TimeSeriesRecord


START_TIME = 1_700_000_000.0


class FakeClock:
    """Settable epoch-seconds clock for freshness and TTL tests."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="function", autouse=True)
def isolated_test_cache(tmp_path):
    """
    Automatically provide an isolated test database path for every test.

    This prevents tests from touching a real .market-sync/cache.db file.
    """
    # Local import to avoid circular dependency
    from market_sync.cache.schema import init_database

    cache_path = tmp_path / "test_cache.db"
    init_database(cache_path)
    yield cache_path


@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop global config and cache instances between tests."""
    reset_config_manager()
    reset_cache_store()
    yield
    reset_config_manager()
    reset_cache_store()


@pytest.fixture
def clock():
    """Fake clock starting at a fixed epoch."""
    return FakeClock()


@pytest.fixture
def app_config(isolated_test_cache):
    """Default configuration pointing at the isolated database."""
    config = AppConfig()
    config.cache.db_path = str(isolated_test_cache)
    return config


@pytest.fixture
def swaps_key():
    """Resource key for a token's swap series."""
    return ResourceKey(
        chain="katana",
        kind=ResourceKind.SWAPS,
        identifier="0x" + "ab" * 20,
    )


def make_records(
    count: int, start_ms: int, step_ms: int, prefix: str = "swap"
) -> list[TimeSeriesRecord]:
    """Records with sequential ids and evenly spaced timestamps."""
    return [
        TimeSeriesRecord(
            id=f"{prefix}-{i}",
            timestamp=start_ms + i * step_ms,
            price=1.0 + i / 100,
            volume=10.0,
        )
        for i in range(count)
    ]


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def records_factory():
    """Factory building evenly spaced records."""
    return make_records
