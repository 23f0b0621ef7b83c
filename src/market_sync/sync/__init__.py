# SPDX-License-Identifier: MIT
"""Sync orchestration: freshness check, locking, fetch, merge and persist."""

from .factory import build_fetchers, build_orchestrator, price_api_headers
from .orchestrator import SyncOrchestrator


__all__ = [
    "SyncOrchestrator",
    "build_fetchers",
    "build_orchestrator",
    "price_api_headers",
]
