# SPDX-License-Identifier: MIT
"""Upstream adapters: thin request/response wrappers around data providers."""

from .client import UpstreamClient
from .prices import PriceChartSource, PriceLookup
from .protocols import Scheduler, SeriesSource
from .subgraph import SubgraphSwapSource


__all__ = [
    "PriceChartSource",
    "PriceLookup",
    "Scheduler",
    "SeriesSource",
    "SubgraphSwapSource",
    "UpstreamClient",
]
