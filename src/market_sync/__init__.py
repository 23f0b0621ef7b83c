# SPDX-License-Identifier: MIT
"""Market data sync engine - cached, rate-limited market time series."""

from importlib.metadata import PackageNotFoundError, version


__all__: list[str] = ["__version__"]

# Get version from installed package metadata
__version__: str
try:
    __version__ = version("market-sync")
except PackageNotFoundError:
    # Package is not installed, use development fallback
    __version__ = "development"
