# SPDX-License-Identifier: MIT
"""Validation of request parameters into a `SeriesRequest`."""

import re
from typing import Any

from .constants import (
    DEFAULT_WINDOW_DAYS,
    MAX_WINDOW_DAYS,
    MIN_WINDOW_DAYS,
    RAW_RESOLUTION,
    RESOLUTION_MS,
)
from .enums import ResourceKind
from .exceptions import ValidationError
from .models import ResourceKey, SeriesRequest

ADDRESS_PATTERN = re.compile(r"^0x[a-f0-9]{40}$")
COIN_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"", "0", "false", "no", "off"}


def validate_token_address(address: str | None) -> str:
    """
    Validate and normalize an EVM token or pool address.

    Args:
        address: Raw address parameter

    Returns:
        Lower-cased address

    Raises:
        ValidationError: 400 if missing, 422 if malformed

    Examples:
        >>> validate_token_address("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48")
        '0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48'
    """
    if address is None or not str(address).strip():
        raise ValidationError("tokenAddress parameter is required")

    normalized = str(address).strip().lower()
    if not ADDRESS_PATTERN.match(normalized):
        raise ValidationError("Invalid address format", http_status=422)
    return normalized


def validate_identifier(identifier: str | None, kind: ResourceKind) -> str:
    """Addresses for swap-based series; addresses or coin ids for prices."""
    if kind != ResourceKind.PRICES:
        return validate_token_address(identifier)

    if identifier is None or not str(identifier).strip():
        raise ValidationError("identifier parameter is required")
    normalized = str(identifier).strip().lower()
    if normalized.startswith("0x"):
        return validate_token_address(normalized)
    if not COIN_ID_PATTERN.match(normalized):
        raise ValidationError("Invalid coin identifier", http_status=422)
    return normalized


def validate_days(days: Any) -> int:
    """Parse a window size in days, 1..365 inclusive."""
    if days is None or days == "":
        return DEFAULT_WINDOW_DAYS
    try:
        days_num = int(str(days).strip())
    except ValueError:
        days_num = None

    if days_num is None or not MIN_WINDOW_DAYS <= days_num <= MAX_WINDOW_DAYS:
        raise ValidationError(
            f"Days must be a number between {MIN_WINDOW_DAYS} and {MAX_WINDOW_DAYS}"
        )
    return days_num


def validate_resolution(resolution: str | None, kind: ResourceKind) -> str:
    """Candles need a bucket resolution; stored series are always raw."""
    if kind != ResourceKind.CANDLES:
        if resolution not in (None, "", RAW_RESOLUTION):
            raise ValidationError(f"Resolution is only supported for {ResourceKind.CANDLES.value}")
        return RAW_RESOLUTION

    if not resolution:
        raise ValidationError("resolution parameter is required for candles")
    normalized = str(resolution).strip().lower()
    if normalized not in RESOLUTION_MS:
        raise ValidationError(
            f"Unsupported resolution '{resolution}'. Expected one of: {', '.join(RESOLUTION_MS)}"
        )
    return normalized


def parse_flag(value: Any) -> bool:
    """Interpret a query-string flag such as force=true."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValidationError(f"Invalid boolean flag: {value}")


def build_series_request(params: dict[str, Any]) -> SeriesRequest:
    """Translate raw request parameters into a validated SeriesRequest.

    Recognized keys: chain, kind, identifier (or tokenAddress), resolution,
    days, force.

    Raises:
        ValidationError: On any missing or invalid parameter
    """
    chain = str(params.get("chain") or "").strip().lower()
    if not chain:
        raise ValidationError("chain parameter is required")

    raw_kind = str(params.get("kind") or ResourceKind.SWAPS.value).strip().lower()
    try:
        kind = ResourceKind(raw_kind)
    except ValueError:
        raise ValidationError(f"Unknown resource kind: {raw_kind}") from None

    identifier = params.get("identifier") or params.get("tokenAddress")
    key = ResourceKey(
        chain=chain,
        kind=kind,
        identifier=validate_identifier(identifier, kind),
        resolution=validate_resolution(params.get("resolution"), kind),
    )
    return SeriesRequest(
        key=key,
        window_days=validate_days(params.get("days")),
        force=parse_flag(params.get("force")),
    )
