# SPDX-License-Identifier: MIT
"""Endpoint boundary: request params in, (HTTP status, JSON envelope) out."""

from typing import Any

from .enums import ResourceKind, ResponseStatus
from .exceptions import MarketSyncError
from .logging_config import get_detail_logger, get_status_logger
from .models import ResponseData, ResponseEnvelope, SyncResult
from .sync import SyncOrchestrator
from .validation import build_series_request, parse_flag


detail_logger = get_detail_logger()
status_logger = get_status_logger()


def to_envelope(result: SyncResult) -> ResponseEnvelope:
    """Wrap a sync result in the success envelope."""
    return ResponseEnvelope(
        status=ResponseStatus.SUCCESS,
        data=ResponseData(
            records=[
                record.model_dump(exclude_defaults=True) for record in result.records
            ],
            metadata=result.metadata.model_dump() if result.metadata else None,
        ),
        cached=result.cached,
        update_status=result.update_status,
        message=result.message,
        stats=result.stats,
    )


def error_response(exc: BaseException) -> tuple[int, ResponseEnvelope]:
    """Map an exception to its HTTP status and error envelope.

    Engine errors carry their own status. Anything else is reported as a
    generic 500 without leaking its message.
    """
    if isinstance(exc, MarketSyncError):
        status_logger.warning(f"Request failed ({exc.http_status}): {exc}")
        return exc.http_status, ResponseEnvelope(
            status=ResponseStatus.ERROR, message=str(exc)
        )

    status_logger.error(f"Unexpected server error: {exc}")
    detail_logger.exception("Unexpected server error")
    return 500, ResponseEnvelope(
        status=ResponseStatus.ERROR, message="Unexpected server error"
    )


def envelope_json(envelope: ResponseEnvelope) -> dict[str, Any]:
    """JSON-ready dict with the wire field names."""
    return envelope.model_dump(mode="json", by_alias=True, exclude_none=True)


async def handle_series_request(
    orchestrator: SyncOrchestrator, params: dict[str, Any]
) -> tuple[int, dict[str, Any]]:
    """Serve one read request.

    Args:
        orchestrator: Orchestrator wired to the upstreams and shared cache
        params: Raw request parameters (chain, kind, identifier, resolution,
            days, force, fill_gaps)

    Returns:
        Tuple of (HTTP status, JSON envelope)
    """
    try:
        request = build_series_request(params)
        detail_logger.debug(f"Series request: {request.model_dump(mode='json')}")
        if request.key.kind == ResourceKind.CANDLES:
            fill = params.get("fill_gaps")
            result = await orchestrator.serve_candles(
                request, synthetic_fill=parse_flag(fill) if fill is not None else None
            )
        else:
            result = await orchestrator.sync(request)
    except Exception as e:
        status, envelope = error_response(e)
        return status, envelope_json(envelope)

    return 200, envelope_json(to_envelope(result))
