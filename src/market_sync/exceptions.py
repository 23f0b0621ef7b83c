# SPDX-License-Identifier: MIT
"""Error taxonomy for the market data sync engine.

Each exception carries the HTTP status the endpoint layer should answer with.
Lock contention has no exception; it degrades to stale data.
"""

from .constants import TRANSIENT_STATUS_CODES


class MarketSyncError(Exception):
    """Base class for all sync engine errors."""

    http_status: int = 500

    def __init__(self, message: str, upstream: str | None = None) -> None:
        self.upstream = upstream
        super().__init__(message)


class ValidationError(MarketSyncError):
    """Raised when request parameters are invalid (client-fixable)."""

    http_status = 400

    def __init__(
        self, message: str, http_status: int = 400, upstream: str | None = None
    ) -> None:
        self.http_status = http_status
        super().__init__(message, upstream)


class NotFoundError(MarketSyncError):
    """Raised when the upstream confirms there is no data for a resource."""

    http_status = 404


class RateLimitedError(MarketSyncError):
    """Raised when an upstream keeps answering 429 after all retries."""

    http_status = 429

    def __init__(
        self,
        message: str = "Upstream rate limit exceeded",
        retry_after: int | None = None,
        upstream: str | None = None,
    ) -> None:
        self.retry_after = retry_after
        self.status_code = 429
        msg = f"{message}. Retry after {retry_after}s" if retry_after else message
        super().__init__(msg, upstream)


class UpstreamUnavailableError(MarketSyncError):
    """Raised on upstream 5xx responses and network failures."""

    http_status = 503

    def __init__(
        self,
        message: str = "Upstream unavailable",
        status_code: int | None = None,
        upstream: str | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, upstream)


class UpstreamTimeoutError(UpstreamUnavailableError):
    """Raised when an upstream call exceeds its fixed timeout."""


class UpstreamStatusError(UpstreamUnavailableError):
    """Raised on a non-transient upstream HTTP failure (never retried)."""


class UnexpectedError(MarketSyncError):
    """Raised for failures that fit no other category."""

    http_status = 500


def is_transient(
    exc: BaseException, transient_statuses: tuple[int, ...] = TRANSIENT_STATUS_CODES
) -> bool:
    """Return True if the failure is worth retrying.

    Only rate-limited and service-unavailable answers qualify; network errors
    and any other upstream status fail immediately.
    """
    if isinstance(exc, (RateLimitedError, UpstreamUnavailableError)):
        return exc.status_code in transient_statuses
    return False
