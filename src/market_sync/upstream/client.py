# SPDX-License-Identifier: MIT
"""Thin aiohttp JSON client mapping upstream failures onto the error taxonomy."""

import asyncio
from typing import Any

import aiohttp

from ..constants import UPSTREAM_TIMEOUT
from ..exceptions import (
    NotFoundError,
    RateLimitedError,
    UpstreamStatusError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from ..logging_config import get_detail_logger


detail_logger = get_detail_logger()


class UpstreamClient:
    """Performs single JSON requests against one upstream service.

    Each call carries a fixed total timeout. The client neither retries nor
    rate-limits; callers wrap it in a `RetryPolicy` and a `RateLimiter`.
    """

    def __init__(
        self,
        name: str,
        timeout: float = UPSTREAM_TIMEOUT,
        headers: dict[str, str] | None = None,
    ):
        self.name = name
        self.timeout = timeout
        self.headers = {"Accept": "application/json", **(headers or {})}
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "UpstreamClient":
        """Async context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Async context manager exit."""
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self.session

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def post_json(self, url: str, body: dict[str, Any]) -> Any:
        """POST a JSON body and return the decoded JSON response."""
        return await self._request("POST", url, json=body)

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET with query parameters and return the decoded JSON response."""
        return await self._request("GET", url, params=params)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        session = self._ensure_session()
        detail_logger.debug(f"[{self.name}] {method} {url}")

        try:
            async with session.request(method, url, **kwargs) as response:
                self._raise_for_status(response.status, response.headers)
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise UpstreamStatusError(
                        f"{self.name} returned a non-JSON body (HTTP {response.status})",
                        status_code=response.status,
                        upstream=self.name,
                    ) from e
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(
                f"{self.name} request timed out after {self.timeout}s",
                upstream=self.name,
            ) from e
        except aiohttp.ClientError as e:
            raise UpstreamUnavailableError(
                f"{self.name} request failed: {e}", upstream=self.name
            ) from e

    def _raise_for_status(self, status: int, headers: Any) -> None:
        if status < 400:
            return

        detail_logger.debug(f"[{self.name}] Upstream answered HTTP {status}")
        if status == 429:
            retry_after = headers.get("Retry-After") if headers else None
            raise RateLimitedError(
                f"{self.name} rate limit hit",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                upstream=self.name,
            )
        if status == 404:
            raise NotFoundError(f"{self.name} has no such resource", upstream=self.name)
        if status >= 500:
            raise UpstreamUnavailableError(
                f"{self.name} unavailable (HTTP {status})",
                status_code=status,
                upstream=self.name,
            )
        raise UpstreamStatusError(
            f"{self.name} rejected the request (HTTP {status})",
            status_code=status,
            upstream=self.name,
        )
