"""Async HTTP client abstraction for proxy and media requests."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping, MutableMapping
from contextlib import asynccontextmanager
from typing import Any, Protocol

import httpx

from .config import HttpClientConfig
from .errors import TransportError

logger = logging.getLogger(__name__)


class AsyncHttpClientProtocol(Protocol):
    """Protocol describing the async HTTP operations required by the adapters."""

    async def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:  # pragma: no cover - protocol signature
        """Send a JSON POST request and return the HTTP response."""
        ...

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:  # pragma: no cover - protocol signature
        """Send a GET request and return the HTTP response."""
        ...

    def stream(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any:  # pragma: no cover - protocol signature
        """Return an async context manager yielding a streamed GET response."""
        ...

    async def close(self) -> None:  # pragma: no cover - protocol signature
        """Release HTTP resources and close underlying connections."""
        ...


class OpenMHzHttpClient(AsyncHttpClientProtocol):
    """httpx-based client that applies default headers and connection pooling."""

    def __init__(
        self,
        config: HttpClientConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialise the HTTP client with optional *config* and *transport*."""
        self._config = config or HttpClientConfig()
        limits = httpx.Limits(max_connections=self._config.max_connections or None)
        self._client = httpx.AsyncClient(
            http2=self._config.enable_http2,
            limits=limits,
            timeout=httpx.Timeout(self._config.timeout_seconds),
            headers=self._build_default_headers(),
            transport=transport,
        )

    async def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Send *payload* as a JSON body; non-2xx statuses are returned unchanged."""
        logger.debug("POST %s with %d JSON field(s)", url, len(payload))
        try:
            response = await self._client.post(
                url,
                json=dict(payload),
                headers=self._merge_headers(headers),
            )
        except httpx.HTTPError as exc:
            logger.debug("HTTP POST to %s failed: %s", url, exc)
            raise TransportError(f"POST {url} failed: {exc}") from exc
        logger.debug(
            "POST %s completed with status %s in %.2f ms",
            url,
            response.status_code,
            response.elapsed.total_seconds() * 1000.0,
        )
        return response

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Send a GET request; non-2xx statuses are returned unchanged."""
        logger.debug("GET %s", url)
        try:
            response = await self._client.get(url, headers=self._merge_headers(headers))
        except httpx.HTTPError as exc:
            logger.debug("HTTP GET %s failed: %s", url, exc)
            raise TransportError(f"GET {url} failed: {exc}") from exc
        logger.debug(
            "GET %s completed with status %s in %.2f ms",
            url,
            response.status_code,
            response.elapsed.total_seconds() * 1000.0,
        )
        return response

    @asynccontextmanager
    async def stream(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Stream a GET response, raising :class:`TransportError` on non-2xx statuses."""
        logger.debug("GET (stream) %s", url)
        try:
            async with self._client.stream(
                "GET", url, headers=self._merge_headers(headers), follow_redirects=True
            ) as response:
                response.raise_for_status()
                yield response
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise TransportError(f"GET {url} returned status {status}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {url} failed: {exc}") from exc

    async def close(self) -> None:
        """Close the underlying httpx.AsyncClient instance."""
        await self._client.aclose()
        logger.debug("httpx.AsyncClient closed")

    def _merge_headers(self, headers: Mapping[str, str] | None) -> MutableMapping[str, str]:
        """Merge default headers with user-provided *headers*."""
        merged: MutableMapping[str, str] = dict(self._client.headers)
        if headers:
            merged.update(headers)
        return merged

    def _build_default_headers(self) -> MutableMapping[str, str]:
        """Return the default header set applied to every request."""
        return {
            "User-Agent": self._config.user_agent,
            "Accept": "application/json, text/plain, */*",
        }
