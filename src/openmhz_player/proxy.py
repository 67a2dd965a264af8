"""FlareSolverr proxy adapter used to reach the OpenMHz API."""

from __future__ import annotations

import html
import json
import logging
import re
from typing import Any, Final, Protocol

from pydantic import ValidationError

from .config import ProxyConfig
from .errors import ProxyError, ResponseParsingError, TransportError
from .http import AsyncHttpClientProtocol
from .schemas import ProxyEnvelope

logger = logging.getLogger(__name__)

# Browsers may decorate the element with inline styles.
_PRE_OPEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"<pre(?:\s[^>]*)?>", re.IGNORECASE)
_PRE_CLOSE: Final[str] = "</pre>"


class JsonFetcher(Protocol):
    """Protocol for anything able to fetch and decode a JSON document by URL."""

    async def fetch_json(self, target_url: str) -> Any:  # pragma: no cover - protocol
        """Return the decoded JSON document served at *target_url*."""
        ...


class FlareSolverrProxy(JsonFetcher):
    """Fetches JSON documents through FlareSolverr's ``request.get`` command.

    FlareSolverr drives a real browser, so JSON endpoints come back rendered as
    an HTML page with the document inside a ``<pre>`` element.
    """

    def __init__(self, http: AsyncHttpClientProtocol, config: ProxyConfig | None = None) -> None:
        """Create a proxy adapter that issues commands through *http*."""
        self._http = http
        self._config = config or ProxyConfig()

    async def is_available(self) -> bool:
        """Return ``True`` when the proxy answers its root URL with HTTP 200."""
        try:
            response = await self._http.get(self._config.health_url)
        except TransportError as exc:
            logger.debug("FlareSolverr health check failed: %s", exc)
            return False
        return response.status_code == 200

    async def fetch_json(self, target_url: str) -> Any:
        """Fetch *target_url* through the proxy and decode the embedded JSON."""
        logger.debug("Fetching JSON via proxy. Target URL: %s", target_url)
        command = {
            "cmd": "request.get",
            "url": target_url,
            "maxTimeout": self._config.max_timeout_ms,
        }
        response = await self._http.post_json(
            str(self._config.url),
            command,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        if response.status_code != 200:
            raise ProxyError(f"unexpected status code: {response.status_code}")

        try:
            envelope = ProxyEnvelope.model_validate_json(response.content)
        except ValidationError as exc:
            raise ResponseParsingError("FlareSolverr returned a malformed envelope") from exc
        if envelope.status != "ok" or envelope.solution is None:
            raise ProxyError(f"FlareSolverr request failed: {envelope.message or envelope.status}")
        return extract_json_payload(envelope.solution.response)


def extract_json_payload(page: str) -> Any:
    """Return the JSON document embedded in the ``<pre>`` element of *page*."""
    opening = _PRE_OPEN_PATTERN.search(page)
    end = page.find(_PRE_CLOSE, opening.end()) if opening is not None else -1
    if opening is None or end == -1:
        raise ResponseParsingError("failed to locate <pre> tags in response")

    text = html.unescape(page[opening.end() : end])
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("Error unescaping JSON: %s", exc)
        logger.debug("Raw JSON: %s", text)
        raise ResponseParsingError(f"error decoding JSON: {exc}") from exc
