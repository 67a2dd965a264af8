"""Tests for the FlareSolverr proxy adapter and the OpenMHz API client."""

from __future__ import annotations

import html
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from openmhz_player.api import OpenMHzClient
from openmhz_player.config import ApiConfig, ProxyConfig
from openmhz_player.errors import ProxyError, ResponseParsingError, TransportError
from openmhz_player.http import OpenMHzHttpClient
from openmhz_player.proxy import FlareSolverrProxy, extract_json_payload

PROXY_URL = "http://proxy.test:8191/v1"


def _solution_page(document: Any) -> str:
    body = html.escape(json.dumps(document))
    return (
        "<html><head></head><body>"
        f"<pre style=\"word-wrap: break-word\">{body}</pre>"
        "</body></html>"
    )


def _envelope(document: Any, *, status: str = "ok") -> dict[str, Any]:
    return {
        "status": status,
        "message": "Challenge not detected!" if status == "ok" else "Error solving the challenge.",
        "solution": {
            "url": "https://api.openmhz.com/",
            "status": 200,
            "response": _solution_page(document),
        },
    }


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> OpenMHzHttpClient:
    return OpenMHzHttpClient(transport=httpx.MockTransport(handler))


def test_extract_json_payload_unescapes_pre_content() -> None:
    """The JSON document inside <pre> is HTML-unescaped before decoding."""
    page = "<html><body><pre>{&quot;calls&quot;: [{&quot;_id&quot;: &quot;a&amp;b&quot;}]}</pre>"
    assert extract_json_payload(page) == {"calls": [{"_id": "a&b"}]}


def test_extract_json_payload_requires_pre_tags() -> None:
    """Pages without a <pre> element cannot be decoded."""
    with pytest.raises(ResponseParsingError, match="<pre>"):
        extract_json_payload("<html><body>Just a moment...</body></html>")


def test_extract_json_payload_rejects_invalid_json() -> None:
    """Malformed JSON inside the element is reported as a parsing error."""
    with pytest.raises(ResponseParsingError):
        extract_json_payload("<pre>{not json</pre>")


@pytest.mark.asyncio
async def test_fetch_json_posts_request_get_command() -> None:
    """The proxy receives a request.get command carrying the target URL and timeout."""
    captured: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        assert str(request.url) == PROXY_URL
        return httpx.Response(200, json=_envelope({"calls": []}))

    http = _client(handler)
    proxy = FlareSolverrProxy(http, ProxyConfig(url=PROXY_URL, max_timeout_ms=1234))
    try:
        document = await proxy.fetch_json("https://api.openmhz.com/demo/calls")
    finally:
        await http.close()

    assert document == {"calls": []}
    assert captured == [
        {"cmd": "request.get", "url": "https://api.openmhz.com/demo/calls", "maxTimeout": 1234}
    ]


@pytest.mark.asyncio
async def test_fetch_json_rejects_non_200_status() -> None:
    """A non-200 answer from the proxy is a proxy error."""
    http = _client(lambda request: httpx.Response(500, text="oops"))
    proxy = FlareSolverrProxy(http, ProxyConfig(url=PROXY_URL))
    try:
        with pytest.raises(ProxyError, match="unexpected status code: 500"):
            await proxy.fetch_json("https://api.openmhz.com/systems")
    finally:
        await http.close()


@pytest.mark.asyncio
async def test_fetch_json_rejects_failed_envelope() -> None:
    """An envelope whose status is not ok is a proxy error."""
    failed = {"status": "error", "message": "Error solving the challenge.", "solution": None}
    http = _client(lambda request: httpx.Response(200, json=failed))
    proxy = FlareSolverrProxy(http, ProxyConfig(url=PROXY_URL))
    try:
        with pytest.raises(ProxyError, match="Error solving the challenge"):
            await proxy.fetch_json("https://api.openmhz.com/systems")
    finally:
        await http.close()


@pytest.mark.asyncio
async def test_fetch_json_wraps_transport_failures() -> None:
    """Connection failures surface as TransportError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http = _client(handler)
    proxy = FlareSolverrProxy(http, ProxyConfig(url=PROXY_URL))
    try:
        with pytest.raises(TransportError):
            await proxy.fetch_json("https://api.openmhz.com/systems")
    finally:
        await http.close()


@pytest.mark.asyncio
async def test_is_available_probes_proxy_root() -> None:
    """The health check issues a GET against the proxy root and expects 200."""
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"msg": "FlareSolverr is ready!"})

    http = _client(handler)
    proxy = FlareSolverrProxy(http, ProxyConfig(url=PROXY_URL))
    try:
        assert await proxy.is_available() is True
    finally:
        await http.close()
    assert seen == ["http://proxy.test:8191/"]


@pytest.mark.asyncio
async def test_is_available_false_when_unreachable() -> None:
    """A refused connection means the proxy is not running."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http = _client(handler)
    proxy = FlareSolverrProxy(http, ProxyConfig(url=PROXY_URL))
    try:
        assert await proxy.is_available() is False
    finally:
        await http.close()


class StubFetcher:
    """JSON fetcher returning canned documents keyed by URL."""

    def __init__(self, documents: dict[str, Any]) -> None:
        """Store the canned *documents*."""
        self.documents = documents
        self.requested: list[str] = []

    async def fetch_json(self, target_url: str) -> Any:
        """Return the document registered for *target_url*."""
        self.requested.append(target_url)
        return self.documents[target_url]


@pytest.mark.asyncio
async def test_list_calls_preserves_response_order() -> None:
    """Calls are returned in listing order with their identity taken from _id."""
    fetcher = StubFetcher(
        {
            "https://api.openmhz.com/demo/calls": {
                "calls": [
                    {
                        "_id": "b2",
                        "url": "https://media.openmhz.com/demo-2.m4a",
                        "filename": "media/demo-2.m4a",
                        "time": "2024-05-01T12:00:02.000Z",
                        "len": 4,
                    },
                    {"_id": "a1", "url": "https://media.openmhz.com/demo-1.m4a"},
                ]
            }
        }
    )
    client = OpenMHzClient(fetcher, ApiConfig())

    calls = await client.list_calls("demo")

    assert [call.call_id for call in calls] == ["b2", "a1"]
    assert calls[0].filename == "media/demo-2.m4a"
    assert calls[0].raw["_id"] == "b2"
    assert calls[1].filename == ""
    assert fetcher.requested == ["https://api.openmhz.com/demo/calls"]


@pytest.mark.asyncio
async def test_list_calls_rejects_malformed_document() -> None:
    """A document without a calls array is a parsing error."""
    client = OpenMHzClient(StubFetcher({"https://api.openmhz.com/demo/calls": {"oops": 1}}))
    with pytest.raises(ResponseParsingError):
        await client.list_calls("demo")


@pytest.mark.asyncio
async def test_list_systems_maps_entries() -> None:
    """Systems are parsed from the success envelope."""
    document = {
        "success": True,
        "systems": [
            {
                "name": "Demo County",
                "shortName": "demo",
                "systemType": "p25",
                "city": "Springfield",
                "state": "IL",
                "active": True,
                "callAvg": 2.5,
            }
        ],
    }
    client = OpenMHzClient(StubFetcher({"https://api.openmhz.com/systems": document}))

    systems = await client.list_systems()

    assert len(systems) == 1
    assert systems[0].name == "Demo County"
    assert systems[0].short_name == "demo"
    assert systems[0].system_type == "p25"
    assert systems[0].call_avg == 2.5


@pytest.mark.asyncio
async def test_list_systems_rejects_unsuccessful_response() -> None:
    """An envelope reporting failure is an error."""
    client = OpenMHzClient(
        StubFetcher({"https://api.openmhz.com/systems": {"success": False, "systems": []}})
    )
    with pytest.raises(ResponseParsingError, match="indicates failure"):
        await client.list_systems()


@pytest.mark.asyncio
async def test_client_end_to_end_through_proxy() -> None:
    """The API client and proxy adapter cooperate over a mocked transport."""

    def handler(request: httpx.Request) -> httpx.Response:
        command = json.loads(request.content)
        assert command["url"] == "https://api.openmhz.com/demo/calls"
        return httpx.Response(200, json=_envelope({"calls": [{"_id": "z", "url": "u"}]}))

    http = _client(handler)
    client = OpenMHzClient(FlareSolverrProxy(http, ProxyConfig(url=PROXY_URL)))
    try:
        calls = await client.list_calls("demo")
    finally:
        await http.close()

    assert [call.call_id for call in calls] == ["z"]
