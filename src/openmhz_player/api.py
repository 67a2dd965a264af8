"""OpenMHz API adapter listing systems and recent calls."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from types import MappingProxyType
from typing import Protocol

from pydantic import ValidationError

from .config import ApiConfig
from .errors import ResponseParsingError
from .models import Call, SystemSummary
from .proxy import JsonFetcher
from .schemas import CallEntry, CallsResponse, SystemEntry, SystemsResponse

logger = logging.getLogger(__name__)


class SystemLister(Protocol):
    """Protocol describing system discovery."""

    async def list_systems(self) -> Sequence[SystemSummary]:  # pragma: no cover - protocol
        """Return every system known to the API."""
        ...


class CallLister(Protocol):
    """Protocol describing per-system call listing."""

    async def list_calls(self, system: str) -> Sequence[Call]:  # pragma: no cover - protocol
        """Return the current call listing for *system* in response order."""
        ...


class OpenMHzClient(SystemLister, CallLister):
    """Reads the OpenMHz API through a JSON fetcher such as the FlareSolverr proxy."""

    def __init__(self, fetcher: JsonFetcher, config: ApiConfig | None = None) -> None:
        """Create a client that resolves API URLs from *config*."""
        self._fetcher = fetcher
        self._config = config or ApiConfig()

    async def list_systems(self) -> list[SystemSummary]:
        """Return every system listed by the API."""
        payload = await self._fetcher.fetch_json(self._config.systems_url())
        try:
            envelope = SystemsResponse.model_validate(payload)
        except ValidationError as exc:
            raise ResponseParsingError("error parsing systems JSON") from exc
        if not envelope.success:
            raise ResponseParsingError("API response indicates failure")
        logger.debug("Parsed %d system(s)", len(envelope.systems))
        return [_to_system(entry) for entry in envelope.systems]

    async def list_calls(self, system: str) -> list[Call]:
        """Return the calls currently listed for *system*, preserving response order."""
        url = self._config.calls_url(system)
        payload = await self._fetcher.fetch_json(url)
        try:
            envelope = CallsResponse.model_validate(payload)
        except ValidationError as exc:
            raise ResponseParsingError("error parsing calls JSON") from exc
        logger.debug("Parsed %d calls", len(envelope.calls))
        return [_to_call(entry) for entry in envelope.calls]


def _to_call(entry: CallEntry) -> Call:
    return Call(
        call_id=entry.id,
        url=entry.url,
        filename=entry.filename,
        time=entry.time,
        raw=MappingProxyType(entry.model_dump(by_alias=True)),
    )


def _to_system(entry: SystemEntry) -> SystemSummary:
    return SystemSummary(
        name=entry.name,
        short_name=entry.short_name,
        system_type=entry.system_type,
        city=entry.city,
        state=entry.state,
        active=entry.active,
        last_active=entry.last_active,
        call_avg=entry.call_avg,
        description=entry.description,
    )
