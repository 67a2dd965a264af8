"""HTTP-based audio downloader for OpenMHz call recordings.

Streams the recording referenced by a call's ``url`` to a local file, rendering
a transfer progress bar while the download runs.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import httpx
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from .errors import AudioDownloadError, TransportError
from .http import AsyncHttpClientProtocol
from .models import Call

logger = logging.getLogger(__name__)


class AudioDownloader(Protocol):
    """Protocol describing the interface for downloading call audio."""

    async def download(
        self, call: Call, destination: Path
    ) -> Path:  # pragma: no cover - protocol
        """Write the recording for *call* to *destination* and return the path."""
        ...


class HttpAudioDownloader(AudioDownloader):
    """Downloader that streams recordings directly from the media host."""

    def __init__(
        self,
        http: AsyncHttpClientProtocol,
        *,
        show_progress: bool = True,
        console: Console | None = None,
    ) -> None:
        """Create a downloader bound to the shared async HTTP client."""
        self._http = http
        self._show_progress = show_progress
        self._console = console

    async def download(self, call: Call, destination: Path) -> Path:
        """Stream the recording for *call* into *destination*."""
        if not call.url:
            raise AudioDownloadError(f"Call {call.call_id} has no audio URL")

        logger.debug("Downloading audio for call %s from %s", call.call_id, call.url)
        written = 0
        try:
            async with self._http.stream(call.url, headers={"Accept": "*/*"}) as response:
                total = _content_length(response)
                with destination.open("wb") as sink, self._progress() as progress:
                    task_id = progress.add_task(destination.name, total=total)
                    async for chunk in response.aiter_bytes():
                        sink.write(chunk)
                        written += len(chunk)
                        progress.update(task_id, advance=len(chunk))
        except TransportError as exc:
            raise AudioDownloadError(f"error downloading file: {exc}") from exc
        except OSError as exc:
            raise AudioDownloadError(f"error writing file: {exc}") from exc

        if written == 0:
            raise AudioDownloadError(f"Empty audio payload for call {call.call_id}")
        logger.debug("Downloaded %d byte(s) for call %s to %s", written, call.call_id, destination)
        return destination

    def _progress(self) -> Progress:
        return Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=self._console,
            transient=True,
            disable=not self._show_progress,
        )


def _content_length(response: httpx.Response) -> int | None:
    raw = response.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None
