"""Audio conversion interfaces for the playback pipeline."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import Protocol

from .errors import TranscodeError


class AudioTranscoder(Protocol):
    """Protocol describing conversion of downloaded audio into a playable file."""

    async def transcode(self, source: Path, target: Path) -> Path:  # pragma: no cover - protocol
        """Convert *source* into *target* and return the playable path."""
        ...

    async def probe_duration(self, path: Path) -> float | None:  # pragma: no cover - protocol
        """Return the duration of *path* in seconds when it can be determined."""
        ...


class PassthroughTranscoder:
    """Transcoder that copies audio unchanged, for players that accept the source format."""

    async def transcode(self, source: Path, target: Path) -> Path:
        """Copy *source* to *target* without conversion."""
        if source == target:
            return target
        try:
            await asyncio.to_thread(shutil.copyfile, source, target)
        except OSError as exc:
            raise TranscodeError(f"error copying {source.name}: {exc}") from exc
        return target

    async def probe_duration(self, path: Path) -> float | None:
        """Duration is unknown without decoding."""
        return None


__all__ = [
    "AudioTranscoder",
    "PassthroughTranscoder",
]
