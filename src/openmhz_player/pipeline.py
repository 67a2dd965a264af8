"""Local playback pipeline: download, convert, play, clean up."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Final
from urllib.parse import urlsplit

from .audio_downloader_http import AudioDownloader
from .audio_playback import AudioOutput
from .audio_processing import AudioTranscoder
from .errors import TranscodeError
from .models import Call
from .player import CallPlayback

logger = logging.getLogger(__name__)

_FILENAME_SAFE_PATTERN: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9_.-]+")


class LocalAudioPipeline(CallPlayback):
    """Plays a call through temporary files in the download directory.

    Both the downloaded file and the converted file are removed once the call
    finishes, whether it played, failed, or was cancelled.
    """

    def __init__(
        self,
        downloader: AudioDownloader,
        transcoder: AudioTranscoder,
        output: AudioOutput,
        *,
        download_dir: Path,
        output_format: str | None = "mp3",
    ) -> None:
        """Create a pipeline writing temporary files under *download_dir*.

        When *output_format* is ``None`` the converted file keeps the suffix of the
        downloaded recording.
        """
        self._downloader = downloader
        self._transcoder = transcoder
        self._output = output
        self._download_dir = download_dir
        self._output_format = output_format

    async def play(self, call: Call) -> None:
        """Download, convert, and play *call*, removing temporary files afterwards."""
        source = self._download_dir / source_filename(call)
        suffix = f".{self._output_format}" if self._output_format else source.suffix
        target = source.with_name(f"{source.stem}.play{suffix}")
        try:
            await self._downloader.download(call, source)
            playable = await self._transcoder.transcode(source, target)
            await self._log_track_length(call, playable)
            await self._output.play_file(playable)
        finally:
            _remove_quietly(source, "original")
            _remove_quietly(target, "converted")

    async def _log_track_length(self, call: Call, path: Path) -> None:
        try:
            length = await self._transcoder.probe_duration(path)
        except TranscodeError as exc:
            logger.warning("Failed to get track length for call %s: %s", call.call_id, exc)
            return
        if length is not None:
            logger.info("Track length: %.2f seconds", length)


def source_filename(call: Call) -> str:
    """Return a filesystem-safe local file name for the recording of *call*."""
    candidate = Path(call.filename).name if call.filename else ""
    if not candidate and call.url:
        candidate = Path(urlsplit(call.url).path).name
    cleaned = _FILENAME_SAFE_PATTERN.sub("_", candidate).strip("._")
    if not cleaned:
        cleaned = _FILENAME_SAFE_PATTERN.sub("_", call.call_id).strip("._") or "call"
    return cleaned


def _remove_quietly(path: Path, label: str) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Failed to delete %s file %s: %s", label, path, exc)


def prepare_download_dir(path: Path, *, reset: bool = True) -> Path:
    """Create *path*, first removing any leftovers from a previous run when *reset* is set."""
    if reset and path.exists():
        logger.debug("Clearing download directory %s", path)
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
