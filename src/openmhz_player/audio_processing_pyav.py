"""PyAV-backed audio conversion utilities."""

from __future__ import annotations

import asyncio
import importlib
import logging
from pathlib import Path
from typing import Any

from .audio_processing import AudioTranscoder
from .errors import TranscodeError

_CODEC_BY_FORMAT: dict[str, str] = {
    "mp3": "mp3",
    "wav": "pcm_s16le",
    "ogg": "libvorbis",
    "flac": "flac",
}


class PyAvTranscoder(AudioTranscoder):
    """Convert downloaded recordings into the player's format using PyAV."""

    def __init__(
        self,
        output_format: str = "mp3",
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialise the transcoder, validating runtime dependencies."""
        self._logger = logger or logging.getLogger(__name__)
        codec = _CODEC_BY_FORMAT.get(output_format)
        if codec is None:
            raise TranscodeError(f"Unsupported output format '{output_format}'")
        try:
            av = importlib.import_module("av")
        except ImportError as exc:  # pragma: no cover - environment dependent
            raise TranscodeError("PyAV is not installed; audio conversion is unavailable") from exc
        self._av = av
        self._output_format = output_format
        self._codec = codec
        self._av_error_types = self._resolve_error_types(av)

    @property
    def output_format(self) -> str:
        """Return the container format produced by :meth:`transcode`."""
        return self._output_format

    async def transcode(self, source: Path, target: Path) -> Path:
        """Convert *source* into *target* while executing CPU work off the event loop."""
        try:
            return await asyncio.to_thread(self._transcode_sync, source, target)
        except TranscodeError:
            raise
        except Exception as exc:  # pragma: no cover - defensive path
            message = f"PyAV conversion failed ({exc.__class__.__name__}: {exc})"
            raise TranscodeError(message) from exc

    async def probe_duration(self, path: Path) -> float | None:
        """Return the container duration of *path* in seconds."""
        try:
            return await asyncio.to_thread(self._probe_duration_sync, path)
        except TranscodeError:
            raise
        except Exception as exc:  # pragma: no cover - defensive path
            message = f"PyAV probe failed ({exc.__class__.__name__}: {exc})"
            raise TranscodeError(message) from exc

    # ---------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------
    def _transcode_sync(self, source: Path, target: Path) -> Path:
        try:
            input_container = self._av.open(str(source), mode="r")
        except self._av_error_types as exc:
            message = f"Failed to open audio container ({exc.__class__.__name__}: {exc})"
            raise TranscodeError(message) from exc

        with input_container:
            input_stream = self._select_audio_stream(input_container)
            sample_rate = int(
                input_stream.rate or input_stream.codec_context.sample_rate or 0
            )
            if sample_rate <= 0:
                raise TranscodeError("Audio stream did not specify a valid sample rate")
            layout = self._layout_name(input_stream)
            try:
                with self._av.open(
                    str(target), mode="w", format=self._output_format
                ) as output_container:
                    self._encode(
                        input_container, input_stream, output_container, sample_rate, layout
                    )
            except self._av_error_types as exc:
                message = f"Failed to encode {target.name} ({exc.__class__.__name__}: {exc})"
                raise TranscodeError(message) from exc

        self._logger.debug("Converted %s to %s", source.name, target.name)
        return target

    def _encode(
        self,
        input_container: Any,
        input_stream: Any,
        output_container: Any,
        sample_rate: int,
        layout: str,
    ) -> None:
        output_stream = output_container.add_stream(self._codec, rate=sample_rate)
        output_stream.layout = layout
        resampler = self._av.AudioResampler(
            format=output_stream.codec_context.format,
            layout=layout,
            rate=sample_rate,
        )
        for frame in input_container.decode(input_stream):
            frame.pts = None
            for resampled in resampler.resample(frame):
                for packet in output_stream.encode(resampled):
                    output_container.mux(packet)
        # Flush resampler and encoder
        for resampled in resampler.resample(None):
            for packet in output_stream.encode(resampled):
                output_container.mux(packet)
        for packet in output_stream.encode(None):
            output_container.mux(packet)

    def _probe_duration_sync(self, path: Path) -> float | None:
        try:
            container = self._av.open(str(path), mode="r")
        except self._av_error_types as exc:
            message = f"Failed to open audio container ({exc.__class__.__name__}: {exc})"
            raise TranscodeError(message) from exc
        with container:
            if container.duration:
                # Container durations are expressed in AV_TIME_BASE (microseconds).
                return float(container.duration) / 1_000_000
            stream = self._select_audio_stream(container)
            if stream.duration is not None and stream.time_base is not None:
                return float(stream.duration * stream.time_base)
        return None

    def _select_audio_stream(self, container: Any) -> Any:
        streams = [stream for stream in container.streams if stream.type == "audio"]
        if not streams:
            raise TranscodeError("No audio stream found in container")
        return streams[0]

    def _layout_name(self, stream: Any) -> str:
        layout = getattr(stream.codec_context, "layout", None)
        name = getattr(layout, "name", None)
        if isinstance(name, str) and name:
            return name
        return "mono"

    def _resolve_error_types(self, av: Any) -> tuple[type[BaseException], ...]:
        error_types: list[type[BaseException]] = []
        for candidate_name in ("FFmpegError", "AVError"):
            candidate = getattr(av, candidate_name, None)
            if isinstance(candidate, type) and issubclass(candidate, BaseException):
                error_types.append(candidate)
        try:
            av_error_module = importlib.import_module("av.error")
        except ImportError:  # pragma: no cover - optional module
            av_error_module = None
        if av_error_module is not None:
            for candidate_name in ("FFmpegError", "AVError"):
                module_error = getattr(av_error_module, candidate_name, None)
                if isinstance(module_error, type) and issubclass(module_error, BaseException):
                    error_types.append(module_error)
        error_types.append(OSError)
        return tuple(dict.fromkeys(error_types))
