"""Tests for the PyAV audio conversion integration."""

from __future__ import annotations

import asyncio
import importlib
from collections.abc import Callable
from fractions import Fraction
from pathlib import Path
from types import ModuleType, SimpleNamespace
from typing import Any

import pytest

from openmhz_player.audio_processing import PassthroughTranscoder
from openmhz_player.audio_processing_pyav import PyAvTranscoder
from openmhz_player.errors import TranscodeError


def _install_fake_av(monkeypatch: pytest.MonkeyPatch, fake_av: ModuleType) -> None:
    original_import = importlib.import_module

    def _import(name: str, package: str | None = None) -> Any:
        if name == "av":
            return fake_av
        if name == "av.error":
            return getattr(fake_av, "error", ModuleType("av.error"))
        return original_import(name, package)

    monkeypatch.setattr(importlib, "import_module", _import)


def test_transcoder_requires_pyav(monkeypatch: pytest.MonkeyPatch) -> None:
    """Instantiation fails with a helpful error when PyAV is unavailable."""
    original_import = importlib.import_module

    def _import(name: str, package: str | None = None) -> Any:
        if name == "av":
            raise ImportError("PyAV missing")
        return original_import(name, package)

    monkeypatch.setattr(importlib, "import_module", _import)
    with pytest.raises(TranscodeError) as excinfo:
        PyAvTranscoder("mp3")
    assert "PyAV" in str(excinfo.value)


def test_transcoder_rejects_unknown_format(monkeypatch: pytest.MonkeyPatch) -> None:
    """Formats without a known encoder are refused up front."""
    _install_fake_av(monkeypatch, ModuleType("av"))
    with pytest.raises(TranscodeError) as excinfo:
        PyAvTranscoder("aiff")
    assert "aiff" in str(excinfo.value)


def test_open_failures_are_wrapped(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Container errors from av.error are converted to TranscodeError with context."""

    class FakeAVError(Exception):
        pass

    fake_av = ModuleType("av")
    fake_error_module = ModuleType("av.error")
    fake_error_module.AVError = FakeAVError  # type: ignore[attr-defined]
    fake_av.error = fake_error_module  # type: ignore[attr-defined]

    def _open(*_args: object, **_kwargs: object) -> None:
        raise FakeAVError("container failure")

    fake_av.open = _open  # type: ignore[attr-defined]
    _install_fake_av(monkeypatch, fake_av)

    transcoder = PyAvTranscoder("mp3")
    with pytest.raises(TranscodeError) as excinfo:
        transcoder._transcode_sync(  # pyright: ignore[reportPrivateUsage]
            tmp_path / "in.m4a", tmp_path / "out.mp3"
        )

    message = str(excinfo.value)
    assert "Failed to open audio container" in message
    assert "FakeAVError" in message


@pytest.mark.asyncio
async def test_transcode_wraps_unexpected_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unexpected exceptions are wrapped with contextual information for diagnostics."""

    async def _to_thread(
        func: Callable[..., object],
        *args: object,
        **kwargs: object,
    ) -> object:  # pragma: no cover - test helper
        return func(*args, **kwargs)

    def _boom(self: PyAvTranscoder, source: Path, target: Path) -> Path:
        raise RuntimeError("decode explosion")

    _install_fake_av(monkeypatch, ModuleType("av"))
    monkeypatch.setattr(asyncio, "to_thread", _to_thread)
    monkeypatch.setattr(PyAvTranscoder, "_transcode_sync", _boom)

    transcoder = PyAvTranscoder("mp3")
    with pytest.raises(TranscodeError) as excinfo:
        await transcoder.transcode(Path("in.m4a"), Path("out.mp3"))

    message = str(excinfo.value)
    assert "RuntimeError" in message
    assert "decode explosion" in message


def test_probe_duration_reads_container_duration(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    """Container durations in microseconds are reported as seconds."""

    class FakeContainer:
        duration = 2_500_000
        streams: list[object] = []

        def __enter__(self) -> FakeContainer:
            return self

        def __exit__(self, *_args: object) -> None:
            return None

    fake_av = ModuleType("av")
    fake_av.open = lambda *_args, **_kwargs: FakeContainer()  # type: ignore[attr-defined]
    _install_fake_av(monkeypatch, fake_av)

    transcoder = PyAvTranscoder("mp3")
    probe = transcoder._probe_duration_sync  # pyright: ignore[reportPrivateUsage]
    duration = probe(tmp_path / "x.mp3")
    assert duration == pytest.approx(2.5)


def test_probe_duration_falls_back_to_stream(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    """Without a container duration the audio stream's time base is used."""
    stream = SimpleNamespace(type="audio", duration=16_000, time_base=Fraction(1, 8_000))

    class FakeContainer:
        duration = None
        streams = [SimpleNamespace(type="video"), stream]

        def __enter__(self) -> FakeContainer:
            return self

        def __exit__(self, *_args: object) -> None:
            return None

    fake_av = ModuleType("av")
    fake_av.open = lambda *_args, **_kwargs: FakeContainer()  # type: ignore[attr-defined]
    _install_fake_av(monkeypatch, fake_av)

    transcoder = PyAvTranscoder("mp3")
    probe = transcoder._probe_duration_sync  # pyright: ignore[reportPrivateUsage]
    duration = probe(tmp_path / "x.mp3")
    assert duration == pytest.approx(2.0)


def test_missing_audio_stream_is_reported(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Containers without audio cannot be converted."""

    class FakeContainer:
        streams = [SimpleNamespace(type="video")]

        def __enter__(self) -> FakeContainer:
            return self

        def __exit__(self, *_args: object) -> None:
            return None

    fake_av = ModuleType("av")
    fake_av.open = lambda *_args, **_kwargs: FakeContainer()  # type: ignore[attr-defined]
    _install_fake_av(monkeypatch, fake_av)

    transcoder = PyAvTranscoder("mp3")
    with pytest.raises(TranscodeError, match="No audio stream"):
        transcoder._transcode_sync(  # pyright: ignore[reportPrivateUsage]
            tmp_path / "in.m4a", tmp_path / "out.mp3"
        )


@pytest.mark.asyncio
async def test_passthrough_copies_source(tmp_path: Path) -> None:
    """The passthrough transcoder copies bytes unchanged and reports no duration."""
    source = tmp_path / "call.m4a"
    source.write_bytes(b"audio-bytes")
    target = tmp_path / "call.play.m4a"

    transcoder = PassthroughTranscoder()
    result = await transcoder.transcode(source, target)

    assert result == target
    assert target.read_bytes() == b"audio-bytes"
    assert await transcoder.probe_duration(target) is None


@pytest.mark.asyncio
async def test_passthrough_wraps_copy_errors(tmp_path: Path) -> None:
    """A missing source surfaces as TranscodeError."""
    transcoder = PassthroughTranscoder()
    with pytest.raises(TranscodeError):
        await transcoder.transcode(tmp_path / "missing.m4a", tmp_path / "out.m4a")
