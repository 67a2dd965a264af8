"""Audio output through an external command-line player."""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from .errors import PlayerProcessError

logger = logging.getLogger(__name__)


class AudioOutput(Protocol):
    """Protocol describing blocking playback of a local audio file."""

    async def play_file(self, path: Path) -> None:  # pragma: no cover - protocol
        """Play *path* to completion."""
        ...


class SubprocessAudioPlayer(AudioOutput):
    """Plays files by running a player command (``mpg123`` by default) per file."""

    def __init__(self, command: Sequence[str] = ("mpg123", "-q")) -> None:
        """Create a player that runs *command* with the file path appended."""
        if not command:
            raise ValueError("Player command must not be empty")
        self._command = tuple(command)

    @property
    def executable(self) -> str:
        """Return the program name of the player command."""
        return self._command[0]

    def ensure_available(self) -> str:
        """Return the resolved executable path or raise when it is not installed."""
        resolved = shutil.which(self.executable)
        if resolved is None:
            raise PlayerProcessError(f"Audio player '{self.executable}' was not found on PATH")
        return resolved

    async def play_file(self, path: Path) -> None:
        """Run the player for *path*, killing it if playback is cancelled."""
        argv = [*self._command, str(path)]
        logger.debug("Running player: %s", " ".join(argv))
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise PlayerProcessError(f"Failed to start {self.executable}: {exc}") from exc

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            logger.info("Playback of %s interrupted", path.name)
            raise

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip() if stderr else ""
            message = f"{self.executable} exited with status {process.returncode}"
            if detail:
                message = f"{message}: {detail.splitlines()[-1]}"
            raise PlayerProcessError(message)
