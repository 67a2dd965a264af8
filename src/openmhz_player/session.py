"""Wiring for a single polling-and-playback session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .api import CallLister
from .call_queue import BoundedCallQueue
from .config import FetcherConfig
from .fetcher import CallFetcher
from .ledger import DedupLedger
from .models import FetcherRuntimeState, PlayerRuntimeState
from .player import CallPlayback, CallPlayer
from .shutdown import ShutdownCoordinator
from .telemetry import NullTelemetrySink, TelemetrySink

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionSummary:
    """Final counters reported when a session ends."""

    fetcher: FetcherRuntimeState
    player: PlayerRuntimeState
    abandoned_calls: int
    cancelled_tasks: int


class PlaybackSession:
    """Runs the fetcher and player concurrently until shutdown is requested."""

    def __init__(
        self,
        lister: CallLister,
        playback: CallPlayback,
        config: FetcherConfig,
        *,
        system: str,
        coordinator: ShutdownCoordinator,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        """Create the shared ledger and queue and both loops for *system*."""
        sink = telemetry or NullTelemetrySink()
        self._coordinator = coordinator
        self._ledger = DedupLedger()
        self._queue = BoundedCallQueue(config.queue_capacity)
        self._fetcher = CallFetcher(
            lister,
            self._ledger,
            self._queue,
            config,
            system=system,
            shutdown=coordinator.event,
            telemetry=sink,
        )
        self._player = CallPlayer(
            self._queue,
            playback,
            shutdown=coordinator.event,
            telemetry=sink,
        )

    @property
    def fetcher(self) -> CallFetcher:
        """Return the session's call fetcher."""
        return self._fetcher

    @property
    def player(self) -> CallPlayer:
        """Return the session's call player."""
        return self._player

    @property
    def queue(self) -> BoundedCallQueue:
        """Return the queue shared by both loops."""
        return self._queue

    async def run(self) -> SessionSummary:
        """Run both loops, returning once shutdown has completed."""
        tasks = [
            asyncio.create_task(self._fetcher.run(), name="call-fetcher"),
            asyncio.create_task(self._player.run(), name="call-player"),
        ]
        stopper = asyncio.create_task(self._coordinator.wait(), name="shutdown-wait")
        try:
            done, _ = await asyncio.wait(
                {stopper, *tasks}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in tasks:
                if task in done:
                    self._report_early_exit(task)
            self._coordinator.request()
        finally:
            stopper.cancel()
            cancelled = await self._coordinator.drain(tasks)

        abandoned = self._queue.drain_nowait()
        if abandoned:
            logger.info("Discarding %d queued call(s) that were not played", len(abandoned))
        return SessionSummary(
            fetcher=self._fetcher.snapshot(),
            player=self._player.snapshot(),
            abandoned_calls=len(abandoned),
            cancelled_tasks=len(cancelled),
        )

    def _report_early_exit(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            logger.warning("%s was cancelled unexpectedly", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s stopped with an error: %s", task.get_name(), exc, exc_info=exc)
        else:
            logger.warning("%s stopped before shutdown was requested", task.get_name())
