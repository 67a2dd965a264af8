"""Call player that drains the queue and plays one call at a time."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from .call_queue import BoundedCallQueue
from .errors import PlaybackError
from .models import Call, CallId, PlayerRuntimeState
from .telemetry import NullTelemetrySink, PlaybackErrorEvent, TelemetrySink

logger = logging.getLogger(__name__)


class CallPlayback(Protocol):
    """Protocol describing end-to-end playback of a single call."""

    async def play(self, call: Call) -> None:  # pragma: no cover - protocol
        """Play *call* to completion, raising :class:`PlaybackError` on failure."""
        ...


class CallPlayer:
    """Consumes the call queue sequentially until shutdown is signalled."""

    def __init__(
        self,
        queue: BoundedCallQueue,
        playback: CallPlayback,
        *,
        shutdown: asyncio.Event,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        """Create a player reading from *queue* and delegating to *playback*."""
        self._queue = queue
        self._playback = playback
        self._shutdown = shutdown
        self._telemetry = telemetry or NullTelemetrySink()
        self._played = 0
        self._failed = 0
        self._in_flight: CallId | None = None

    @property
    def in_flight(self) -> CallId | None:
        """Return the identifier of the call currently playing, if any."""
        return self._in_flight

    async def run(self) -> None:
        """Play queued calls one after another until shutdown is signalled."""
        logger.info("Starting audio player")
        while True:
            call = await self._queue.dequeue(self._shutdown)
            if call is None:
                break
            await self.play_one(call)
        logger.info("Stopping audio player.")

    async def play_one(self, call: Call) -> bool:
        """Play *call*, returning ``False`` when playback failed."""
        logger.info("Processing call: %s", call.filename or call.call_id)
        self._in_flight = call.call_id
        try:
            await self._playback.play(call)
        except PlaybackError as exc:
            logger.error("Failed to play call %s: %s", call.call_id, exc)
            self._record_failure(call, exc)
            return False
        except Exception as exc:  # pragma: no cover - defensive path
            logger.exception("Unexpected failure while playing call %s", call.call_id)
            self._record_failure(call, exc)
            return False
        finally:
            self._in_flight = None
        self._played += 1
        logger.debug("Finished call %s", call.call_id)
        return True

    def snapshot(self) -> PlayerRuntimeState:
        """Return a runtime snapshot of the player state."""
        return PlayerRuntimeState(
            played=self._played,
            failed=self._failed,
            in_flight=self._in_flight,
            queue_depth=self._queue.qsize(),
        )

    def _record_failure(self, call: Call, exc: BaseException) -> None:
        self._failed += 1
        self._telemetry.record_event(
            PlaybackErrorEvent(
                call_id=call.call_id,
                error_type=exc.__class__.__name__,
                message=str(exc),
            )
        )
