"""Call fetcher that polls OpenMHz and feeds new calls into the playback queue."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from .api import CallLister
from .call_queue import BoundedCallQueue
from .config import FetcherConfig
from .errors import OpenMHzError
from .ledger import DedupLedger
from .models import Call, FetchCycleReport, FetcherRuntimeState, FetchMode
from .telemetry import (
    CallEvictedEvent,
    FetchCycleMetrics,
    FetchErrorEvent,
    NullTelemetrySink,
    TelemetrySink,
)

logger = logging.getLogger(__name__)


class CallFetcher:
    """Polls the call listing at a fixed interval and enqueues unseen calls.

    The first successful cycle primes the ledger: every call already listed at
    startup is marked as seen and never played. Later cycles enqueue only calls
    whose identity has not been seen before.
    """

    def __init__(
        self,
        lister: CallLister,
        ledger: DedupLedger,
        queue: BoundedCallQueue,
        config: FetcherConfig,
        *,
        system: str,
        shutdown: asyncio.Event,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        """Create a fetcher for *system* writing into *ledger* and *queue*."""
        self._lister = lister
        self._ledger = ledger
        self._queue = queue
        self._config = config
        self._system = system
        self._shutdown = shutdown
        self._telemetry = telemetry or NullTelemetrySink()
        self._mode = FetchMode.PRIMING
        self._cycles = 0
        self._consecutive_failures = 0
        self._last_cycle_at: datetime | None = None

    @property
    def mode(self) -> FetchMode:
        """Return the current state of the priming/steady-state machine."""
        return self._mode

    async def run(self) -> None:
        """Run fetch cycles at the configured interval until shutdown is signalled."""
        logger.info(
            "Starting call fetcher for system %s (interval %.1fs)",
            self._system,
            self._config.poll_interval,
        )
        while await self._wait_for_next_cycle():
            await self.run_cycle()
        logger.info("Stopping call fetcher.")

    async def run_cycle(self) -> FetchCycleReport:
        """Fetch the listing once and apply it to the ledger and queue."""
        mode = self._mode
        self._cycles += 1
        self._last_cycle_at = datetime.now(UTC)
        logger.debug("Fetching calls...")
        try:
            calls = list(await self._lister.list_calls(self._system))
        except OpenMHzError as exc:
            logger.error("Error fetching calls for system %s: %s", self._system, exc)
            return self._record_failure(mode, exc)
        except Exception as exc:  # pragma: no cover - defensive path
            logger.exception("Unexpected failure while fetching calls for %s", self._system)
            return self._record_failure(mode, exc)

        self._consecutive_failures = 0
        if mode is FetchMode.PRIMING:
            report = self._prime(calls)
            self._mode = FetchMode.STEADY
            logger.info(
                "Marked %d existing call(s) as processed; waiting for new calls on %s",
                report.listed,
                self._system,
            )
        else:
            report = self._enqueue_new(calls)

        self._telemetry.record_metric(
            FetchCycleMetrics(
                system=self._system,
                mode=mode,
                listed=report.listed,
                enqueued=report.enqueued,
                evicted=report.evicted,
                queue_depth=self._queue.qsize(),
            )
        )
        return report

    def snapshot(self) -> FetcherRuntimeState:
        """Return a runtime snapshot of the fetcher state."""
        return FetcherRuntimeState(
            system=self._system,
            mode=self._mode,
            cycles=self._cycles,
            consecutive_failures=self._consecutive_failures,
            seen_calls=len(self._ledger),
            queue_depth=self._queue.qsize(),
            last_cycle_at=self._last_cycle_at,
        )

    def _prime(self, calls: list[Call]) -> FetchCycleReport:
        for call in calls:
            self._ledger.mark_seen(call.call_id)
            logger.debug("Marked call ID %s as processed (initial run)", call.call_id)
        return FetchCycleReport(mode=FetchMode.PRIMING, listed=len(calls), skipped=len(calls))

    def _enqueue_new(self, calls: list[Call]) -> FetchCycleReport:
        enqueued = 0
        evicted = 0
        skipped = 0
        for call in calls:
            if not self._ledger.mark_seen(call.call_id):
                logger.debug("Call ID %s already processed", call.call_id)
                skipped += 1
                continue
            result = self._queue.try_enqueue(call)
            enqueued += 1
            if result.evicted is not None:
                evicted += 1
                logger.warning(
                    "Queue full, dropped oldest call %s to admit %s",
                    result.evicted.call_id,
                    call.call_id,
                )
                self._telemetry.record_event(
                    CallEvictedEvent(
                        call_id=result.evicted.call_id,
                        replaced_by=call.call_id,
                        capacity=self._queue.capacity,
                    )
                )
            else:
                logger.info("New call added to queue: %s", call.call_id)
        return FetchCycleReport(
            mode=FetchMode.STEADY,
            listed=len(calls),
            enqueued=enqueued,
            evicted=evicted,
            skipped=skipped,
        )

    def _record_failure(self, mode: FetchMode, exc: BaseException) -> FetchCycleReport:
        self._consecutive_failures += 1
        self._telemetry.record_event(
            FetchErrorEvent(
                system=self._system,
                attempt=self._consecutive_failures,
                error_type=exc.__class__.__name__,
                message=str(exc),
            )
        )
        return FetchCycleReport(mode=mode, failed=True)

    async def _wait_for_next_cycle(self) -> bool:
        """Sleep one interval; return ``False`` if shutdown was signalled instead."""
        if self._shutdown.is_set():
            return False
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=self._config.poll_interval)
        except TimeoutError:
            return not self._shutdown.is_set()
        return False
