"""Fixed-capacity call queue with a drop-oldest insertion policy."""

from __future__ import annotations

import asyncio
import logging

from .models import Call, EnqueueOutcome, EnqueueResult

logger = logging.getLogger(__name__)


class BoundedCallQueue:
    """FIFO of pending calls that never blocks the producer.

    When the queue is full the oldest pending call is discarded to make room for
    the newest one, favouring freshness over completeness. Insertion performs no
    ``await`` so eviction and insertion are observed atomically by the consumer.
    """

    def __init__(self, capacity: int) -> None:
        """Create an empty queue holding at most *capacity* calls."""
        if capacity < 1:
            raise ValueError("Queue capacity must be at least 1")
        self._capacity = capacity
        self._queue: asyncio.Queue[Call] = asyncio.Queue(maxsize=capacity)

    @property
    def capacity(self) -> int:
        """Return the fixed maximum number of pending calls."""
        return self._capacity

    def qsize(self) -> int:
        """Return the number of pending calls."""
        return self._queue.qsize()

    def empty(self) -> bool:
        """Return ``True`` when no calls are pending."""
        return self._queue.empty()

    def full(self) -> bool:
        """Return ``True`` when the queue is at capacity."""
        return self._queue.full()

    def try_enqueue(self, call: Call) -> EnqueueResult:
        """Append *call*, evicting exactly the head first when the queue is full."""
        evicted: Call | None = None
        if self._queue.full():
            evicted = self._queue.get_nowait()
            logger.debug("Evicted call %s to admit call %s", evicted.call_id, call.call_id)
        self._queue.put_nowait(call)
        if evicted is None:
            return EnqueueResult(outcome=EnqueueOutcome.ENQUEUED)
        return EnqueueResult(outcome=EnqueueOutcome.EVICTED_AND_ENQUEUED, evicted=evicted)

    async def dequeue(self, shutdown: asyncio.Event) -> Call | None:
        """Wait for the next call, or return ``None`` once *shutdown* is set."""
        if shutdown.is_set():
            return None
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            pass

        getter = asyncio.ensure_future(self._queue.get())
        stopper = asyncio.ensure_future(shutdown.wait())
        try:
            done, _ = await asyncio.wait({getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (getter, stopper):
                if not task.done():
                    task.cancel()
        if stopper in done:
            # Any call the getter may have taken is abandoned with the rest of the queue.
            return None
        return getter.result()

    def drain_nowait(self) -> list[Call]:
        """Remove and return every pending call in FIFO order."""
        drained: list[Call] = []
        while True:
            try:
                drained.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return drained
