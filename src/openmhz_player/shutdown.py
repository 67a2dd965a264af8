"""Shutdown coordination shared by the fetcher and player loops."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Iterable

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Owns the one-shot shutdown signal and bounds how long shutdown may take."""

    def __init__(self, *, grace_period: float = 2.0) -> None:
        """Create a coordinator allowing *grace_period* seconds for in-flight work."""
        if grace_period < 0:
            raise ValueError("grace_period must be zero or positive")
        self._grace_period = grace_period
        self._event = asyncio.Event()
        self._registered: list[signal.Signals] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def event(self) -> asyncio.Event:
        """Return the signal observed by both loops."""
        return self._event

    @property
    def grace_period(self) -> float:
        """Return the grace period in seconds."""
        return self._grace_period

    def is_requested(self) -> bool:
        """Return ``True`` once shutdown has been requested."""
        return self._event.is_set()

    def request(self) -> bool:
        """Set the shutdown signal, returning ``True`` only for the first request."""
        if self._event.is_set():
            return False
        self._event.set()
        logger.info("Shutting down...")
        return True

    async def wait(self) -> None:
        """Wait until shutdown has been requested."""
        await self._event.wait()

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM on the running loop to :meth:`request`."""
        loop = asyncio.get_running_loop()
        self._loop = loop
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self.request)
            except (NotImplementedError, RuntimeError):
                continue
            self._registered.append(signum)

    def remove_signal_handlers(self) -> None:
        """Undo :meth:`install_signal_handlers`."""
        if self._loop is None:
            return
        for signum in self._registered:
            self._loop.remove_signal_handler(signum)
        self._registered.clear()
        self._loop = None

    async def drain(self, tasks: Iterable[asyncio.Task[None]]) -> set[asyncio.Task[None]]:
        """Give *tasks* the grace period to finish, then cancel and return the stragglers."""
        pending = {task for task in tasks if not task.done()}
        if pending:
            _, pending = await asyncio.wait(pending, timeout=self._grace_period)
        for task in pending:
            logger.warning(
                "Grace period of %.1fs elapsed; abandoning %s", self._grace_period, task.get_name()
            )
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return pending
