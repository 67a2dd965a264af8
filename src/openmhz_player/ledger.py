"""Deduplication ledger tracking call identities already observed."""

from __future__ import annotations

from threading import Lock

from .models import CallId


class DedupLedger:
    """Thread-safe set of call identities that have been seen during this run.

    Entries are never removed; growth is bounded only by the length of the
    session.
    """

    def __init__(self) -> None:
        """Create an empty ledger."""
        self._seen: set[CallId] = set()
        self._lock = Lock()

    def has(self, call_id: CallId) -> bool:
        """Return ``True`` when *call_id* has already been marked."""
        with self._lock:
            return call_id in self._seen

    def mark_seen(self, call_id: CallId) -> bool:
        """Mark *call_id* as seen, returning ``True`` only if it was new."""
        with self._lock:
            if call_id in self._seen:
                return False
            self._seen.add(call_id)
            return True

    def __contains__(self, call_id: object) -> bool:
        with self._lock:
            return call_id in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)
