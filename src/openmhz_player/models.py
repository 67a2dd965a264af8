"""Typed data models for OpenMHz systems, calls, and pipeline state."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType

CallId = str


def _empty_mapping() -> Mapping[str, object]:
    """Return an immutable empty mapping for default payload storage."""

    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class Call:
    """Represents one recorded transmission on an OpenMHz system.

    Equality and hashing consider ``call_id`` only, so two records carrying the
    same identity compare equal even when the remaining fields differ.
    """

    call_id: CallId
    url: str = field(default="", compare=False)
    filename: str = field(default="", compare=False)
    time: str = field(default="", compare=False)
    raw: Mapping[str, object] = field(default_factory=_empty_mapping, compare=False, repr=False)


@dataclass(frozen=True, slots=True)
class SystemSummary:
    """Summary information for an OpenMHz system (scanner feed)."""

    name: str
    short_name: str
    system_type: str | None = None
    city: str | None = None
    state: str | None = None
    active: bool = False
    last_active: str | None = None
    call_avg: float | None = None
    description: str | None = None


class FetchMode(str, Enum):
    """Mode of the call fetcher state machine."""

    PRIMING = "priming"
    STEADY = "steady"


class EnqueueOutcome(str, Enum):
    """Result of inserting a call into the bounded queue."""

    ENQUEUED = "enqueued"
    EVICTED_AND_ENQUEUED = "evicted_and_enqueued"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of :meth:`BoundedCallQueue.try_enqueue`."""

    outcome: EnqueueOutcome
    evicted: Call | None = None

    @property
    def evicted_oldest(self) -> bool:
        """Return ``True`` when the head of the queue was dropped."""
        return self.outcome is EnqueueOutcome.EVICTED_AND_ENQUEUED


@dataclass(frozen=True, slots=True)
class FetchCycleReport:
    """Summary of one fetch cycle."""

    mode: FetchMode
    listed: int = 0
    enqueued: int = 0
    evicted: int = 0
    skipped: int = 0
    failed: bool = False


@dataclass(frozen=True, slots=True)
class FetcherRuntimeState:
    """Runtime snapshot of the call fetcher."""

    system: str
    mode: FetchMode
    cycles: int
    consecutive_failures: int
    seen_calls: int
    queue_depth: int
    last_cycle_at: datetime | None


@dataclass(frozen=True, slots=True)
class PlayerRuntimeState:
    """Runtime snapshot of the call player."""

    played: int
    failed: int
    in_flight: CallId | None
    queue_depth: int
