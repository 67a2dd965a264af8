"""Telemetry hook interfaces for structured logging and metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from .models import CallId, FetchMode


@dataclass(frozen=True, slots=True)
class TelemetrySignal:
    """Base class for telemetry signals."""

    emitted_at: datetime = field(init=False)

    def __post_init__(self) -> None:
        """Stamp the signal with the UTC time it was emitted."""
        object.__setattr__(self, "emitted_at", datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class TelemetryEvent(TelemetrySignal):
    """Represents a discrete telemetry event."""


@dataclass(frozen=True, slots=True)
class TelemetryMetric(TelemetrySignal):
    """Represents a telemetry metric sample."""


@dataclass(frozen=True, slots=True)
class FetchCycleMetrics(TelemetryMetric):
    """Metric payload emitted after completing a fetch cycle."""

    system: str
    mode: FetchMode
    listed: int
    enqueued: int
    evicted: int
    queue_depth: int


@dataclass(frozen=True, slots=True)
class FetchErrorEvent(TelemetryEvent):
    """Event emitted when a fetch cycle fails."""

    system: str
    attempt: int
    error_type: str
    message: str | None = None


@dataclass(frozen=True, slots=True)
class CallEvictedEvent(TelemetryEvent):
    """Event emitted when a pending call is dropped from a full queue."""

    call_id: CallId
    replaced_by: CallId
    capacity: int


@dataclass(frozen=True, slots=True)
class PlaybackErrorEvent(TelemetryEvent):
    """Event emitted when downloading, converting, or playing a call fails."""

    call_id: CallId
    error_type: str
    message: str | None = None


class TelemetrySink(Protocol):
    """Protocol for emitting structured telemetry signals."""

    def record_event(self, event: TelemetryEvent) -> None:  # pragma: no cover - protocol
        """Record a structured event for diagnostics."""
        ...

    def record_metric(self, metric: TelemetryMetric) -> None:  # pragma: no cover - protocol
        """Record a metric sample."""
        ...


class NullTelemetrySink(TelemetrySink):
    """Telemetry sink that drops all signals."""

    def record_event(self, event: TelemetryEvent) -> None:
        """Drop the event without side effects."""

    def record_metric(self, metric: TelemetryMetric) -> None:
        """Drop the metric without side effects."""
