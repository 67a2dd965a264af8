"""Poll an OpenMHz system and play its new calls in order of arrival."""

from __future__ import annotations

from .api import CallLister, OpenMHzClient, SystemLister
from .call_queue import BoundedCallQueue
from .config import (
    ApiConfig,
    AppConfig,
    FetcherConfig,
    HttpClientConfig,
    PlayerConfig,
    ProxyConfig,
    ShutdownConfig,
)
from .errors import (
    AudioDownloadError,
    OpenMHzError,
    PlaybackError,
    PlayerProcessError,
    ProxyError,
    ProxyUnavailableError,
    ResponseParsingError,
    SystemSelectionError,
    TranscodeError,
    TransportError,
)
from .fetcher import CallFetcher
from .ledger import DedupLedger
from .models import (
    Call,
    CallId,
    EnqueueOutcome,
    EnqueueResult,
    FetchCycleReport,
    FetcherRuntimeState,
    FetchMode,
    PlayerRuntimeState,
    SystemSummary,
)
from .pipeline import LocalAudioPipeline
from .player import CallPlayback, CallPlayer
from .proxy import FlareSolverrProxy
from .session import PlaybackSession, SessionSummary
from .shutdown import ShutdownCoordinator

__all__ = [
    "ApiConfig",
    "AppConfig",
    "AudioDownloadError",
    "BoundedCallQueue",
    "Call",
    "CallFetcher",
    "CallId",
    "CallLister",
    "CallPlayback",
    "CallPlayer",
    "DedupLedger",
    "EnqueueOutcome",
    "EnqueueResult",
    "FetchCycleReport",
    "FetchMode",
    "FetcherConfig",
    "FetcherRuntimeState",
    "FlareSolverrProxy",
    "HttpClientConfig",
    "LocalAudioPipeline",
    "OpenMHzClient",
    "OpenMHzError",
    "PlaybackError",
    "PlaybackSession",
    "PlayerConfig",
    "PlayerProcessError",
    "PlayerRuntimeState",
    "ProxyConfig",
    "ProxyError",
    "ProxyUnavailableError",
    "ResponseParsingError",
    "SessionSummary",
    "ShutdownConfig",
    "ShutdownCoordinator",
    "SystemLister",
    "SystemSelectionError",
    "SystemSummary",
    "TranscodeError",
    "TransportError",
]
