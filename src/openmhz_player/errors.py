"""Exception hierarchy for the OpenMHz player."""

from __future__ import annotations


class OpenMHzError(Exception):
    """Base exception for all OpenMHz player errors."""


class TransportError(OpenMHzError):
    """Raised when an HTTP transport request cannot be completed."""


class ProxyError(TransportError):
    """Raised when the anti-bot proxy rejects or fails a request."""


class ProxyUnavailableError(ProxyError):
    """Raised when the anti-bot proxy cannot be reached at all."""


class ResponseParsingError(OpenMHzError):
    """Raised when an OpenMHz response cannot be parsed into typed models."""


class SystemSelectionError(OpenMHzError):
    """Raised when no system could be selected for playback."""


class PlaybackError(OpenMHzError):
    """Raised when a single call cannot be played."""


class AudioDownloadError(PlaybackError):
    """Raised when call audio cannot be retrieved."""


class TranscodeError(PlaybackError):
    """Raised when call audio cannot be converted into a playable format."""


class PlayerProcessError(PlaybackError):
    """Raised when the external audio player fails or is missing."""
