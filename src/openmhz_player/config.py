"""Configuration schemas for the OpenMHz player."""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    field_validator,
)


class HttpClientConfig(BaseModel):
    """HTTP client tuning parameters for proxy and media requests."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (X11; Linux x86_64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
        ),
        description="User agent presented when downloading call audio",
    )
    timeout_seconds: PositiveFloat = Field(
        default=75.0,
        description=(
            "Per-request timeout in seconds. Must exceed the proxy's own challenge timeout."
        ),
    )
    max_connections: NonNegativeInt = Field(
        default=10, description="Maximum concurrent HTTP connections"
    )
    enable_http2: bool = Field(
        default=True, description="Whether HTTP/2 should be attempted when available"
    )


class ProxyConfig(BaseModel):
    """Settings for the FlareSolverr anti-bot proxy."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    url: HttpUrl = Field(
        default=HttpUrl("http://localhost:8191/v1"),
        description="FlareSolverr command endpoint",
    )
    max_timeout_ms: PositiveInt = Field(
        default=60000,
        description="Maximum time FlareSolverr may spend solving a challenge (milliseconds)",
    )

    @property
    def health_url(self) -> str:
        """Return the proxy root URL probed by the startup health check."""
        scheme = self.url.scheme
        host = self.url.host or "localhost"
        port = f":{self.url.port}" if self.url.port else ""
        return f"{scheme}://{host}{port}/"


class ApiConfig(BaseModel):
    """Location of the OpenMHz REST API."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: HttpUrl = Field(
        default=HttpUrl("https://api.openmhz.com"),
        description="Root URL for OpenMHz API endpoints",
    )

    def systems_url(self) -> str:
        """Return the URL listing every known system."""
        return f"{str(self.base_url).rstrip('/')}/systems"

    def calls_url(self, short_name: str) -> str:
        """Return the URL listing recent calls for *short_name*."""
        return f"{str(self.base_url).rstrip('/')}/{short_name}/calls"


class FetcherConfig(BaseModel):
    """Runtime tuning parameters for the call fetcher."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    poll_interval: PositiveFloat = Field(
        default=5.0,
        description="Fixed interval in seconds between call listing requests",
    )
    queue_capacity: PositiveInt = Field(
        default=50,
        description="Maximum pending calls before the oldest is dropped",
    )


class PlayerConfig(BaseModel):
    """Settings for downloading, converting, and playing call audio."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    download_dir: Path = Field(
        default=Path("OpenMHzPi-downloads"),
        description="Scratch directory for downloaded and converted audio",
    )
    reset_download_dir: bool = Field(
        default=True,
        description="Remove and recreate the download directory at startup",
    )
    output_format: str = Field(
        default="mp3",
        min_length=1,
        description="Container/codec the audio is converted to before playback",
    )
    player_command: tuple[str, ...] = Field(
        default=("mpg123", "-q"),
        min_length=1,
        description="Command used to play a converted file; the path is appended",
    )
    show_progress: bool = Field(
        default=True,
        description="Render a progress bar while downloading call audio",
    )

    @field_validator("output_format")
    @classmethod
    def _normalise_format(cls, value: str) -> str:
        return value.strip().lstrip(".").lower()


class ShutdownConfig(BaseModel):
    """Shutdown coordination settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    grace_period: NonNegativeFloat = Field(
        default=2.0,
        description="Seconds in-flight work may continue after an interrupt",
    )


_FALSE_STRINGS: frozenset[str] = frozenset({"0", "false", "no", "off"})


def _parse_bool_flag(raw: str) -> bool:
    """Interpret configuration flags accepting common "disabled" spellings."""
    return raw.strip().lower() not in _FALSE_STRINGS


class AppConfig(BaseModel):
    """Aggregate configuration for the player process."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    http: HttpClientConfig = Field(default_factory=HttpClientConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    player: PlayerConfig = Field(default_factory=PlayerConfig)
    shutdown: ShutdownConfig = Field(default_factory=ShutdownConfig)

    @classmethod
    def from_environment(cls, *, env: Mapping[str, str] | None = None) -> AppConfig:
        """Construct a configuration from environment variables.

        Recognised variables:
            - ``OPENMHZ_API_URL`` overrides the API root URL
            - ``FLARESOLVERR_URL`` overrides the proxy command endpoint
            - ``FLARESOLVERR_MAX_TIMEOUT_MS`` overrides the proxy challenge timeout (integer)
            - ``OPENMHZ_POLL_INTERVAL`` overrides the fetch interval (float seconds)
            - ``OPENMHZ_QUEUE_SIZE`` overrides the queue capacity (integer)
            - ``OPENMHZ_DOWNLOAD_DIR`` overrides the scratch directory
            - ``OPENMHZ_PLAYER_COMMAND`` overrides the player command (shell-style string)
            - ``OPENMHZ_OUTPUT_FORMAT`` overrides the conversion target format
            - ``OPENMHZ_SHOW_PROGRESS`` toggles the download progress bar (bool)
            - ``OPENMHZ_SHUTDOWN_GRACE`` overrides the shutdown grace period (float seconds)
        """
        source = dict(os.environ if env is None else env)
        sections: dict[str, dict[str, Any]] = {
            "api": {},
            "proxy": {},
            "fetcher": {},
            "player": {},
            "shutdown": {},
        }

        string_overrides: dict[str, tuple[str, str]] = {
            "OPENMHZ_API_URL": ("api", "base_url"),
            "FLARESOLVERR_URL": ("proxy", "url"),
            "OPENMHZ_OUTPUT_FORMAT": ("player", "output_format"),
        }
        for env_key, (section, field) in string_overrides.items():
            raw = source.get(env_key)
            if raw:
                sections[section][field] = raw

        float_overrides: dict[str, tuple[str, str]] = {
            "OPENMHZ_POLL_INTERVAL": ("fetcher", "poll_interval"),
            "OPENMHZ_SHUTDOWN_GRACE": ("shutdown", "grace_period"),
        }
        for env_key, (section, field) in float_overrides.items():
            raw = source.get(env_key)
            if raw is None:
                continue
            try:
                sections[section][field] = float(raw)
            except ValueError as exc:
                raise ValueError(f"{env_key} must be a floating point value") from exc

        int_overrides: dict[str, tuple[str, str]] = {
            "FLARESOLVERR_MAX_TIMEOUT_MS": ("proxy", "max_timeout_ms"),
            "OPENMHZ_QUEUE_SIZE": ("fetcher", "queue_capacity"),
        }
        for env_key, (section, field) in int_overrides.items():
            raw = source.get(env_key)
            if raw is None:
                continue
            try:
                sections[section][field] = int(raw)
            except ValueError as exc:
                raise ValueError(f"{env_key} must be an integer") from exc

        download_dir = source.get("OPENMHZ_DOWNLOAD_DIR")
        if download_dir:
            sections["player"]["download_dir"] = Path(download_dir).expanduser()

        player_command = source.get("OPENMHZ_PLAYER_COMMAND")
        if player_command is not None:
            parts = tuple(shlex.split(player_command))
            if not parts:
                raise ValueError("OPENMHZ_PLAYER_COMMAND must not be empty")
            sections["player"]["player_command"] = parts

        show_progress = source.get("OPENMHZ_SHOW_PROGRESS")
        if show_progress is not None:
            sections["player"]["show_progress"] = _parse_bool_flag(show_progress)

        return cls(
            api=ApiConfig(**sections["api"]),
            proxy=ProxyConfig(**sections["proxy"]),
            fetcher=FetcherConfig(**sections["fetcher"]),
            player=PlayerConfig(**sections["player"]),
            shutdown=ShutdownConfig(**sections["shutdown"]),
        )
