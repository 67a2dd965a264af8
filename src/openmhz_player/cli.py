"""Command-line interface for playing new OpenMHz calls as they arrive."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import traceback
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

from .api import OpenMHzClient
from .audio_downloader_http import HttpAudioDownloader
from .audio_playback import SubprocessAudioPlayer
from .audio_processing import AudioTranscoder, PassthroughTranscoder
from .audio_processing_pyav import PyAvTranscoder
from .config import AppConfig
from .errors import OpenMHzError, ProxyUnavailableError, SystemSelectionError
from .http import OpenMHzHttpClient
from .models import SystemSummary
from .pipeline import LocalAudioPipeline, prepare_download_dir
from .proxy import FlareSolverrProxy
from .session import PlaybackSession
from .shutdown import ShutdownCoordinator

LOG_LEVELS: Final[dict[str, int]] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

SYSTEM_PROMPT: Final[str] = "Enter the shortName of the system you want to use: "
PASSTHROUGH_FORMAT: Final[str] = "none"


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed command-line options for the OpenMHz player.

    ``None`` means "not given on the command line"; the environment or the
    configuration defaults apply instead.
    """

    short_name: str | None
    dotenv_path: Path | None
    log_level: int
    proxy_url: str | None = None
    poll_interval: float | None = None
    queue_size: int | None = None
    download_dir: Path | None = None
    grace_period: float | None = None


async def run_async(
    options: CliOptions, *, input_fn: Callable[[str], str] = input
) -> int:
    """Execute the CLI workflow and return the process exit code."""
    logger = _setup_logging(options.log_level)

    # Load .env early so subsequent resolution sees overrides.
    dotenv_file = (
        str(options.dotenv_path) if options.dotenv_path is not None else find_dotenv(usecwd=True)
    )
    if dotenv_file:
        load_dotenv(dotenv_file, override=True)
        logger.info("Loaded environment from %s (override=True)", dotenv_file)
    else:
        logger.debug("No .env file found; relying on process environment only")

    try:
        config = resolve_config(options)
    except (ValueError, ValidationError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    short_name = options.short_name or os.environ.get("OPENMHZ_SYSTEM") or None
    http = OpenMHzHttpClient(config.http)
    try:
        proxy = FlareSolverrProxy(http, config.proxy)
        if not await proxy.is_available():
            raise ProxyUnavailableError(
                "FlareSolverr is not running. Please start it before running this application."
            )
        prepare_download_dir(config.player.download_dir, reset=config.player.reset_download_dir)
        output = SubprocessAudioPlayer(config.player.player_command)
        output.ensure_available()
        playback = _build_pipeline(http, output, config)

        api = OpenMHzClient(proxy, config.api)
        if short_name is None:
            systems = await api.list_systems()
            short_name = await select_system(systems, input_fn=input_fn)
        logger.info("Using system: %s", short_name)

        coordinator = ShutdownCoordinator(grace_period=config.shutdown.grace_period)
        session = PlaybackSession(
            api,
            playback,
            config.fetcher,
            system=short_name,
            coordinator=coordinator,
        )
        coordinator.install_signal_handlers()
        try:
            summary = await session.run()
        finally:
            coordinator.remove_signal_handlers()
        logger.info(
            "Played %d call(s), %d failed, %d left unplayed",
            summary.player.played,
            summary.player.failed,
            summary.abandoned_calls,
        )
    except OpenMHzError as exc:
        logger.error("Startup failed: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        logger.error("Failed to prepare %s: %s", config.player.download_dir, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:  # pragma: no cover - defensive path
        logger.exception("Unexpected error in CLI execution")
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 1
    finally:
        await http.close()
    return 0


def resolve_config(options: CliOptions, *, env: dict[str, str] | None = None) -> AppConfig:
    """Resolve the environment configuration and apply command-line overrides."""
    config = AppConfig.from_environment(env=env)
    overrides: dict[str, dict[str, Any]] = {}
    if options.proxy_url is not None:
        overrides.setdefault("proxy", {})["url"] = options.proxy_url
    if options.poll_interval is not None:
        overrides.setdefault("fetcher", {})["poll_interval"] = options.poll_interval
    if options.queue_size is not None:
        overrides.setdefault("fetcher", {})["queue_capacity"] = options.queue_size
    if options.download_dir is not None:
        overrides.setdefault("player", {})["download_dir"] = options.download_dir
    if options.grace_period is not None:
        overrides.setdefault("shutdown", {})["grace_period"] = options.grace_period
    if not overrides:
        return config
    # Re-validate so command-line values obey the same constraints as the environment.
    merged = config.model_dump()
    for section, values in overrides.items():
        merged[section].update(values)
    return AppConfig.model_validate(merged)


async def select_system(
    systems: Sequence[SystemSummary], *, input_fn: Callable[[str], str] = input
) -> str:
    """List *systems* and prompt for the shortName to monitor."""
    logger = logging.getLogger(__name__)
    logger.info("Available systems:")
    for system in systems:
        logger.info("- %s (%s)", system.name, system.short_name)

    try:
        answer = await asyncio.to_thread(input_fn, SYSTEM_PROMPT)
    except EOFError as exc:
        raise SystemSelectionError("No system selected") from exc
    short_name = answer.strip()
    if not short_name:
        raise SystemSelectionError("No system selected")
    if systems and short_name not in {system.short_name for system in systems}:
        logger.warning("System %s was not in the systems listing; using it anyway", short_name)
    return short_name


def _build_pipeline(
    http: OpenMHzHttpClient, output: SubprocessAudioPlayer, config: AppConfig
) -> LocalAudioPipeline:
    output_format: str | None = config.player.output_format
    transcoder: AudioTranscoder
    if output_format == PASSTHROUGH_FORMAT:
        transcoder = PassthroughTranscoder()
        output_format = None
    else:
        transcoder = PyAvTranscoder(config.player.output_format)
    return LocalAudioPipeline(
        HttpAudioDownloader(http, show_progress=config.player.show_progress),
        transcoder,
        output,
        download_dir=config.player.download_dir,
        output_format=output_format,
    )


def _setup_logging(log_level: int) -> logging.Logger:
    """Configure logging and return the CLI logger.

    Reduces noise from network libraries at non-DEBUG levels.
    """
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    return logging.getLogger("openmhz_player.cli")


def parse_cli_args(argv: Sequence[str] | None = None) -> CliOptions:
    """Parse command-line arguments into :class:`CliOptions`."""
    parser = argparse.ArgumentParser(
        prog="openmhz_player",
        description="Play new OpenMHz calls for a system in order of arrival until interrupted.",
    )
    parser.add_argument(
        "--shortname",
        type=str,
        default=None,
        help="shortName of the system to monitor (skips the interactive prompt)",
    )
    parser.add_argument(
        "--dotenv",
        type=Path,
        default=None,
        help="Optional path to a .env file with OPENMHZ_* / FLARESOLVERR_* settings",
    )
    parser.add_argument(
        "--log-level",
        choices=tuple(LOG_LEVELS.keys()),
        default="INFO",
        help="Log level for diagnostic output",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Shortcut for --log-level DEBUG",
    )
    parser.add_argument(
        "--proxy-url",
        type=str,
        default=None,
        help="FlareSolverr command endpoint (default: http://localhost:8191/v1)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between call listing requests (default: 5)",
    )
    parser.add_argument(
        "--queue-size",
        type=int,
        default=None,
        help="Maximum pending calls before the oldest is dropped (default: 50)",
    )
    parser.add_argument(
        "--download-dir",
        type=Path,
        default=None,
        help="Scratch directory for downloaded audio (removed and recreated at startup)",
    )
    parser.add_argument(
        "--grace-period",
        type=float,
        default=None,
        help="Seconds in-flight work may continue after Ctrl+C (default: 2)",
    )

    namespace = parser.parse_args(argv)
    if namespace.poll_interval is not None and namespace.poll_interval <= 0:
        parser.error("--poll-interval must be positive")
    if namespace.queue_size is not None and namespace.queue_size < 1:
        parser.error("--queue-size must be at least 1")
    if namespace.grace_period is not None and namespace.grace_period < 0:
        parser.error("--grace-period must be zero or positive")

    short_name = namespace.shortname.strip() if namespace.shortname else None
    log_level = logging.DEBUG if namespace.debug else LOG_LEVELS[namespace.log_level]
    return CliOptions(
        short_name=short_name or None,
        dotenv_path=namespace.dotenv,
        log_level=log_level,
        proxy_url=namespace.proxy_url,
        poll_interval=namespace.poll_interval,
        queue_size=namespace.queue_size,
        download_dir=namespace.download_dir,
        grace_period=namespace.grace_period,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for the ``openmhz_player`` console script."""
    options = parse_cli_args(argv)
    try:
        exit_code = asyncio.run(run_async(options))
    except KeyboardInterrupt:
        exit_code = 130
    except Exception:  # noqa: BLE001
        traceback.print_exc(limit=1)
        exit_code = 1
    raise SystemExit(exit_code)
