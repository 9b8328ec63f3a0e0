"""Agent commands for the sftpsync CLI.

Commands:
- run: Start the sync agent loop, or a single cycle with --once
- decompress: Decompress a .gz artifact to a local file
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from pathlib import Path

import click

from sftpsync.client.cli.config import config_file_option
from sftpsync.client.keystore import KeyStoreError, load_credentials
from sftpsync.client.sync import (
    NullProgress,
    ProgressSink,
    StatusLineAwareHandler,
    StatusLineProgress,
    SyncOrchestrator,
)
from sftpsync.client.transport import make_session_factory
from sftpsync.core.compression import decompress_file
from sftpsync.core.config import (
    AgentSettings,
    ConfigError,
    SettingsProvider,
    get_log_file,
)
from sftpsync.core.types import SyncError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    log_path: Path | None,
    level: int = logging.INFO,
    console: logging.Handler | None = None,
) -> None:
    """Configure logging to output to both file and stdout.

    Args:
        log_path: Path to the log file (no file logging if None).
        level: Level of the sftpsync logger.
        console: Console handler to use instead of a plain stdout handler.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("sftpsync")
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.propagate = False

    stdout_handler = console or logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # paramiko logs every channel open at INFO
    logging.getLogger("paramiko").setLevel(logging.WARNING)


@click.command()
@click.option("--once", is_flag=True, help="Run a single sync cycle and exit.")
@click.option(
    "--interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Override the seconds between cycles.",
)
@click.option("--no-progress", is_flag=True, help="Disable the progress line.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@config_file_option
def run(
    once: bool,
    interval: float | None,
    no_progress: bool,
    verbose: bool,
    config_path: Path | None,
) -> None:
    """Mirror configured folders to configured targets.

    Runs a sync cycle, waits, and repeats until interrupted. The current
    cycle always finishes before the agent stops.
    """
    provider = SettingsProvider(config_path)

    progress: ProgressSink
    console: logging.Handler | None = None
    if no_progress:
        progress = NullProgress()
    else:
        status_line = StatusLineProgress()
        console = StatusLineAwareHandler(status_line)
        progress = status_line
    setup_logging(get_log_file(), logging.DEBUG if verbose else logging.INFO, console)

    try:
        settings = provider()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    try:
        private_key = load_credentials(settings.private_key_path)
    except KeyStoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    def current_settings() -> AgentSettings:
        current = provider()
        if interval is not None:
            current.interval_seconds = interval
        return current

    orchestrator = SyncOrchestrator(
        settings_provider=current_settings,
        session_factory=make_session_factory(
            private_key,
            known_hosts_policy=settings.known_hosts_policy,
            max_channels=settings.max_channels,
        ),
        progress=progress,
    )

    if once:
        try:
            result = orchestrator.run_cycle()
        except (ConfigError, SyncError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        click.echo(
            f"Uploaded {result.uploaded_count}, skipped {result.skipped_count}, "
            f"failed {result.failed_count} in {result.elapsed:.1f}s"
        )
        for error in result.errors:
            click.echo(f"  ✗ {error}", err=True)
        if result.has_errors:
            sys.exit(1)
        return

    stop = threading.Event()

    def request_stop(signum: int, frame: object) -> None:
        click.echo("\nStopping after the current cycle...")
        stop.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)
    orchestrator.run_forever(stop)


@click.command()
@click.argument("artifact", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("destination", type=click.Path(dir_okay=False, path_type=Path))
def decompress(artifact: Path, destination: Path) -> None:
    """Decompress a .gz artifact copied from a target."""
    try:
        decompress_file(artifact, destination)
    except (OSError, EOFError) as e:
        click.echo(f"Error: cannot decompress {artifact}: {e}", err=True)
        sys.exit(1)
    click.echo(f"Decompressed {artifact} to {destination}")
