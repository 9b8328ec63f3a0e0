"""Top-level sync loop.

This module provides:
- SyncOrchestrator: Runs sync cycles over all folders and targets on an interval
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from sftpsync.client.connection import ConnectionManager
from sftpsync.client.sync.progress import NullProgress, ProgressSink
from sftpsync.client.sync.scheduler import UploadScheduler
from sftpsync.client.transport import TransportError, remote_join
from sftpsync.core.config import DEFAULT_INTERVAL_SECONDS, ConfigError, FolderKind
from sftpsync.core.snapshot import build_snapshot, relative_name
from sftpsync.core.types import CycleResult, SyncError, UploadError

if TYPE_CHECKING:
    from sftpsync.client.transport import SessionFactory
    from sftpsync.core.config import AgentSettings, SyncFolder, SyncTarget
    from sftpsync.core.types import DirectorySnapshot

logger = logging.getLogger(__name__)

SchedulerFactory = Callable[["AgentSettings"], UploadScheduler]


class SyncOrchestrator:
    """Mirrors every configured folder to every configured target.

    Settings are fetched at the top of each cycle, so configuration changes
    apply from the next cycle on. Folders and targets are processed one
    after the other; parallelism lives inside the upload scheduler.

    Usage:
        orchestrator = SyncOrchestrator(SettingsProvider(), session_factory)
        stop = threading.Event()
        orchestrator.run_forever(stop)
    """

    def __init__(
        self,
        settings_provider: Callable[[], AgentSettings],
        session_factory: SessionFactory,
        scheduler_factory: SchedulerFactory = UploadScheduler.from_settings,
        progress: ProgressSink | None = None,
        default_interval: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            settings_provider: Returns current settings; called once per cycle.
            session_factory: Builds an unconnected session for a target.
            scheduler_factory: Builds the upload scheduler for a cycle's settings.
            progress: Optional progress sink.
            default_interval: Delay used until settings have been loaded once.
        """
        self._settings_provider = settings_provider
        self._session_factory = session_factory
        self._scheduler_factory = scheduler_factory
        self._progress = progress or NullProgress()
        self._interval = default_interval
        self._cycles = 0

    @property
    def interval(self) -> float:
        """Delay between cycles, from the most recently loaded settings."""
        return self._interval

    @property
    def cycles(self) -> int:
        """Number of cycles started."""
        return self._cycles

    def run_cycle(self) -> CycleResult:
        """Run one full pass over all folders and targets.

        A failing folder/target pair is recorded in the result and the pass
        moves on to the next target.

        Returns:
            CycleResult for this pass.

        Raises:
            ConfigError: If the settings cannot be loaded.
            SnapshotError: If a local folder cannot be enumerated.
        """
        started = time.monotonic()
        self._cycles += 1
        settings = self._settings_provider()
        self._interval = settings.interval_seconds
        result = CycleResult()

        logger.info(
            f"Starting sync cycle {self._cycles}: {len(settings.folders)} folder(s), "
            f"{len(settings.targets)} target(s)"
        )
        scheduler = self._scheduler_factory(settings)

        for folder in settings.folders:
            if folder.kind != FolderKind.PROJECTS_ROOT:
                logger.debug(f"Skipping {folder.local_path}: kind {folder.kind.value} not synced")
                continue
            self._sync_projects_root(folder, settings.targets, scheduler, result)

        result.elapsed = time.monotonic() - started
        logger.info(
            f"Sync cycle {self._cycles} finished in {result.elapsed:.1f}s: "
            f"{result.uploaded_count} uploaded, {result.skipped_count} skipped, "
            f"{result.failed_count} failed, {len(result.errors)} error(s)"
        )
        return result

    def _sync_projects_root(
        self,
        folder: SyncFolder,
        targets: list[SyncTarget],
        scheduler: UploadScheduler,
        result: CycleResult,
    ) -> None:
        """Sync each project of a projects root to every target."""
        logger.info(f"Syncing projects root: {folder.local_path}")
        phase_start = time.monotonic()
        snapshot = build_snapshot(folder.local_path)
        logger.info(
            f"Snapshot of {folder.local_path}: {len(snapshot.subdirectories)} project(s), "
            f"{snapshot.file_count} file(s) in {time.monotonic() - phase_start:.2f}s"
        )

        for target in targets:
            target_start = time.monotonic()
            try:
                self._sync_target(folder, snapshot, target, scheduler, result)
            except (SyncError, TransportError) as e:
                logger.error(f"Sync of {folder.local_path} to {target.display_name} failed: {e}")
                result.errors.append(f"{folder.remote_name} -> {target.display_name}: {e}")
            logger.info(
                f"Target {target.display_name} done in {time.monotonic() - target_start:.1f}s"
            )

    def _sync_target(
        self,
        folder: SyncFolder,
        snapshot: DirectorySnapshot,
        target: SyncTarget,
        scheduler: UploadScheduler,
        result: CycleResult,
    ) -> None:
        """Sync every project of a snapshot to one target over one connection."""
        root = remote_join(target.remote_base_folder, folder.remote_name)
        with ConnectionManager(target, self._session_factory) as connection:
            connection.ensure_directory(root)
            for project in snapshot.subdirectories:
                name = relative_name(snapshot.path, project.path)
                remote_prefix = remote_join(root, name)
                try:
                    directory = scheduler.upload_directory(
                        project, connection, remote_prefix, self._progress
                    )
                except UploadError as e:
                    if e.result is not None:
                        result.directories.append(e.result)
                    raise
                result.directories.append(directory)

    def run_forever(self, stop_event: threading.Event | None = None) -> None:
        """Run cycles until the stop event is set.

        The current cycle always runs to completion; the wait between cycles
        ends as soon as the event is set. A failed cycle is logged and the
        next one still runs.

        Args:
            stop_event: Event signalling shutdown.
        """
        stop = stop_event or threading.Event()
        logger.info("Sync agent started")
        while not stop.is_set():
            try:
                self.run_cycle()
            except (ConfigError, SyncError) as e:
                logger.error(f"Sync cycle aborted: {e}")
            except Exception:
                logger.exception("Unexpected error during sync cycle")

            if stop.wait(self._interval):
                break
        logger.info("Sync agent stopped")
