"""Bounded-concurrency upload scheduling for one directory.

This module provides:
- ErrorPolicy: What a fatal file error does to its siblings
- build_upload_units: Map a local tree onto remote artifact paths
- UploadScheduler: Fans files out to a fixed-size worker pool
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from enum import Enum
from typing import TYPE_CHECKING

from sftpsync.client.sync.comparator import ComparatorPolicy, FreshnessComparator
from sftpsync.client.sync.progress import NullProgress, ProgressSink
from sftpsync.client.sync.retry import RetryPolicy
from sftpsync.client.sync.uploader import FileUploader
from sftpsync.client.transport import remote_join
from sftpsync.core.config import DEFAULT_MAX_WORKERS
from sftpsync.core.snapshot import build_snapshot
from sftpsync.core.types import (
    COMPRESSED_SUFFIX,
    DirectoryResult,
    DirectorySnapshot,
    UploadError,
    UploadOutcome,
    UploadUnit,
)

if TYPE_CHECKING:
    from sftpsync.client.connection import ConnectionManager
    from sftpsync.core.config import AgentSettings

logger = logging.getLogger(__name__)


class ErrorPolicy(str, Enum):
    """Handling of a file whose upload failed on every attempt."""

    ABORT_DIRECTORY = "abort_directory"
    """Stop scheduling the directory and propagate the error"""

    CONTINUE = "continue"
    """Record the failure and keep uploading sibling files"""


def build_upload_units(snapshot: DirectorySnapshot, remote_prefix: str) -> list[UploadUnit]:
    """Create one upload unit per file in a tree.

    Args:
        snapshot: Local tree to upload.
        remote_prefix: Remote directory mirroring snapshot.path.

    Returns:
        Upload units with remote paths "<prefix>/<relative path>.gz".
    """
    units = []
    for local_file in snapshot.iter_files():
        relative_path = os.path.relpath(local_file, snapshot.path).replace(os.sep, "/")
        units.append(
            UploadUnit(
                local_file=local_file,
                relative_path=relative_path,
                remote_path=remote_join(remote_prefix, relative_path) + COMPRESSED_SUFFIX,
            )
        )
    return units


class UploadScheduler:
    """Uploads every file of a directory with a bounded worker pool.

    Each worker takes one file end to end (compress, compare, upload) before
    picking up the next, so the pool width bounds open files and in-flight
    transfers regardless of directory size.

    Usage:
        scheduler = UploadScheduler(max_workers=20)
        result = scheduler.upload_directory("/data/projA", connection, "/backup/root/projA")
    """

    def __init__(
        self,
        comparator: FreshnessComparator | None = None,
        retry_policy: RetryPolicy | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        error_policy: ErrorPolicy = ErrorPolicy.ABORT_DIRECTORY,
        temp_dir: str | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            comparator: Freshness comparator shared by all workers.
            retry_policy: Per-file attempt cap and backoff.
            max_workers: Pool width.
            error_policy: Behaviour after a file fails for good.
            temp_dir: Directory for compressed artifacts.
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._comparator = comparator or FreshnessComparator()
        self._retry = retry_policy or RetryPolicy()
        self._max_workers = max_workers
        self._error_policy = error_policy
        self._temp_dir = temp_dir

    @classmethod
    def from_settings(cls, settings: AgentSettings, temp_dir: str | None = None) -> UploadScheduler:
        """Build a scheduler from agent settings."""
        return cls(
            comparator=FreshnessComparator(ComparatorPolicy(settings.comparator_policy)),
            retry_policy=RetryPolicy(
                max_attempts=settings.max_attempts,
                initial_backoff=settings.retry_backoff,
            ),
            max_workers=settings.max_workers,
            error_policy=ErrorPolicy(settings.error_policy),
            temp_dir=temp_dir,
        )

    @property
    def max_workers(self) -> int:
        """Pool width."""
        return self._max_workers

    def upload_directory(
        self,
        directory: DirectorySnapshot | str,
        connection: ConnectionManager,
        remote_prefix: str,
        progress: ProgressSink | None = None,
    ) -> DirectoryResult:
        """Ensure every file under a directory is fresh on the remote side.

        Args:
            directory: Snapshot or path of the local directory.
            connection: Connection manager for the target.
            remote_prefix: Remote directory mirroring the local one.
            progress: Optional progress sink.

        Returns:
            DirectoryResult listing uploaded, skipped and failed files.

        Raises:
            UploadError: On the first fatal file with ErrorPolicy.ABORT_DIRECTORY,
                carrying the partial DirectoryResult once in-flight files finish.
            RemoteDirectoryError: If the remote directory cannot be created.
        """
        snapshot = directory if isinstance(directory, DirectorySnapshot) else build_snapshot(directory)
        progress = progress or NullProgress()
        units = build_upload_units(snapshot, remote_prefix)
        result = DirectoryResult(local_path=snapshot.path, remote_prefix=remote_prefix)
        started = time.monotonic()

        logger.info(
            f"Uploading directory: {snapshot.path} to {connection.target.display_name} "
            f"({len(units)} files)"
        )
        connection.ensure_directory(remote_prefix)

        uploader = FileUploader(
            connection,
            comparator=self._comparator,
            retry_policy=self._retry,
            temp_dir=self._temp_dir,
        )

        progress.start("Uploading", len(units))
        aborted: UploadError | None = None
        executor = ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="sftpsync-upload",
        )
        try:
            futures: list[Future[UploadOutcome]] = [
                executor.submit(uploader.process, unit) for unit in units
            ]
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                try:
                    outcome = future.result()
                except UploadError as e:
                    result.failed.append(e.unit.local_file)
                    progress.advance()
                    if aborted is None and self._error_policy == ErrorPolicy.ABORT_DIRECTORY:
                        aborted = e
                        cancelled = sum(1 for f in futures if f.cancel())
                        logger.error(
                            f"Aborting {snapshot.path}: {cancelled} pending file(s) not attempted"
                        )
                    continue
                # In-flight uploads still count after an abort
                result.record(outcome)
                progress.advance()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
            progress.finish()

        logger.info(
            f"Finished {snapshot.path} in {time.monotonic() - started:.1f}s: "
            f"{len(result.uploaded)} uploaded, {len(result.skipped)} skipped, "
            f"{len(result.failed)} failed"
        )
        if aborted is not None:
            aborted.result = result
            raise aborted
        return result
