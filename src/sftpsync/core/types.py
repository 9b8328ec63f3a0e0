"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError, SnapshotError, UploadError, RemoteDirectoryError: Exception classes
- DirectorySnapshot: Immutable local directory tree
- UploadUnit: Per-file work item with its computed remote destination
- UploadState: States of the per-file upload machine
- UploadOutcome, DirectoryResult, CycleResult: Operation result dataclasses
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntEnum, auto

# Suffix appended to every remote artifact (the remote copy is gzip data)
COMPRESSED_SUFFIX = ".gz"


class SyncError(Exception):
    """Base exception for sync errors."""


class SnapshotError(SyncError):
    """Failed to enumerate a local directory tree."""


class RemoteDirectoryError(SyncError):
    """Failed to create a remote directory for a reason other than it existing."""


class UploadError(SyncError):
    """Failed to upload a file after exhausting all attempts.

    Attributes:
        unit: The upload unit that failed.
        attempts: Number of attempts made.
        result: Partial result of the directory the failure aborted, if any.
    """

    def __init__(self, unit: UploadUnit, attempts: int, cause: BaseException) -> None:
        self.unit = unit
        self.attempts = attempts
        self.result: DirectoryResult | None = None
        super().__init__(
            f"Failed to upload {unit.local_file} to {unit.remote_path} "
            f"into {unit.remote_folder} after {attempts} attempt(s): {cause}"
        )


@dataclass(frozen=True)
class DirectorySnapshot:
    """Immutable snapshot of a local directory.

    Attributes:
        path: Absolute path of the directory.
        files: Absolute paths of the direct child files.
        subdirectories: Snapshots of the direct child directories.
    """

    path: str
    files: tuple[str, ...] = ()
    subdirectories: tuple[DirectorySnapshot, ...] = ()

    def iter_files(self) -> Iterator[str]:
        """Yield every file in this tree, depth first."""
        yield from self.files
        for subdirectory in self.subdirectories:
            yield from subdirectory.iter_files()

    @property
    def file_count(self) -> int:
        """Total number of files in this tree."""
        return sum(1 for _ in self.iter_files())


@dataclass(frozen=True)
class UploadUnit:
    """A single local file scheduled for one target.

    Attributes:
        local_file: Absolute local path.
        relative_path: Path relative to the scheduled directory (forward slashes).
        remote_path: Full remote destination including the compression suffix.
    """

    local_file: str
    relative_path: str
    remote_path: str

    @property
    def remote_folder(self) -> str:
        """Remote parent directory of the destination."""
        return self.remote_path.rsplit("/", 1)[0] if "/" in self.remote_path else ""


class UploadState(IntEnum):
    """State of a single file's upload machine."""

    PENDING = auto()
    COMPRESSING = auto()
    COMPARING = auto()
    UPLOADING = auto()
    RETRYING = auto()
    SUCCEEDED = auto()
    SKIPPED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        """Check if no further transition can happen from this state."""
        return self in (UploadState.SUCCEEDED, UploadState.SKIPPED, UploadState.FAILED)


@dataclass
class UploadOutcome:
    """Result of processing one upload unit."""

    unit: UploadUnit
    state: UploadState
    attempts: int = 0
    reconnects: int = 0
    compressed_size: int = 0
    error: str | None = None


@dataclass
class DirectoryResult:
    """Result of scheduling one local directory against one target."""

    local_path: str
    remote_prefix: str
    uploaded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of files that reached a terminal state."""
        return len(self.uploaded) + len(self.skipped) + len(self.failed)

    def record(self, outcome: UploadOutcome) -> None:
        """Record a terminal outcome."""
        if outcome.state == UploadState.SUCCEEDED:
            self.uploaded.append(outcome.unit.local_file)
        elif outcome.state == UploadState.SKIPPED:
            self.skipped.append(outcome.unit.local_file)
        else:
            self.failed.append(outcome.unit.local_file)


@dataclass
class CycleResult:
    """Result of one full sync cycle over all folders and targets."""

    directories: list[DirectoryResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def uploaded_count(self) -> int:
        """Total files uploaded in this cycle."""
        return sum(len(d.uploaded) for d in self.directories)

    @property
    def skipped_count(self) -> int:
        """Total files skipped as fresh in this cycle."""
        return sum(len(d.skipped) for d in self.directories)

    @property
    def failed_count(self) -> int:
        """Total files that failed in this cycle."""
        return sum(len(d.failed) for d in self.directories)

    @property
    def has_errors(self) -> bool:
        """Check if any folder/target pair failed."""
        return len(self.errors) > 0 or self.failed_count > 0
