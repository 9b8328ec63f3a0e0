"""Core module - Configuration, snapshots, compression and shared types."""

from sftpsync.core.compression import (
    CompressedArtifact,
    compress_file,
    compress_to_temp,
    decompress_file,
    decompress_stream,
)
from sftpsync.core.config import (
    AgentSettings,
    ConfigError,
    FolderKind,
    SettingsProvider,
    SyncFolder,
    SyncTarget,
    load_settings,
    save_settings,
)
from sftpsync.core.snapshot import build_snapshot, relative_name
from sftpsync.core.types import (
    COMPRESSED_SUFFIX,
    CycleResult,
    DirectoryResult,
    DirectorySnapshot,
    RemoteDirectoryError,
    SnapshotError,
    SyncError,
    UploadError,
    UploadOutcome,
    UploadState,
    UploadUnit,
)

__all__ = [
    # Compression
    "CompressedArtifact",
    "compress_file",
    "compress_to_temp",
    "decompress_file",
    "decompress_stream",
    # Config
    "AgentSettings",
    "ConfigError",
    "FolderKind",
    "SettingsProvider",
    "SyncFolder",
    "SyncTarget",
    "load_settings",
    "save_settings",
    # Snapshot
    "build_snapshot",
    "relative_name",
    # Types
    "COMPRESSED_SUFFIX",
    "CycleResult",
    "DirectoryResult",
    "DirectorySnapshot",
    "RemoteDirectoryError",
    "SnapshotError",
    "SyncError",
    "UploadError",
    "UploadOutcome",
    "UploadState",
    "UploadUnit",
]
