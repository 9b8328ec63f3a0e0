"""Sync engine for directory mirroring.

Architecture:
    SyncOrchestrator → build_snapshot → UploadScheduler → FileUploader
                                                        ├─ compress_file
                                                        ├─ FreshnessComparator
                                                        └─ ConnectionManager

Components:
- **SyncOrchestrator**: Runs cycles over folders and targets on an interval
- **UploadScheduler**: Fans a directory's files out to a bounded worker pool
- **FileUploader**: Per-file state machine (compress, compare, upload, retry)
- **FreshnessComparator**: Decides skip/upload from remote mtime and size
- **RetryPolicy**: Attempt cap and backoff schedule
"""

from sftpsync.client.sync.comparator import (
    ComparatorPolicy,
    FreshnessComparator,
    FreshnessDecision,
)
from sftpsync.client.sync.orchestrator import SyncOrchestrator
from sftpsync.client.sync.progress import (
    NullProgress,
    ProgressSink,
    StatusLineAwareHandler,
    StatusLineProgress,
)
from sftpsync.client.sync.retry import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_BACKOFF,
    RetryPolicy,
)
from sftpsync.client.sync.scheduler import ErrorPolicy, UploadScheduler, build_upload_units
from sftpsync.client.sync.uploader import FileUploader

__all__ = [
    # Comparator
    "ComparatorPolicy",
    "FreshnessComparator",
    "FreshnessDecision",
    # Orchestrator
    "SyncOrchestrator",
    # Progress
    "NullProgress",
    "ProgressSink",
    "StatusLineAwareHandler",
    "StatusLineProgress",
    # Retry
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_INITIAL_BACKOFF",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_MAX_BACKOFF",
    "RetryPolicy",
    # Scheduler
    "ErrorPolicy",
    "UploadScheduler",
    "build_upload_units",
    # Uploader
    "FileUploader",
]
