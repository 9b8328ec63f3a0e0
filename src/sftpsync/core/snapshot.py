"""Local directory snapshotting.

Builds an immutable DirectorySnapshot of a directory tree. Snapshots are
rebuilt on every cycle and never cached.
"""

from __future__ import annotations

import logging
import os

from sftpsync.core.types import DirectorySnapshot, SnapshotError

logger = logging.getLogger(__name__)


def build_snapshot(folder_path: str | os.PathLike[str]) -> DirectorySnapshot:
    """Recursively snapshot a local directory.

    Entries are sorted by name so the snapshot is deterministic for a
    stable filesystem. Symbolic links to directories are not followed.

    Args:
        folder_path: Directory to snapshot.

    Returns:
        DirectorySnapshot of the tree rooted at folder_path.

    Raises:
        SnapshotError: If any directory in the tree cannot be enumerated.
    """
    path = os.path.abspath(os.fspath(folder_path))
    files: list[str] = []
    directories: list[str] = []

    try:
        with os.scandir(path) as entries:
            for entry in sorted(entries, key=lambda e: e.name):
                if entry.is_dir(follow_symlinks=False):
                    directories.append(entry.path)
                elif entry.is_file():
                    files.append(entry.path)
    except OSError as e:
        raise SnapshotError(f"Cannot enumerate {path}: {e}") from e

    return DirectorySnapshot(
        path=path,
        files=tuple(files),
        subdirectories=tuple(build_snapshot(d) for d in directories),
    )


def relative_name(base_path: str, directory_path: str) -> str:
    """Compute a directory's name relative to a base, with forward slashes.

    Returns:
        The relative path, or "" when both paths are the same directory.
    """
    relative = os.path.relpath(directory_path, base_path)
    if relative == os.curdir:
        return ""
    return relative.replace(os.sep, "/").replace("\\", "/").strip("/")
