"""Gzip compression of files into temporary artifacts.

This module provides:
- compress_to_temp: Compress a stream into a new temporary file
- compress_file: Convenience wrapper taking a path
- decompress_stream / decompress_file: Inverse of compression
- CompressedArtifact: Temporary artifact handle, removed on close

Each file gets its own artifact and its own temporary file. The gzip header
carries no file name and a zero timestamp, so the same content always
compresses to the same bytes and the same size.
"""

from __future__ import annotations

import contextlib
import gzip
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024
COMPRESSION_LEVEL = 6
TEMP_PREFIX = "sftpsync-"


@dataclass
class CompressedArtifact:
    """A compressed temporary file owned by a single caller.

    Attributes:
        path: Path of the temporary artifact.
        size: Byte length of the artifact, measured after the gzip trailer.
    """

    path: Path
    size: int

    def close(self) -> None:
        """Delete the temporary artifact."""
        with contextlib.suppress(FileNotFoundError):
            self.path.unlink()

    def __enter__(self) -> CompressedArtifact:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def compress_to_temp(source: BinaryIO, temp_dir: str | None = None) -> CompressedArtifact:
    """Stream a source through gzip into a new temporary file.

    Args:
        source: Readable binary stream.
        temp_dir: Directory for the temporary file (system default if None).

    Returns:
        CompressedArtifact whose size is read after the stream is closed.
    """
    fd, name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=".gz", dir=temp_dir)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as raw:
            with gzip.GzipFile(
                filename="",
                mode="wb",
                fileobj=raw,
                compresslevel=COMPRESSION_LEVEL,
                mtime=0,
            ) as compressor:
                shutil.copyfileobj(source, compressor, COPY_BUFFER_SIZE)
            raw.flush()
        # Trailer is written once GzipFile closes, size is final only now
        return CompressedArtifact(path=path, size=path.stat().st_size)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            path.unlink()
        raise


def compress_file(source_path: str | os.PathLike[str], temp_dir: str | None = None) -> CompressedArtifact:
    """Compress a local file into a temporary artifact."""
    with open(source_path, "rb") as source:
        return compress_to_temp(source, temp_dir=temp_dir)


def decompress_stream(artifact: BinaryIO, destination: str | os.PathLike[str]) -> Path:
    """Decompress a gzip stream into a destination file.

    Args:
        artifact: Readable binary stream of gzip data.
        destination: File to create or overwrite.

    Returns:
        Path of the written destination.
    """
    destination_path = Path(destination)
    with gzip.GzipFile(fileobj=artifact, mode="rb") as decompressor:
        with open(destination_path, "wb") as output:
            shutil.copyfileobj(decompressor, output, COPY_BUFFER_SIZE)
    return destination_path


def decompress_file(
    artifact_path: str | os.PathLike[str], destination: str | os.PathLike[str]
) -> Path:
    """Decompress an artifact file into a destination file."""
    with open(artifact_path, "rb") as artifact:
        return decompress_stream(artifact, destination)
