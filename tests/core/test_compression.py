"""Tests for gzip compression of temporary artifacts."""

from __future__ import annotations

import gzip
import io
import os
from pathlib import Path

import pytest

from sftpsync.core.compression import (
    CompressedArtifact,
    compress_file,
    compress_to_temp,
    decompress_file,
    decompress_stream,
)


class TestCompressToTemp:
    """Tests for compress_to_temp function."""

    def test_produces_valid_gzip(self, tmp_path: Path) -> None:
        """Should write gzip data that decompresses to the input."""
        data = b"hello world\n" * 500
        artifact = compress_to_temp(io.BytesIO(data), temp_dir=str(tmp_path))
        try:
            assert gzip.decompress(artifact.path.read_bytes()) == data
        finally:
            artifact.close()

    def test_size_matches_file(self, tmp_path: Path) -> None:
        """Should report the final artifact size including the trailer."""
        artifact = compress_to_temp(io.BytesIO(os.urandom(10_000)), temp_dir=str(tmp_path))
        try:
            assert artifact.size == artifact.path.stat().st_size
            assert artifact.size > 10_000 // 2
        finally:
            artifact.close()

    def test_empty_input(self, tmp_path: Path) -> None:
        """Should produce a valid non-empty artifact for empty input."""
        artifact = compress_to_temp(io.BytesIO(b""), temp_dir=str(tmp_path))
        try:
            assert artifact.size > 0
            assert gzip.decompress(artifact.path.read_bytes()) == b""
        finally:
            artifact.close()

    def test_deterministic(self, tmp_path: Path) -> None:
        """Should produce identical bytes for identical content."""
        data = b"same content" * 100
        first = compress_to_temp(io.BytesIO(data), temp_dir=str(tmp_path))
        second = compress_to_temp(io.BytesIO(data), temp_dir=str(tmp_path))
        try:
            assert first.path != second.path
            assert first.path.read_bytes() == second.path.read_bytes()
            assert first.size == second.size
        finally:
            first.close()
            second.close()

    def test_cleanup_on_error(self, tmp_path: Path) -> None:
        """Should delete the temporary file if compression fails."""

        class BrokenStream(io.RawIOBase):
            def readable(self) -> bool:
                return True

            def readinto(self, buffer) -> int:
                raise OSError("read failed")

        with pytest.raises(OSError, match="read failed"):
            compress_to_temp(BrokenStream(), temp_dir=str(tmp_path))
        assert list(tmp_path.iterdir()) == []


class TestCompressedArtifact:
    """Tests for CompressedArtifact class."""

    def test_close_removes_file(self, tmp_path: Path) -> None:
        """Should delete the artifact on close."""
        artifact = compress_to_temp(io.BytesIO(b"x"), temp_dir=str(tmp_path))
        artifact.close()
        assert not artifact.path.exists()

    def test_close_twice(self, tmp_path: Path) -> None:
        """Should tolerate closing an already removed artifact."""
        artifact = compress_to_temp(io.BytesIO(b"x"), temp_dir=str(tmp_path))
        artifact.close()
        artifact.close()

    def test_context_manager(self, tmp_path: Path) -> None:
        """Should remove the artifact when the block exits."""
        with compress_to_temp(io.BytesIO(b"x"), temp_dir=str(tmp_path)) as artifact:
            assert artifact.path.exists()
        assert not artifact.path.exists()

    def test_context_manager_on_exception(self, tmp_path: Path) -> None:
        """Should remove the artifact even if the block raises."""
        with pytest.raises(RuntimeError):
            with compress_to_temp(io.BytesIO(b"x"), temp_dir=str(tmp_path)) as artifact:
                raise RuntimeError("boom")
        assert not artifact.path.exists()


class TestCompressFile:
    """Tests for compress_file and decompression helpers."""

    def test_file_roundtrip(self, tmp_path: Path) -> None:
        """Should restore the original bytes."""
        source = tmp_path / "source.bin"
        source.write_bytes(os.urandom(4096))
        restored = tmp_path / "restored.bin"

        with compress_file(source, temp_dir=str(tmp_path)) as artifact:
            decompress_file(artifact.path, restored)

        assert restored.read_bytes() == source.read_bytes()

    def test_missing_source(self, tmp_path: Path) -> None:
        """Should raise FileNotFoundError without leaving a temp file."""
        work = tmp_path / "work"
        work.mkdir()
        with pytest.raises(FileNotFoundError):
            compress_file(tmp_path / "missing", temp_dir=str(work))
        assert list(work.iterdir()) == []

    def test_uses_temp_prefix(self, tmp_path: Path) -> None:
        """Should name temporary files with the sftpsync prefix."""
        source = tmp_path / "a.txt"
        source.write_text("a")
        with compress_file(source, temp_dir=str(tmp_path)) as artifact:
            assert artifact.path.name.startswith("sftpsync-")
            assert artifact.path.parent == tmp_path

    def test_decompress_stream(self, tmp_path: Path) -> None:
        """Should write decompressed content to the destination."""
        destination = decompress_stream(io.BytesIO(gzip.compress(b"payload")), tmp_path / "out")
        assert destination.read_bytes() == b"payload"

    def test_decompress_invalid_data(self, tmp_path: Path) -> None:
        """Should raise for data that is not gzip."""
        with pytest.raises(OSError):
            decompress_stream(io.BytesIO(b"not gzip"), tmp_path / "out")


def test_artifact_dataclass_fields(tmp_path: Path) -> None:
    """CompressedArtifact should expose path and size."""
    artifact = CompressedArtifact(path=tmp_path / "a.gz", size=3)
    assert artifact.size == 3
    artifact.close()
