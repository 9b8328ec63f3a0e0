"""Tests for the per-file upload state machine."""

from __future__ import annotations

import gzip
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from sftpsync.client.connection import ConnectionManager
from sftpsync.client.sync.comparator import ComparatorPolicy, FreshnessComparator
from sftpsync.client.sync.retry import RetryPolicy
from sftpsync.client.sync.uploader import FileUploader
from sftpsync.client.transport import SessionClosedError, TransportError
from sftpsync.core.compression import compress_file
from sftpsync.core.config import SyncTarget
from sftpsync.core.types import UploadError, UploadState, UploadUnit

from tests.conftest import FakeRemote

REMOTE_PATH = "/base/root/projA/file.txt.gz"


@pytest.fixture
def local_file(tmp_path: Path) -> Path:
    """Local file with some content."""
    path = tmp_path / "projA" / "file.txt"
    path.parent.mkdir()
    path.write_bytes(b"some file content\n" * 100)
    return path


@pytest.fixture
def unit(local_file: Path) -> UploadUnit:
    """Upload unit for the local file."""
    return UploadUnit(local_file=str(local_file), relative_path="file.txt", remote_path=REMOTE_PATH)


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Directory receiving compressed artifacts."""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def connection(remote: FakeRemote, target: SyncTarget):
    """Open connection manager bound to the fake remote."""
    with ConnectionManager(target, remote.factory) as manager:
        yield manager


@pytest.fixture
def uploader(connection: ConnectionManager, work_dir: Path) -> FileUploader:
    """Uploader without backoff delays."""
    return FileUploader(
        connection,
        retry_policy=RetryPolicy(initial_backoff=0),
        temp_dir=str(work_dir),
    )


def compressed_bytes(path: Path, work_dir: Path) -> bytes:
    """Compress a file the way the uploader does."""
    with compress_file(path, temp_dir=str(work_dir)) as artifact:
        return artifact.path.read_bytes()


class TestFileUploader:
    """Tests for FileUploader.process."""

    def test_uploads_missing_file(
        self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote, local_file: Path
    ) -> None:
        """Should compress and upload a file missing on the remote side."""
        outcome = uploader.process(unit)

        assert outcome.state == UploadState.SUCCEEDED
        assert outcome.attempts == 1
        assert outcome.reconnects == 0
        content, _ = remote.files[REMOTE_PATH]
        assert gzip.decompress(content) == local_file.read_bytes()
        assert outcome.compressed_size == len(content)

    def test_creates_remote_folder(self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote) -> None:
        """Should create the destination folder and its parents."""
        uploader.process(unit)
        assert "/base/root/projA" in remote.directories

    def test_skips_fresh_file(
        self,
        uploader: FileUploader,
        unit: UploadUnit,
        remote: FakeRemote,
        local_file: Path,
        work_dir: Path,
    ) -> None:
        """Should not upload when the remote copy is newer with the same size."""
        remote.put_file(REMOTE_PATH, compressed_bytes(local_file, work_dir), time.time() + 3600)

        outcome = uploader.process(unit)

        assert outcome.state == UploadState.SKIPPED
        assert outcome.attempts == 0
        assert remote.upload_calls == []

    def test_second_pass_is_noop(self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote) -> None:
        """Should skip a file uploaded by a previous pass."""
        uploader.process(unit)
        outcome = uploader.process(unit)
        assert outcome.state == UploadState.SKIPPED
        assert len(remote.upload_calls) == 1

    def test_reuploads_changed_file(
        self,
        uploader: FileUploader,
        unit: UploadUnit,
        remote: FakeRemote,
        local_file: Path,
    ) -> None:
        """Should upload again when the compressed size changes."""
        remote.put_file(REMOTE_PATH, b"old artifact", time.time() + 3600)
        outcome = uploader.process(unit)
        assert outcome.state == UploadState.SUCCEEDED
        assert gzip.decompress(remote.files[REMOTE_PATH][0]) == local_file.read_bytes()

    def test_session_closed_reconnects_once(
        self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote, connection: ConnectionManager
    ) -> None:
        """Should reconnect exactly once when two attempts hit a closed session."""
        remote.fail_next_upload(SessionClosedError("No such file"), breaks_session=True)
        remote.fail_next_upload(SessionClosedError("No such file"))

        outcome = uploader.process(unit)

        assert outcome.state == UploadState.SUCCEEDED
        assert outcome.attempts == 3
        assert outcome.reconnects == 1
        assert connection.reconnect_count == 1
        assert REMOTE_PATH in remote.files

    def test_closed_error_on_live_session_backs_off(
        self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote, connection: ConnectionManager
    ) -> None:
        """Should wait before retrying when the session turned out to be alive."""
        remote.fail_next_upload(SessionClosedError("Channel closed."))

        with patch.object(RetryPolicy, "wait") as wait:
            outcome = uploader.process(unit)

        assert outcome.state == UploadState.SUCCEEDED
        assert outcome.reconnects == 0
        assert connection.reconnect_count == 0
        wait.assert_called_once_with(1)

    def test_reconnect_skips_backoff(
        self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote
    ) -> None:
        """Should retry at once on the fresh session after reconnecting."""
        remote.fail_next_upload(SessionClosedError("Channel closed."), breaks_session=True)

        with patch.object(RetryPolicy, "wait") as wait:
            outcome = uploader.process(unit)

        assert outcome.reconnects == 1
        wait.assert_not_called()

    def test_transient_error_retried(self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote) -> None:
        """Should retry a generic transport error without reconnecting."""
        remote.fail_next_upload(TransportError("timeout"))

        outcome = uploader.process(unit)

        assert outcome.state == UploadState.SUCCEEDED
        assert outcome.attempts == 2
        assert outcome.reconnects == 0
        assert len(remote.sessions) == 1

    def test_gives_up_after_max_attempts(
        self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote
    ) -> None:
        """Should raise UploadError after three failed attempts."""
        for _ in range(3):
            remote.fail_next_upload(TransportError("disk full"))

        with pytest.raises(UploadError) as exc_info:
            uploader.process(unit)

        assert exc_info.value.attempts == 3
        assert exc_info.value.unit == unit
        assert len(remote.upload_calls) == 3
        message = str(exc_info.value)
        assert unit.local_file in message
        assert REMOTE_PATH in message
        assert "/base/root/projA" in message

    def test_failure_is_logged(
        self,
        uploader: FileUploader,
        unit: UploadUnit,
        remote: FakeRemote,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Should log the file, destination and folder on failure."""
        for _ in range(3):
            remote.fail_next_upload(TransportError("disk full"))

        with caplog.at_level("ERROR", logger="sftpsync"):
            with pytest.raises(UploadError):
                uploader.process(unit)

        assert any(
            unit.local_file in r.message and REMOTE_PATH in r.message for r in caplog.records
        )

    def test_custom_attempt_cap(
        self, connection: ConnectionManager, unit: UploadUnit, remote: FakeRemote, work_dir: Path
    ) -> None:
        """Should honour a configured attempt cap."""
        uploader = FileUploader(
            connection,
            retry_policy=RetryPolicy(max_attempts=1, initial_backoff=0),
            temp_dir=str(work_dir),
        )
        remote.fail_next_upload(TransportError("boom"))
        with pytest.raises(UploadError):
            uploader.process(unit)
        assert len(remote.upload_calls) == 1

    def test_fail_fast_comparator(
        self, connection: ConnectionManager, unit: UploadUnit, remote: FakeRemote, work_dir: Path
    ) -> None:
        """Should fail without uploading when metadata errors are fatal."""
        remote.stat_error = TransportError("stat failed")
        uploader = FileUploader(
            connection,
            comparator=FreshnessComparator(ComparatorPolicy.FAIL_FAST),
            retry_policy=RetryPolicy(initial_backoff=0),
            temp_dir=str(work_dir),
        )
        with pytest.raises(UploadError):
            uploader.process(unit)
        assert remote.upload_calls == []

    def test_fail_safe_comparator_uploads(
        self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote
    ) -> None:
        """Should upload when metadata errors are treated as stale."""
        remote.stat_error = TransportError("stat failed")
        outcome = uploader.process(unit)
        assert outcome.state == UploadState.SUCCEEDED

    def test_remote_directory_failure_not_retried(
        self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote
    ) -> None:
        """Should fail at once when the destination folder cannot be created."""
        remote.mkdir_failures.add("/base/root/projA")
        with pytest.raises(UploadError) as exc_info:
            uploader.process(unit)
        assert exc_info.value.attempts == 1
        assert remote.upload_calls == []

    def test_vanished_file_skipped(
        self, uploader: FileUploader, unit: UploadUnit, local_file: Path, remote: FakeRemote
    ) -> None:
        """Should skip a file deleted after the snapshot was taken."""
        local_file.unlink()
        outcome = uploader.process(unit)
        assert outcome.state == UploadState.SKIPPED
        assert remote.upload_calls == []

    def test_artifacts_removed(
        self, uploader: FileUploader, unit: UploadUnit, remote: FakeRemote, work_dir: Path
    ) -> None:
        """Should delete the temporary artifact on success and on failure."""
        uploader.process(unit)
        assert list(work_dir.iterdir()) == []

        remote.files.clear()
        for _ in range(3):
            remote.fail_next_upload(TransportError("boom"))
        with pytest.raises(UploadError):
            uploader.process(unit)
        assert list(work_dir.iterdir()) == []
