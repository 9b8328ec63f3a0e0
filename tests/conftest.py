"""Shared fixtures: an in-memory SFTP remote and sessions bound to it."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from sftpsync.client.transport import (
    DirectoryStatus,
    RemoteNotFoundError,
    RemoteSession,
    RemoteStat,
    SessionClosedError,
    TransportError,
)
from sftpsync.core.config import SyncTarget


class FakeRemote:
    """In-memory remote filesystem shared by every session to one host.

    Attributes:
        files: Remote path -> (content, mtime).
        directories: Existing remote directories.
        upload_errors: Scripted failures, one popped per upload call, as
            (exception, breaks_session) pairs.
    """

    def __init__(self) -> None:
        self.files: dict[str, tuple[bytes, float]] = {}
        self.directories: set[str] = set()
        self.upload_errors: list[tuple[Exception, bool]] = []
        self.stat_error: Exception | None = None
        self.mkdir_failures: set[str] = set()
        self.connect_error: Exception | None = None
        self.upload_delay = 0.0
        self.connect_delay = 0.0
        self.upload_calls: list[str] = []
        self.sessions: list[FakeSession] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.lock = threading.Lock()

    @property
    def connect_count(self) -> int:
        """Number of sessions that connected successfully."""
        return sum(1 for s in self.sessions if s.connect_calls > 0)

    def fail_next_upload(self, error: Exception, breaks_session: bool = False) -> None:
        """Make the next upload call raise an error."""
        self.upload_errors.append((error, breaks_session))

    def put_file(self, remote_path: str, content: bytes, mtime: float) -> None:
        """Place a file on the remote side."""
        self.files[remote_path] = (content, mtime)
        parent = remote_path.rsplit("/", 1)[0]
        self.directories.add(parent)

    def factory(self, target: SyncTarget) -> RemoteSession:
        """Session factory bound to this remote."""
        session = FakeSession(self, target)
        with self.lock:
            self.sessions.append(session)
        return session


class FakeSession:
    """RemoteSession implementation backed by a FakeRemote."""

    def __init__(self, remote: FakeRemote, target: SyncTarget) -> None:
        self.remote = remote
        self.target = target
        self.connected = False
        self.connect_calls = 0
        self.closed = False

    @property
    def is_connected(self) -> bool:
        return self.connected

    def connect(self) -> None:
        if self.remote.connect_delay:
            time.sleep(self.remote.connect_delay)
        if self.remote.connect_error is not None:
            raise self.remote.connect_error
        self.connect_calls += 1
        self.connected = True

    def close(self) -> None:
        self.connected = False
        self.closed = True

    def _check_open(self) -> None:
        if not self.connected:
            raise SessionClosedError("The session is not open")

    def stat(self, remote_path: str) -> RemoteStat:
        self._check_open()
        if self.remote.stat_error is not None:
            raise self.remote.stat_error
        if remote_path in self.remote.directories:
            return RemoteStat(mtime=0.0, size=0, is_dir=True)
        if remote_path in self.remote.files:
            content, mtime = self.remote.files[remote_path]
            return RemoteStat(mtime=mtime, size=len(content))
        raise RemoteNotFoundError(remote_path)

    def make_directory(self, remote_path: str) -> DirectoryStatus:
        self._check_open()
        with self.remote.lock:
            if remote_path in self.remote.mkdir_failures:
                return DirectoryStatus.FAILED
            if remote_path in self.remote.directories:
                return DirectoryStatus.ALREADY_EXISTS
            self.remote.directories.add(remote_path)
            return DirectoryStatus.CREATED

    def upload(self, local_path: str, remote_path: str) -> None:
        self._check_open()
        with self.remote.lock:
            self.remote.upload_calls.append(remote_path)
            scripted = self.remote.upload_errors.pop(0) if self.remote.upload_errors else None
            self.remote.in_flight += 1
            self.remote.max_in_flight = max(self.remote.max_in_flight, self.remote.in_flight)
        try:
            if self.remote.upload_delay:
                time.sleep(self.remote.upload_delay)
            if scripted is not None:
                error, breaks_session = scripted
                if breaks_session:
                    self.connected = False
                raise error
            parent = remote_path.rsplit("/", 1)[0]
            if parent not in self.remote.directories:
                raise TransportError(f"No such directory: {parent}")
            content = Path(local_path).read_bytes()
            with self.remote.lock:
                self.remote.files[remote_path] = (content, time.time())
        finally:
            with self.remote.lock:
                self.remote.in_flight -= 1


class RecordingProgress:
    """Progress sink remembering every call."""

    def __init__(self) -> None:
        self.started: list[tuple[str, int]] = []
        self.advanced = 0
        self.finished = 0
        self._lock = threading.Lock()

    def start(self, description: str, total: int) -> None:
        self.started.append((description, total))

    def advance(self, count: int = 1) -> None:
        with self._lock:
            self.advanced += count

    def finish(self) -> None:
        self.finished += 1


@pytest.fixture(autouse=True)
def reset_sftpsync_logger() -> Iterator[None]:
    """Undo handler changes made by the CLI's logging setup."""
    yield
    sftpsync_logger = logging.getLogger("sftpsync")
    for handler in sftpsync_logger.handlers[:]:
        sftpsync_logger.removeHandler(handler)
        handler.close()
    sftpsync_logger.propagate = True
    sftpsync_logger.setLevel(logging.NOTSET)


@pytest.fixture
def remote() -> FakeRemote:
    """Empty in-memory remote."""
    return FakeRemote()


@pytest.fixture
def target() -> SyncTarget:
    """Target with an absolute base folder."""
    return SyncTarget(host="backup.example.com", user="sync", remote_base_folder="/base")


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[dict[str, bytes]], Path]:
    """Create a local tree from a {relative path: content} mapping."""

    def _make(files: dict[str, bytes], root_name: str = "root") -> Path:
        root = tmp_path / root_name
        root.mkdir(exist_ok=True)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return root

    return _make


@pytest.fixture
def recording_progress() -> RecordingProgress:
    """Progress sink recording calls."""
    return RecordingProgress()
