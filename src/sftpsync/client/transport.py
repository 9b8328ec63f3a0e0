"""SFTP transport for sftpsync.

This module provides:
- RemoteSession: Protocol every session implementation satisfies
- SftpSession: paramiko-backed session to one target
- TransportError, SessionClosedError, RemoteNotFoundError: Error classification
- classify_error: Map library exceptions onto the classification
- DirectoryStatus: Tagged result of a remote mkdir
- remote_join: Build remote paths with forward slashes

Workers never inspect error messages: the session converts every paramiko
or socket failure into one of the classified exceptions above.
"""

from __future__ import annotations

import contextlib
import errno
import logging
import socket
import stat as stat_module
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Protocol

import paramiko

from sftpsync.core.config import DEFAULT_MAX_CHANNELS

if TYPE_CHECKING:
    from sftpsync.core.config import SyncTarget

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 30.0


class TransportError(Exception):
    """Transient failure talking to a remote host."""


class SessionClosedError(TransportError):
    """The session is not open or the client can no longer be used."""


class RemoteNotFoundError(TransportError):
    """The remote path does not exist."""


class ConnectError(TransportError):
    """Could not establish a session."""


class DirectoryStatus(Enum):
    """Outcome of a remote directory creation."""

    CREATED = auto()
    ALREADY_EXISTS = auto()
    FAILED = auto()


@dataclass(frozen=True)
class RemoteStat:
    """Remote file metadata.

    Attributes:
        mtime: Modification time (Unix timestamp).
        size: Size in bytes.
        is_dir: Whether the path is a directory.
    """

    mtime: float
    size: int
    is_dir: bool = False


class RemoteSession(Protocol):
    """Operations the sync core needs from a live remote session."""

    @property
    def is_connected(self) -> bool: ...

    def connect(self) -> None: ...

    def close(self) -> None: ...

    def stat(self, remote_path: str) -> RemoteStat: ...

    def make_directory(self, remote_path: str) -> DirectoryStatus: ...

    def upload(self, local_path: str, remote_path: str) -> None: ...


# Factory building an unconnected session for a target
SessionFactory = Callable[["SyncTarget"], RemoteSession]


def classify_error(exc: BaseException) -> TransportError:
    """Classify a library exception.

    Args:
        exc: Exception raised by paramiko or the socket layer.

    Returns:
        The matching TransportError subclass instance.
    """
    if isinstance(exc, TransportError):
        return exc
    if isinstance(exc, FileNotFoundError) or (
        isinstance(exc, OSError) and exc.errno == errno.ENOENT
    ):
        return RemoteNotFoundError(str(exc))
    # A refused channel leaves the transport usable
    if isinstance(exc, paramiko.ChannelException):
        return TransportError(f"Channel refused: {exc}")
    if isinstance(exc, (paramiko.SSHException, EOFError, ConnectionError)):
        return SessionClosedError(str(exc) or type(exc).__name__)
    if isinstance(exc, (socket.timeout, TimeoutError)):
        return TransportError(f"Timed out: {exc}")
    if isinstance(exc, OSError) and exc.errno in (errno.EPIPE, errno.ECONNRESET, errno.ENOTCONN):
        return SessionClosedError(str(exc))
    return TransportError(str(exc) or type(exc).__name__)


class SftpSession:
    """SFTP session to one target over a single SSH transport.

    SFTP channels are pooled on the shared transport. A worker borrows one
    channel for the length of one operation, so no two threads ever share a
    channel, and at most max_channels are open at any time. Workers beyond
    that wait for a channel to be returned.

    Usage:
        session = SftpSession(target, private_key)
        session.connect()
        session.upload("/tmp/a.gz", "/backup/a.txt.gz")
        session.close()
    """

    def __init__(
        self,
        target: SyncTarget,
        private_key: paramiko.PKey,
        known_hosts_policy: str = "auto_add",
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
        max_channels: int = DEFAULT_MAX_CHANNELS,
    ) -> None:
        """Initialize the session (not connected).

        Args:
            target: Remote destination.
            private_key: Loaded private key used for authentication.
            known_hosts_policy: "auto_add" to accept unknown host keys, "reject" otherwise.
            timeout: Connect timeout in seconds.
            max_channels: SFTP channels open at once; keep below the server's MaxSessions.
        """
        if max_channels < 1:
            raise ValueError("max_channels must be at least 1")
        self._target = target
        self._key = private_key
        self._known_hosts_policy = known_hosts_policy
        self._timeout = timeout
        self._max_channels = max_channels
        self._client: paramiko.SSHClient | None = None
        self._channel_slots = threading.BoundedSemaphore(max_channels)
        self._lock = threading.Lock()
        self._idle: list[paramiko.SFTPClient] = []
        self._channels: set[paramiko.SFTPClient] = set()

    @property
    def target(self) -> SyncTarget:
        """Target this session connects to."""
        return self._target

    @property
    def max_channels(self) -> int:
        """Upper bound on open SFTP channels."""
        return self._max_channels

    @property
    def open_channels(self) -> int:
        """Number of SFTP channels currently open."""
        with self._lock:
            return len(self._channels)

    @property
    def is_connected(self) -> bool:
        """Check if the SSH transport is active."""
        if self._client is None:
            return False
        transport = self._client.get_transport()
        return transport is not None and bool(transport.is_active())

    def connect(self) -> None:
        """Open the SSH transport and a first SFTP channel.

        Raises:
            ConnectError: If the host cannot be reached, authentication fails
                or the server refuses the SFTP subsystem.
        """
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        if self._known_hosts_policy == "reject":
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            client.connect(
                hostname=self._target.host,
                port=self._target.port,
                username=self._target.user,
                pkey=self._key,
                timeout=self._timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            sftp = client.open_sftp()
        except (paramiko.SSHException, OSError, EOFError) as e:
            client.close()
            raise ConnectError(f"Cannot connect to {self._target.display_name}: {e}") from e

        self.close()
        with self._lock:
            self._client = client
            self._channels.add(sftp)
            self._idle.append(sftp)
        logger.debug(f"Connected to {self._target.display_name}")

    def close(self) -> None:
        """Close every SFTP channel and the SSH transport if open."""
        with self._lock:
            client, self._client = self._client, None
            channels = list(self._channels)
            self._channels.clear()
            self._idle.clear()
        for sftp in channels:
            with contextlib.suppress(Exception):
                sftp.close()
        if client is not None:
            with contextlib.suppress(Exception):
                client.close()

    @contextlib.contextmanager
    def _sftp(self) -> Iterator[paramiko.SFTPClient]:
        """Borrow an SFTP channel for one operation."""
        with self._channel_slots:
            sftp = self._checkout()
            broken = False
            try:
                yield sftp
            except SessionClosedError:
                broken = True
                raise
            finally:
                self._checkin(sftp, broken)

    def _checkout(self) -> paramiko.SFTPClient:
        with self._lock:
            client = self._client
            if client is None or not self.is_connected:
                raise SessionClosedError("The session is not open")
            if self._idle:
                return self._idle.pop()
        try:
            sftp = client.open_sftp()
        except Exception as e:
            raise classify_error(e) from e
        with self._lock:
            if self._client is client:
                self._channels.add(sftp)
                return sftp
        # Closed while the channel was opening
        with contextlib.suppress(Exception):
            sftp.close()
        raise SessionClosedError("The session is not open")

    def _checkin(self, sftp: paramiko.SFTPClient, broken: bool) -> None:
        with self._lock:
            if not broken and sftp in self._channels:
                self._idle.append(sftp)
                return
            self._channels.discard(sftp)
        with contextlib.suppress(Exception):
            sftp.close()

    def stat(self, remote_path: str) -> RemoteStat:
        """Get remote metadata.

        Raises:
            RemoteNotFoundError: If the path does not exist.
            SessionClosedError: If the session is broken.
            TransportError: For other transport failures.
        """
        with self._sftp() as sftp:
            try:
                attrs = sftp.stat(remote_path)
            except Exception as e:
                raise classify_error(e) from e
        return RemoteStat(
            mtime=float(attrs.st_mtime or 0),
            size=int(attrs.st_size or 0),
            is_dir=stat_module.S_ISDIR(attrs.st_mode or 0),
        )

    def make_directory(self, remote_path: str) -> DirectoryStatus:
        """Create a single remote directory.

        SFTP servers report an existing directory as a generic failure, so a
        failed mkdir is followed by a stat to tell the two apart.

        Raises:
            SessionClosedError: If the session is broken.
        """
        with self._sftp() as sftp:
            try:
                sftp.mkdir(remote_path)
                return DirectoryStatus.CREATED
            except Exception as e:
                error = classify_error(e)
                if isinstance(error, SessionClosedError):
                    raise error from e
                try:
                    attrs = sftp.stat(remote_path)
                except Exception:
                    logger.debug(f"mkdir {remote_path} failed: {e}")
                    return DirectoryStatus.FAILED
                if stat_module.S_ISDIR(attrs.st_mode or 0):
                    return DirectoryStatus.ALREADY_EXISTS
                return DirectoryStatus.FAILED

    def upload(self, local_path: str, remote_path: str) -> None:
        """Write a local file to a remote path, replacing it.

        Raises:
            SessionClosedError: If the session is broken.
            TransportError: For other transport failures.
        """
        with self._sftp() as sftp:
            try:
                sftp.put(local_path, remote_path, confirm=True)
            except Exception as e:
                raise classify_error(e) from e


def make_session_factory(
    private_key: paramiko.PKey,
    known_hosts_policy: str = "auto_add",
    timeout: float = DEFAULT_CONNECT_TIMEOUT,
    max_channels: int = DEFAULT_MAX_CHANNELS,
) -> SessionFactory:
    """Build a session factory sharing one loaded private key."""

    def factory(target: SyncTarget) -> RemoteSession:
        return SftpSession(
            target,
            private_key,
            known_hosts_policy=known_hosts_policy,
            timeout=timeout,
            max_channels=max_channels,
        )

    return factory


def remote_join(*parts: str) -> str:
    """Join remote path parts with forward slashes.

    Backslashes are converted and empty or duplicate separators dropped; a
    leading slash on the first part is kept.
    """
    cleaned = [p.replace("\\", "/") for p in parts if p]
    if not cleaned:
        return ""
    absolute = cleaned[0].startswith("/")
    segments = [s for p in cleaned for s in p.split("/") if s]
    joined = "/".join(segments)
    return "/" + joined if absolute else joined
