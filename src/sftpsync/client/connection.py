"""Connection management with a mutually-exclusive reconnect gate.

This module provides:
- ConnectionState: Disconnected / Connected
- ConnectionManager: Owns the single live session for one target
"""

from __future__ import annotations

import logging
import threading
from enum import IntEnum, auto
from typing import TYPE_CHECKING

from sftpsync.client.transport import DirectoryStatus, SessionClosedError
from sftpsync.core.types import RemoteDirectoryError

if TYPE_CHECKING:
    from sftpsync.client.transport import RemoteSession, SessionFactory
    from sftpsync.core.config import SyncTarget

logger = logging.getLogger(__name__)


class ConnectionState(IntEnum):
    """State of a connection manager."""

    DISCONNECTED = auto()
    CONNECTED = auto()


class ConnectionManager:
    """Owns one live session per target for the duration of a sync pass.

    Every worker shares the same session. When a worker sees the session
    break it calls reconnect() with the generation it was using; the gate
    lets one reconnect run at a time and callers that arrive after the
    session was already replaced return without doing anything.

    Usage:
        with ConnectionManager(target, factory) as connection:
            generation = connection.generation
            try:
                connection.session.upload(local, remote)
            except SessionClosedError:
                connection.reconnect(generation)
    """

    def __init__(self, target: SyncTarget, session_factory: SessionFactory) -> None:
        """Initialize the manager (disconnected).

        Args:
            target: Remote destination.
            session_factory: Builds a new unconnected session for the target.
        """
        self._target = target
        self._session_factory = session_factory
        self._session: RemoteSession | None = None
        self._generation = 0
        self._reconnect_count = 0
        self._gate = threading.Lock()
        self._ensured_directories: set[str] = set()

    @property
    def target(self) -> SyncTarget:
        """Target this manager connects to."""
        return self._target

    @property
    def state(self) -> ConnectionState:
        """Get the current connection state."""
        if self._session is None:
            return ConnectionState.DISCONNECTED
        return ConnectionState.CONNECTED

    @property
    def session(self) -> RemoteSession:
        """Get the live session.

        Raises:
            SessionClosedError: If the manager is disconnected.
        """
        session = self._session
        if session is None:
            raise SessionClosedError(f"Not connected to {self._target.display_name}")
        return session

    @property
    def generation(self) -> int:
        """Counter incremented each time the session is replaced."""
        return self._generation

    @property
    def reconnect_count(self) -> int:
        """Number of reconnects actually performed."""
        return self._reconnect_count

    def open(self) -> None:
        """Transition from Disconnected to Connected.

        Raises:
            ConnectError: If the session cannot be established.
        """
        with self._gate:
            if self._session is not None:
                return
            session = self._session_factory(self._target)
            session.connect()
            self._session = session
            self._ensured_directories.clear()
        logger.info(f"Connected to {self._target.display_name}")

    def close(self) -> None:
        """Close the session and return to Disconnected."""
        with self._gate:
            session, self._session = self._session, None
        if session is not None:
            session.close()
            logger.info(f"Disconnected from {self._target.display_name}")

    def reconnect(self, observed_generation: int) -> bool:
        """Replace a broken session.

        Args:
            observed_generation: Generation the caller was using when it failed.

        Returns:
            True if this call reconnected, False if another caller already did
            or the session turned out to be alive.

        Raises:
            SessionClosedError: If the manager was closed.
            ConnectError: If the new session cannot be established.
        """
        with self._gate:
            current = self._session
            if current is None:
                raise SessionClosedError(f"Connection to {self._target.display_name} was closed")
            if self._generation != observed_generation or current.is_connected:
                return False

            logger.warning(f"Session to {self._target.display_name} is broken, reconnecting")
            current.close()
            replacement = self._session_factory(self._target)
            replacement.connect()
            self._session = replacement
            self._generation += 1
            self._reconnect_count += 1

        logger.info(f"Reconnected to {self._target.display_name}")
        return True

    def ensure_directory(self, remote_path: str) -> None:
        """Make sure a remote directory and all its parents exist.

        Only an already existing directory is tolerated; any other mkdir
        failure is raised.

        Raises:
            RemoteDirectoryError: If a component cannot be created.
            SessionClosedError: If the session is broken.
        """
        for component in _path_prefixes(remote_path):
            if component in self._ensured_directories:
                continue
            status = self.session.make_directory(component)
            if status == DirectoryStatus.FAILED:
                raise RemoteDirectoryError(
                    f"Cannot create {component} on {self._target.display_name}"
                )
            if status == DirectoryStatus.CREATED:
                logger.debug(f"Created remote directory {component}")
            self._ensured_directories.add(component)

    def __enter__(self) -> ConnectionManager:
        self.open()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def _path_prefixes(remote_path: str) -> list[str]:
    """List every directory prefix of a remote path, shortest first."""
    absolute = remote_path.startswith("/")
    parts = [p for p in remote_path.split("/") if p]
    prefixes = []
    for i in range(1, len(parts) + 1):
        prefix = "/".join(parts[:i])
        prefixes.append("/" + prefix if absolute else prefix)
    return prefixes
