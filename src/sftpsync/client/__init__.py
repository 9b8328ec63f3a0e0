"""Client module - SFTP transport, connection management and the sync engine."""

from sftpsync.client.connection import ConnectionManager, ConnectionState
from sftpsync.client.keystore import KeyStoreError, load_credentials, load_private_key
from sftpsync.client.transport import (
    ConnectError,
    DirectoryStatus,
    RemoteNotFoundError,
    RemoteSession,
    RemoteStat,
    SessionClosedError,
    SftpSession,
    TransportError,
    classify_error,
    make_session_factory,
    remote_join,
)

__all__ = [
    # Connection
    "ConnectionManager",
    "ConnectionState",
    # Keystore
    "KeyStoreError",
    "load_credentials",
    "load_private_key",
    # Transport
    "ConnectError",
    "DirectoryStatus",
    "RemoteNotFoundError",
    "RemoteSession",
    "RemoteStat",
    "SessionClosedError",
    "SftpSession",
    "TransportError",
    "classify_error",
    "make_session_factory",
    "remote_join",
]
