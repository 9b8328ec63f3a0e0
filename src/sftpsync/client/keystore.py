"""Private key loading and passphrase caching for sftpsync.

This module provides:
- load_private_key: Load an SSH private key with paramiko
- load_credentials: Load the key, using a passphrase cached in the OS keyring
- get_passphrase / set_passphrase / delete_passphrase: OS keyring integration
"""

from __future__ import annotations

import contextlib
from pathlib import Path

import keyring
import paramiko

KEYRING_SERVICE = "sftpsync"


class KeyStoreError(Exception):
    """Exception raised for key loading and keyring errors."""


def _keyring_username(key_path: Path) -> str:
    return str(key_path.expanduser().resolve())


def get_passphrase(key_path: Path) -> str | None:
    """Get the cached passphrase of a key, if any.

    Keyring backends that are unavailable are treated as an empty cache.
    """
    with contextlib.suppress(Exception):
        return keyring.get_password(KEYRING_SERVICE, _keyring_username(key_path))
    return None


def set_passphrase(key_path: Path, passphrase: str) -> None:
    """Cache a key passphrase in the OS keyring.

    Raises:
        KeyStoreError: If no keyring backend can store it.
    """
    try:
        keyring.set_password(KEYRING_SERVICE, _keyring_username(key_path), passphrase)
    except Exception as e:
        raise KeyStoreError(f"Cannot store passphrase in keyring: {e}") from e


def delete_passphrase(key_path: Path) -> bool:
    """Remove a cached passphrase.

    Returns:
        True if a passphrase was removed.
    """
    try:
        keyring.delete_password(KEYRING_SERVICE, _keyring_username(key_path))
    except Exception:
        return False
    return True


def load_private_key(key_path: Path, passphrase: str | None = None) -> paramiko.PKey:
    """Load an SSH private key.

    Args:
        key_path: Path to an OpenSSH or PEM private key (RSA, ECDSA or Ed25519).
        passphrase: Passphrase for encrypted keys.

    Returns:
        The loaded key.

    Raises:
        KeyStoreError: If the key is missing, encrypted without a passphrase,
            or cannot be parsed.
    """
    path = key_path.expanduser()
    if not path.is_file():
        raise KeyStoreError(f"Private key not found: {path}")
    try:
        return paramiko.PKey.from_path(path, passphrase=passphrase.encode() if passphrase else None)
    except (paramiko.PasswordRequiredException, TypeError) as e:
        # cryptography raises TypeError for encrypted PEM keys without a password
        raise KeyStoreError(
            f"Private key {path} is encrypted. "
            "Store its passphrase with 'sftpsync key set-passphrase'."
        ) from e
    except Exception as e:
        raise KeyStoreError(f"Cannot load private key {path}: {e}") from e


def load_credentials(key_path: Path) -> paramiko.PKey:
    """Load the private key once for the whole process."""
    return load_private_key(key_path, get_passphrase(key_path))
