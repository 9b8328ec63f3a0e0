"""Configuration records and the JSON configuration provider.

This module provides:
- FolderKind, SyncFolder, SyncTarget, AgentSettings: Configuration records
- load_settings / save_settings: JSON persistence
- SettingsProvider: Re-reads the configuration file on every call
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "SFTPSYNC_CONFIG_DIR"
CONFIG_FILE_NAME = "config.json"
LOG_FILE_NAME = "sftpsync.log"

DEFAULT_INTERVAL_SECONDS = 60.0
DEFAULT_MAX_WORKERS = 20
# Below the OpenSSH default of MaxSessions 10
DEFAULT_MAX_CHANNELS = 4
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BACKOFF = 1.0
DEFAULT_PRIVATE_KEY = "~/.ssh/id_rsa"
DEFAULT_PORT = 22

COMPARATOR_POLICIES = ("fail_safe", "fail_fast")
ERROR_POLICIES = ("abort_directory", "continue")
KNOWN_HOSTS_POLICIES = ("auto_add", "reject")


class ConfigError(Exception):
    """Configuration file is missing required fields or malformed."""


class FolderKind(str, Enum):
    """Traversal strategy of a configured folder."""

    PROJECTS_ROOT = "ProjectsRoot"
    """Each immediate subdirectory is synced as its own unit."""

    FOLDER = "Folder"
    """Plain folder (not handled by the sync core)."""


@dataclass(frozen=True)
class SyncFolder:
    """A local folder to mirror.

    Attributes:
        local_path: Local directory path.
        remote_name: Name of the folder on the remote side.
        kind: Traversal strategy.
    """

    local_path: str
    remote_name: str
    kind: FolderKind = FolderKind.PROJECTS_ROOT

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncFolder:
        """Create from a configuration dictionary."""
        try:
            return cls(
                local_path=str(data["path"]),
                remote_name=str(data["name"]),
                kind=FolderKind(data.get("type", FolderKind.PROJECTS_ROOT.value)),
            )
        except KeyError as e:
            raise ConfigError(f"Folder entry is missing field {e.args[0]!r}") from e
        except ValueError as e:
            raise ConfigError(f"Invalid folder type: {data.get('type')!r}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to a configuration dictionary."""
        return {"path": self.local_path, "name": self.remote_name, "type": self.kind.value}


@dataclass(frozen=True)
class SyncTarget:
    """A remote destination reached over SFTP.

    Attributes:
        host: Remote host name or address.
        user: Login user.
        remote_base_folder: Base directory on the remote host.
        port: SSH port.
    """

    host: str
    user: str
    remote_base_folder: str
    port: int = DEFAULT_PORT

    def __post_init__(self) -> None:
        """Normalize the remote base folder."""
        base = self.remote_base_folder.replace("\\", "/")
        if len(base) > 1:
            base = base.rstrip("/")
        object.__setattr__(self, "remote_base_folder", base)

    @property
    def display_name(self) -> str:
        """Human-readable target name for logs."""
        return f"{self.user}@{self.host}:{self.port}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncTarget:
        """Create from a configuration dictionary."""
        try:
            return cls(
                host=str(data["host"]),
                user=str(data["user"]),
                remote_base_folder=str(data["folder"]),
                port=int(data.get("port", DEFAULT_PORT)),
            )
        except KeyError as e:
            raise ConfigError(f"Target entry is missing field {e.args[0]!r}") from e
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid target port: {data.get('port')!r}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to a configuration dictionary."""
        return {
            "host": self.host,
            "user": self.user,
            "folder": self.remote_base_folder,
            "port": self.port,
        }


@dataclass
class AgentSettings:
    """Complete agent configuration.

    Attributes:
        folders: Folders to mirror, in order.
        targets: Remote destinations, in order.
        interval_seconds: Delay between two sync cycles.
        max_workers: Width of the upload worker pool.
        max_channels: SFTP channels opened at once on one SSH connection.
        max_attempts: Attempts per file before the upload is fatal.
        retry_backoff: Seconds to wait before retrying a failed attempt.
        comparator_policy: "fail_safe" or "fail_fast".
        error_policy: "abort_directory" or "continue".
        private_key: Path to the SSH private key.
        known_hosts_policy: "auto_add" or "reject".
    """

    folders: list[SyncFolder] = field(default_factory=list)
    targets: list[SyncTarget] = field(default_factory=list)
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    max_workers: int = DEFAULT_MAX_WORKERS
    max_channels: int = DEFAULT_MAX_CHANNELS
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_backoff: float = DEFAULT_RETRY_BACKOFF
    comparator_policy: str = "fail_safe"
    error_policy: str = "abort_directory"
    private_key: str = DEFAULT_PRIVATE_KEY
    known_hosts_policy: str = "auto_add"

    def __post_init__(self) -> None:
        """Validate numeric bounds and policy names."""
        if self.interval_seconds <= 0:
            raise ConfigError("interval_seconds must be positive")
        if self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1")
        if self.max_channels < 1:
            raise ConfigError("max_channels must be at least 1")
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1")
        if self.retry_backoff < 0:
            raise ConfigError("retry_backoff must not be negative")
        _check_choice("comparator_policy", self.comparator_policy, COMPARATOR_POLICIES)
        _check_choice("error_policy", self.error_policy, ERROR_POLICIES)
        _check_choice("known_hosts_policy", self.known_hosts_policy, KNOWN_HOSTS_POLICIES)

    @property
    def private_key_path(self) -> Path:
        """Expanded path to the private key."""
        return Path(self.private_key).expanduser()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentSettings:
        """Create from a configuration dictionary."""
        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a JSON object")
        try:
            return cls(
                folders=[SyncFolder.from_dict(f) for f in data.get("folders", [])],
                targets=[SyncTarget.from_dict(t) for t in data.get("targets", [])],
                interval_seconds=float(data.get("interval_seconds", DEFAULT_INTERVAL_SECONDS)),
                max_workers=int(data.get("max_workers", DEFAULT_MAX_WORKERS)),
                max_channels=int(data.get("max_channels", DEFAULT_MAX_CHANNELS)),
                max_attempts=int(data.get("max_attempts", DEFAULT_MAX_ATTEMPTS)),
                retry_backoff=float(data.get("retry_backoff", DEFAULT_RETRY_BACKOFF)),
                comparator_policy=str(data.get("comparator_policy", "fail_safe")),
                error_policy=str(data.get("error_policy", "abort_directory")),
                private_key=str(data.get("private_key", DEFAULT_PRIVATE_KEY)),
                known_hosts_policy=str(data.get("known_hosts_policy", "auto_add")),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to a configuration dictionary."""
        data = asdict(self)
        data["folders"] = [f.to_dict() for f in self.folders]
        data["targets"] = [t.to_dict() for t in self.targets]
        return data


def _check_choice(name: str, value: str, choices: tuple[str, ...]) -> None:
    if value not in choices:
        raise ConfigError(f"{name} must be one of {', '.join(choices)}, got {value!r}")


def get_config_dir() -> Path:
    """Get the configuration directory for sftpsync.

    Returns:
        Path to $SFTPSYNC_CONFIG_DIR, or ~/.sftpsync.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".sftpsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / CONFIG_FILE_NAME


def get_log_file() -> Path:
    """Get the path to the log file."""
    return get_config_dir() / LOG_FILE_NAME


def ensure_config_file(path: Path | None = None) -> Path:
    """Create an empty configuration file if none exists.

    Returns:
        Path to the configuration file.
    """
    config_file = path or get_config_file()
    if not config_file.exists():
        config_file.parent.mkdir(parents=True, exist_ok=True)
        config_file.write_text("{}", encoding="utf-8")
        logger.info(f"Created empty configuration file {config_file}")
    return config_file


def load_settings(path: Path | None = None) -> AgentSettings:
    """Load settings from the configuration file.

    A missing file yields default (empty) settings.

    Raises:
        ConfigError: If the file is not valid JSON or has invalid fields.
    """
    config_file = path or get_config_file()
    if not config_file.exists():
        return AgentSettings()
    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"{config_file}: invalid JSON ({e})") from e
    try:
        return AgentSettings.from_dict(data)
    except ConfigError as e:
        raise ConfigError(f"{config_file}: {e}") from e


def save_settings(settings: AgentSettings, path: Path | None = None) -> None:
    """Save settings to the configuration file."""
    config_file = path or get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")


class SettingsProvider:
    """Supplies fresh settings on every call.

    The file is re-read each time so edits take effect at the start of the
    next sync cycle.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """Configuration file backing this provider."""
        return self._path or get_config_file()

    def __call__(self) -> AgentSettings:
        return load_settings(self.path)
