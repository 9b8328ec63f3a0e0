"""Freshness comparison between a local file and its remote artifact."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from sftpsync.client.transport import RemoteNotFoundError, TransportError

if TYPE_CHECKING:
    from sftpsync.client.transport import RemoteSession

logger = logging.getLogger(__name__)


class ComparatorPolicy(str, Enum):
    """What to do when remote metadata cannot be read."""

    FAIL_SAFE = "fail_safe"
    """Treat the remote copy as stale and upload again"""

    FAIL_FAST = "fail_fast"
    """Propagate the transport error to the caller"""


@dataclass(frozen=True)
class FreshnessDecision:
    """Outcome of a freshness check."""

    stale: bool
    """Whether the file must be uploaded"""

    reason: str
    """Human-readable reason for this decision"""


class FreshnessComparator:
    """Decides whether a remote artifact is up to date.

    The remote copy is fresh only if it is at least as recent as the local
    file and has exactly the local file's compressed size. A missing remote
    file is always stale.
    """

    def __init__(self, policy: ComparatorPolicy = ComparatorPolicy.FAIL_SAFE) -> None:
        """Initialize the comparator.

        Args:
            policy: Behaviour when the remote metadata query fails.
        """
        self.policy = policy

    def decide(
        self,
        session: RemoteSession,
        local_mtime: float,
        compressed_size: int,
        remote_path: str,
    ) -> FreshnessDecision:
        """Compare local metadata against the remote artifact.

        Args:
            session: Live remote session.
            local_mtime: Local modification time (Unix timestamp).
            compressed_size: Byte length of the local file once compressed.
            remote_path: Remote artifact path.

        Returns:
            FreshnessDecision for this file.

        Raises:
            TransportError: On a failed metadata query with the FAIL_FAST policy.
        """
        try:
            remote = session.stat(remote_path)
        except RemoteNotFoundError:
            return FreshnessDecision(stale=True, reason="Remote file does not exist")
        except TransportError as e:
            if self.policy == ComparatorPolicy.FAIL_FAST:
                raise
            logger.debug(f"Cannot read metadata of {remote_path}: {e}")
            return FreshnessDecision(stale=True, reason=f"Remote metadata unavailable ({e})")

        if local_mtime > remote.mtime:
            return FreshnessDecision(stale=True, reason="Local file is newer")
        if compressed_size != remote.size:
            return FreshnessDecision(
                stale=True,
                reason=f"Size differs ({compressed_size} vs {remote.size})",
            )
        return FreshnessDecision(stale=False, reason="Remote file is up to date")

    def is_stale(
        self,
        session: RemoteSession,
        local_mtime: float,
        compressed_size: int,
        remote_path: str,
    ) -> bool:
        """Check if the remote artifact must be replaced."""
        return self.decide(session, local_mtime, compressed_size, remote_path).stale
