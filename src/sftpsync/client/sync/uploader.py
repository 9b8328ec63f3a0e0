"""Per-file upload state machine.

This module provides:
- FileUploader: Compresses, compares and uploads one file with retries

A file moves through PENDING -> COMPRESSING -> COMPARING -> UPLOADING and
ends in SUCCEEDED, SKIPPED or FAILED. A failed write goes to RETRYING and
back to UPLOADING until the attempt cap is reached.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, NoReturn

from sftpsync.client.sync.comparator import FreshnessComparator
from sftpsync.client.sync.retry import RetryPolicy
from sftpsync.client.transport import SessionClosedError, TransportError
from sftpsync.core.compression import CompressedArtifact, compress_file
from sftpsync.core.types import (
    RemoteDirectoryError,
    UploadError,
    UploadOutcome,
    UploadState,
    UploadUnit,
)

if TYPE_CHECKING:
    from sftpsync.client.connection import ConnectionManager

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[UploadState, frozenset[UploadState]] = {
    UploadState.PENDING: frozenset({UploadState.COMPRESSING}),
    UploadState.COMPRESSING: frozenset(
        {UploadState.COMPARING, UploadState.SKIPPED, UploadState.FAILED}
    ),
    UploadState.COMPARING: frozenset(
        {UploadState.UPLOADING, UploadState.SKIPPED, UploadState.FAILED}
    ),
    UploadState.UPLOADING: frozenset(
        {UploadState.SUCCEEDED, UploadState.RETRYING, UploadState.FAILED}
    ),
    UploadState.RETRYING: frozenset({UploadState.UPLOADING}),
}


class FileUploader:
    """Uploads single files to one target through a shared connection.

    One instance is shared by all workers of a directory; process() keeps
    all per-file state on its own stack.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        comparator: FreshnessComparator | None = None,
        retry_policy: RetryPolicy | None = None,
        temp_dir: str | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            connection: Connection manager for the target.
            comparator: Freshness comparator (fail-safe by default).
            retry_policy: Attempt cap and backoff.
            temp_dir: Directory for compressed artifacts.
        """
        self._connection = connection
        self._comparator = comparator or FreshnessComparator()
        self._retry = retry_policy or RetryPolicy()
        self._temp_dir = temp_dir

    def process(self, unit: UploadUnit) -> UploadOutcome:
        """Bring one file's remote artifact up to date.

        Args:
            unit: The file to process.

        Returns:
            UploadOutcome in state SUCCEEDED or SKIPPED.

        Raises:
            UploadError: If the file could not be uploaded.
        """
        outcome = UploadOutcome(unit=unit, state=UploadState.PENDING)
        self._transition(outcome, UploadState.COMPRESSING)

        try:
            local_mtime = os.stat(unit.local_file).st_mtime
            artifact = compress_file(unit.local_file, temp_dir=self._temp_dir)
        except FileNotFoundError:
            logger.warning(f"File vanished before upload, skipping: {unit.local_file}")
            self._transition(outcome, UploadState.SKIPPED)
            return outcome
        except OSError as e:
            self._fail(outcome, e)

        with artifact:
            outcome.compressed_size = artifact.size
            self._transition(outcome, UploadState.COMPARING)
            try:
                decision = self._comparator.decide(
                    self._connection.session,
                    local_mtime,
                    artifact.size,
                    unit.remote_path,
                )
            except TransportError as e:
                self._fail(outcome, e)

            if not decision.stale:
                self._transition(outcome, UploadState.SKIPPED)
                return outcome

            logger.debug(f"{unit.relative_path}: {decision.reason}")
            self._upload_with_retry(outcome, artifact)

        return outcome

    def _upload_with_retry(self, outcome: UploadOutcome, artifact: CompressedArtifact) -> None:
        """Write the artifact, reconnecting or backing off between attempts."""
        unit = outcome.unit
        attempt = 0

        while True:
            attempt += 1
            outcome.attempts = attempt
            generation = self._connection.generation
            self._transition(outcome, UploadState.UPLOADING)

            try:
                self._connection.ensure_directory(unit.remote_folder)
                self._connection.session.upload(str(artifact.path), unit.remote_path)
            except RemoteDirectoryError as e:
                self._fail(outcome, e)
            except Exception as e:
                if not self._retry.has_attempts_left(attempt):
                    self._fail(outcome, e)

                self._transition(outcome, UploadState.RETRYING)
                if isinstance(e, SessionClosedError):
                    logger.warning(
                        f"Attempt {attempt}/{self._retry.max_attempts} for {unit.local_file} "
                        f"hit a closed session: {e}"
                    )
                    if not self._reconnect(outcome, generation):
                        self._retry.wait(attempt)
                else:
                    logger.warning(
                        f"Attempt {attempt}/{self._retry.max_attempts} for {unit.local_file} "
                        f"failed: {e}. Retrying in {self._retry.backoff(attempt):.1f}s..."
                    )
                    self._retry.wait(attempt)
                continue

            self._transition(outcome, UploadState.SUCCEEDED)
            logger.debug(f"Uploaded {unit.local_file} to {unit.remote_path}")
            return

    def _reconnect(self, outcome: UploadOutcome, generation: int) -> bool:
        """Replace the session if it is still the broken one.

        Returns:
            True if this worker reconnected.
        """
        try:
            if self._connection.reconnect(generation):
                outcome.reconnects += 1
                return True
        except TransportError as e:
            logger.warning(f"Reconnect to {self._connection.target.display_name} failed: {e}")
        return False

    def _fail(self, outcome: UploadOutcome, error: BaseException) -> NoReturn:
        """Move to FAILED, log full context and raise UploadError."""
        unit = outcome.unit
        outcome.error = str(error)
        self._transition(outcome, UploadState.FAILED)
        logger.error(
            f"Failed to upload file: {unit.local_file} to {unit.remote_path} "
            f"into {unit.remote_folder}: {error}"
        )
        raise UploadError(unit, outcome.attempts, error) from error

    @staticmethod
    def _transition(outcome: UploadOutcome, new_state: UploadState) -> None:
        allowed = _TRANSITIONS.get(outcome.state, frozenset())
        if new_state not in allowed:
            raise RuntimeError(
                f"Invalid upload transition {outcome.state.name} -> {new_state.name} "
                f"for {outcome.unit.relative_path}"
            )
        outcome.state = new_state
