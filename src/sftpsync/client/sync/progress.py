"""Progress reporting for directory uploads.

This module provides:
- ProgressSink: Protocol the scheduler reports to
- NullProgress: Discards all progress
- StatusLineProgress: Single updating console line
- StatusLineAwareHandler: Logging handler that keeps the status line intact

Progress is observational only and never affects sync decisions.
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import Protocol, TextIO


class ProgressSink(Protocol):
    """Receives progress of one directory at a time."""

    def start(self, description: str, total: int) -> None: ...

    def advance(self, count: int = 1) -> None: ...

    def finish(self) -> None: ...


class NullProgress:
    """Progress sink that ignores everything."""

    def start(self, description: str, total: int) -> None:
        pass

    def advance(self, count: int = 1) -> None:
        pass

    def finish(self) -> None:
        pass


class StatusLineProgress:
    """Shows "Uploading k/n files" on a single rewritten console line.

    Safe to call from several worker threads at once.
    """

    def __init__(self, stream: TextIO | None = None, width: int = 80) -> None:
        self._stream = stream or sys.stdout
        self._width = width
        self._lock = threading.Lock()
        self._description = ""
        self._completed = 0
        self._total = 0
        self._last_len = 0

    @property
    def lock(self) -> threading.Lock:
        """Lock serializing writes to the status line."""
        return self._lock

    @property
    def completed(self) -> int:
        """Files completed in the current directory."""
        return self._completed

    def start(self, description: str, total: int) -> None:
        with self._lock:
            self._description = description
            self._completed = 0
            self._total = total
            self.redraw()

    def advance(self, count: int = 1) -> None:
        with self._lock:
            self._completed += count
            self.redraw()

    def finish(self) -> None:
        with self._lock:
            self.clear()
            self._description = ""

    def clear(self) -> None:
        """Erase the status line (caller holds the lock)."""
        if self._last_len > 0:
            self._stream.write("\r" + " " * self._last_len + "\r")
            self._stream.flush()
            self._last_len = 0

    def redraw(self) -> None:
        """Rewrite the status line (caller holds the lock)."""
        if not self._description:
            return
        status = f"  {self._description}: {self._completed}/{self._total} files"
        if len(status) > self._width - 3:
            status = status[: self._width - 6] + "..."
        clear_part = " " * max(0, self._last_len - len(status))
        self._stream.write(f"\r{status}{clear_part}")
        self._stream.flush()
        self._last_len = len(status)


class StatusLineAwareHandler(logging.Handler):
    """Logging handler that coordinates with the status line display.

    Clears the status line before printing log messages and restores it after.
    """

    def __init__(self, progress: StatusLineProgress, stream: TextIO | None = None) -> None:
        super().__init__()
        self._progress = progress
        self._stream = stream or sys.stdout

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            with self._progress.lock:
                self._progress.clear()
                # Same stream as the status line to prevent interleaving
                self._stream.write(msg + "\n")
                self._stream.flush()
                self._progress.redraw()
        except Exception:
            self.handleError(record)
