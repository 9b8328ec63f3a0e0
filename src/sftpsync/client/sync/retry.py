"""Retry policy with exponential backoff.

This module provides:
- RetryPolicy: Attempt cap and backoff schedule for one file's upload
"""

from __future__ import annotations

import time
from dataclasses import dataclass

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 30.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a file upload is attempted and how long to wait between.

    Attributes:
        max_attempts: Total attempts, including the first one.
        initial_backoff: Wait before the second attempt, in seconds.
        max_backoff: Upper bound of any wait.
        backoff_multiplier: Growth factor between consecutive waits.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def has_attempts_left(self, attempt: int) -> bool:
        """Check if another attempt may follow the given (1-based) attempt."""
        return attempt < self.max_attempts

    def backoff(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        delay = self.initial_backoff * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_backoff)

    def wait(self, attempt: int) -> None:
        """Sleep for the backoff following the given failed attempt."""
        delay = self.backoff(attempt)
        if delay > 0:
            time.sleep(delay)
