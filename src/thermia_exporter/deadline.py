"""
Time budget for one scrape.

A scrape is a chain of blocking HTTP calls: the login round trips, then the
API reads. Each call already has its own timeout; the Deadline bounds the chain
as a whole. Before every request the remaining time is checked and the
request's timeout is capped at it.
"""

from __future__ import annotations

import time
from typing import Callable

from .errors import DeadlineExceededError


class Deadline:
    """
    Args:
        seconds: Budget, starting now.
        clock: Monotonic clock in seconds (injectable for tests).
    """

    def __init__(self, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.seconds = float(seconds)
        self._clock = clock
        self._expires_at = clock() + self.seconds

    def remaining(self) -> float:
        return max(self._expires_at - self._clock(), 0.0)

    def check(self, what: str) -> float:
        """Return the time left, or raise DeadlineExceededError if none is."""
        left = self.remaining()
        if left <= 0:
            raise DeadlineExceededError(f"scrape deadline of {self.seconds:g}s exceeded before {what}")
        return left

    def cap(self, timeout: float, what: str) -> float:
        """Return `timeout` limited to the time left; raises like `check()`."""
        return min(float(timeout), self.check(what))


__all__ = ["Deadline"]
