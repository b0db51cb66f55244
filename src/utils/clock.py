"""
Time sources for TTL and rate-limit window arithmetic.

All readings are seconds as floats. Only differences between readings are
meaningful, so a monotonic source is used rather than wall-clock time.
"""

import threading
import time
from typing import Protocol


class Clock(Protocol):
    """Anything callable that returns the current time in seconds."""

    def __call__(self) -> float: ...


class SystemClock:
    """Monotonic clock backed by time.monotonic()."""

    def __call__(self) -> float:
        return time.monotonic()


class ManualClock:
    """
    Clock that only moves when told to.

    Usage:
        clock = ManualClock()
        cache = CacheStore(clock=clock)
        clock.advance(61)
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        """Move the clock forward and return the new reading."""
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        with self._lock:
            self._now += seconds
            return self._now

    def set(self, now: float) -> None:
        with self._lock:
            if now < self._now:
                raise ValueError("Clock cannot move backwards")
            self._now = now
