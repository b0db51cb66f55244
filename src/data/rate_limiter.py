"""
Fixed-window rate limiting for outbound API calls.

One window per client instance, shared by every endpoint. A burst of up to
twice the limit is possible across a window boundary.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any

from config import MAX_REQUESTS_PER_WINDOW, RATE_LIMIT_WINDOW_SECONDS
from utils.clock import Clock, SystemClock


class Admission(Enum):
    """Outcome of a rate limiter check."""

    ADMITTED = "admitted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class RateLimitStatus:
    """Snapshot of the current rate-limit window."""

    remaining: int
    window_reset_at: float
    is_blocked: bool
    retry_after: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "remaining": self.remaining,
            "window_reset_at": self.window_reset_at,
            "is_blocked": self.is_blocked,
            "retry_after": self.retry_after,
        }


class RateLimiter:
    """
    Fixed-window request counter.

    Usage:
        limiter = RateLimiter(max_requests=25, window_size=60.0)
        if limiter.try_acquire() is Admission.ADMITTED:
            ...
    """

    def __init__(
        self,
        max_requests: int = MAX_REQUESTS_PER_WINDOW,
        window_size: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Clock | None = None,
    ):
        """
        Initialize the rate limiter.

        Args:
            max_requests: Calls admitted per window
            window_size: Window length in seconds
            clock: Time source in seconds (default: monotonic system clock)
        """
        if max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {max_requests}")
        if window_size <= 0:
            raise ValueError(f"window_size must be positive, got {window_size}")

        self.max_requests = max_requests
        self.window_size = window_size
        self.clock = clock or SystemClock()

        self._lock = threading.Lock()
        self.window_start = self.clock()
        self.request_count = 0

    def try_acquire(self) -> Admission:
        """
        Decide whether one outbound call may go out now.

        Counts the call when admitted.
        """
        with self._lock:
            now = self.clock()

            if now - self.window_start >= self.window_size:
                self.window_start = now
                self.request_count = 1
                return Admission.ADMITTED

            if self.request_count < self.max_requests:
                self.request_count += 1
                return Admission.ADMITTED

            return Admission.REJECTED

    def status(self) -> RateLimitStatus:
        """Report the current window without changing it."""
        with self._lock:
            now = self.clock()
            window_reset_at = self.window_start + self.window_size

            # The next try_acquire() will reset an elapsed window
            if now >= window_reset_at:
                return RateLimitStatus(
                    remaining=self.max_requests,
                    window_reset_at=window_reset_at,
                    is_blocked=False,
                )

            remaining = max(0, self.max_requests - self.request_count)
            return RateLimitStatus(
                remaining=remaining,
                window_reset_at=window_reset_at,
                is_blocked=remaining == 0,
                retry_after=window_reset_at - now,
            )

    def reset(self) -> None:
        """Start a fresh window immediately."""
        with self._lock:
            self.window_start = self.clock()
            self.request_count = 0
