"""
Error taxonomy for market data requests.

Only failures that have no cached value to fall back on ever reach the
caller; everything else is recovered inside the governor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from data.rate_limiter import RateLimitStatus


class MarketDataError(Exception):
    """Base exception for market data errors."""

    pass


class RateLimited(MarketDataError):
    """Raised when the local rate limiter rejects a call and nothing is cached."""

    def __init__(self, status: RateLimitStatus, key: str | None = None):
        self.status = status
        self.key = key
        super().__init__(
            f"Rate limit reached ({status.remaining} remaining), "
            f"window resets in {status.retry_after:.1f}s"
        )


class UpstreamError(MarketDataError):
    """
    Raised for a non-2xx response or a malformed payload.

    Attributes:
        status_code: HTTP status code, or None if the failure was in the body
        url: Requested URL
        rate_limited: True when the upstream itself refused us (HTTP 429)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
    ):
        self.status_code = status_code
        self.url = url
        self.rate_limited = status_code == 429
        super().__init__(message)


class TransportError(MarketDataError):
    """Raised for timeouts and connection failures."""

    def __init__(self, message: str, url: str | None = None, timed_out: bool = False):
        self.url = url
        self.timed_out = timed_out
        super().__init__(message)
