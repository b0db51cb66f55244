"""
Request governance: caching, rate limiting and stale fallback.
"""

from .cache import CacheEntry, CacheStats, CacheStore
from .errors import MarketDataError, RateLimited, TransportError, UpstreamError
from .governor import FetchGovernor, build_cache_key, normalize_params
from .rate_limiter import Admission, RateLimiter, RateLimitStatus

__all__ = [
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "Admission",
    "RateLimiter",
    "RateLimitStatus",
    "FetchGovernor",
    "build_cache_key",
    "normalize_params",
    "MarketDataError",
    "RateLimited",
    "TransportError",
    "UpstreamError",
]
