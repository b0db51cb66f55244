"""
Request governance for market data calls.

FetchGovernor is the single chokepoint between endpoint methods and the
network. For each logical request it decides whether to:
- Serve a fresh cached value (no network call, no quota used)
- Join a call already in flight for the same key
- Spend one unit of rate-limit quota on a fresh call
- Fall back to a stale cached value when the quota or the call fails
"""

import threading
from collections.abc import Callable, Mapping
from concurrent.futures import Future
from typing import Any, TypeVar

import requests

from data.cache import CacheEntry, CacheStats, CacheStore
from data.errors import MarketDataError, RateLimited, TransportError, UpstreamError
from data.rate_limiter import Admission, RateLimiter, RateLimitStatus
from utils.logging import get_logger

# Module logger
logger = get_logger(__name__)

T = TypeVar("T")

FallbackHook = Callable[[str, MarketDataError, CacheEntry], None]


def normalize_params(params: Mapping[str, Any] | None) -> dict[str, str]:
    """
    Turn query parameters into the string form the APIs expect.

    None values are dropped, booleans become "true"/"false" and sequences
    are joined with commas. Keys come out sorted.
    """
    normalized: dict[str, str] = {}
    for name in sorted(params or {}):
        value = params[name]
        if value is None:
            continue
        if isinstance(value, bool):
            value = str(value).lower()
        elif isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        normalized[name] = str(value)
    return normalized


def build_cache_key(endpoint: str, params: Mapping[str, Any] | None = None) -> str:
    """
    Build a cache key from an endpoint and its query parameters.

    Parameters are normalized (see normalize_params) so that equivalent
    queries share a key.

    Args:
        endpoint: Endpoint identifier (e.g., "coingecko:/simple/price")
        params: Query parameters

    Returns:
        Key like "coingecko:/simple/price?ids=bitcoin&vs_currencies=usd"
    """
    normalized = normalize_params(params)
    if not normalized:
        return endpoint
    query = "&".join(f"{name}={value}" for name, value in normalized.items())
    return f"{endpoint}?{query}"


def _as_market_data_error(error: Exception) -> MarketDataError:
    """Map an untyped fetcher failure onto TransportError or UpstreamError."""
    if isinstance(error, (requests.Timeout, TimeoutError)):
        return TransportError(f"Request timed out: {error}", timed_out=True)
    if isinstance(error, (requests.ConnectionError, ConnectionError)):
        return TransportError(f"Connection failed: {error}")
    return UpstreamError(f"Fetch failed with {type(error).__name__}: {error}")


class FetchGovernor:
    """
    Cache + rate limiter + stale fallback around every outbound call.

    The governor holds references to a CacheStore and a RateLimiter; it does
    not own them. Concurrent callers missing the cache for the same key share
    a single network call.

    Usage:
        governor = FetchGovernor(CacheStore(), RateLimiter(), transport)
        data = governor.fetch_json("coingecko:/ping", url, ttl=30)
    """

    def __init__(
        self,
        cache: CacheStore,
        rate_limiter: RateLimiter,
        transport: Any = None,
        on_fallback: FallbackHook | None = None,
    ):
        """
        Initialize the governor.

        Args:
            cache: Shared response cache
            rate_limiter: Shared rate-limit window
            transport: Object with get_json(url, params, headers), used by fetch_json
            on_fallback: Called with (key, error, stale_entry) whenever a stale
                value is served instead of raising
        """
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.transport = transport
        self.on_fallback = on_fallback

        self._lock = threading.Lock()
        self._in_flight: dict[str, Future] = {}

    def resolve(self, key: str, ttl: float, fetcher: Callable[[], T]) -> T:
        """
        Get a value for key from cache or from fetcher.

        Args:
            key: Cache key, unique per logical query
            ttl: Seconds a freshly fetched value stays fresh
            fetcher: Zero-argument callable performing the network call

        Returns:
            Fresh, newly fetched, or (on failure) stale value

        Raises:
            RateLimited: Quota exhausted and nothing cached for key
            UpstreamError: Bad response and nothing cached for key
            TransportError: Timeout/connection failure and nothing cached for key

        Any other Exception from fetcher is wrapped in TransportError
        (timeouts, connection failures) or UpstreamError before the
        fallback rule applies. KeyboardInterrupt and SystemExit propagate.
        """
        with self._lock:
            entry = self.cache.get(key)
            if entry is not None and self.cache.is_fresh(entry):
                logger.debug("Cache hit: %s", key)
                return entry.value

            rejected: RateLimited | None = None
            pending = self._in_flight.get(key)
            owner = pending is None
            if not owner:
                logger.debug("Joining in-flight request: %s", key)
            elif self.rate_limiter.try_acquire() is Admission.REJECTED:
                rejected = RateLimited(self.rate_limiter.status(), key=key)
            else:
                logger.debug("Cache %s, fetching: %s", "stale" if entry else "miss", key)
                pending = Future()
                self._in_flight[key] = pending

        if rejected is not None:
            if entry is None:
                logger.debug("Rate limited with nothing cached: %s", key)
                raise rejected
            self._fallback(key, rejected, entry)
            return entry.value

        if not owner:
            return pending.result()

        try:
            try:
                value = fetcher()
            except MarketDataError:
                raise
            except Exception as e:
                raise _as_market_data_error(e) from e
        except MarketDataError as e:
            with self._lock:
                self._in_flight.pop(key, None)
            if entry is None:
                pending.set_exception(e)
                raise
            self._fallback(key, e, entry)
            pending.set_result(entry.value)
            return entry.value
        except BaseException as e:
            with self._lock:
                self._in_flight.pop(key, None)
            pending.set_exception(e)
            raise

        with self._lock:
            self.cache.set(key, value, ttl)
            self._in_flight.pop(key, None)
        pending.set_result(value)
        return value

    def fetch_json(
        self,
        key: str,
        url: str,
        ttl: float,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        validate: Callable[[Any], None] | None = None,
        parse: Callable[[Any], Any] | None = None,
    ) -> Any:
        """
        Resolve key by a GET request returning JSON.

        Args:
            key: Cache key (see build_cache_key)
            url: Full request URL
            ttl: Seconds the response stays fresh
            params: Query parameters
            headers: Extra request headers
            validate: Raises UpstreamError if the payload is malformed;
                runs before caching so bad payloads are never stored
            parse: Converts the payload into the value to cache and return.
                KeyError, IndexError, TypeError and ValueError raised while
                parsing become UpstreamError.

        Returns:
            Parsed JSON payload, or the output of parse
        """
        if self.transport is None:
            raise RuntimeError("FetchGovernor has no transport configured")

        def fetcher() -> Any:
            payload = self.transport.get_json(url, params=params, headers=headers)
            if validate is not None:
                validate(payload)
            if parse is None:
                return payload
            try:
                return parse(payload)
            except (KeyError, IndexError, TypeError, ValueError) as e:
                raise UpstreamError(
                    f"Malformed record in response: {type(e).__name__}: {e}", url=url
                ) from e

        return self.resolve(key, ttl, fetcher)

    def _fallback(self, key: str, error: MarketDataError, entry: CacheEntry) -> None:
        logger.warning(
            "Serving stale value for %s (age %.0fs): %s",
            key,
            entry.age(self.cache.clock()),
            error,
        )
        if self.on_fallback is not None:
            self.on_fallback(key, error, entry)

    def clear_cache(self) -> int:
        """Drop every cached entry. Returns the number removed."""
        with self._lock:
            count = self.cache.clear()
        logger.info("Cleared %d cache entries", count)
        return count

    def prune_cache(self, grace_factor: float | None = None) -> int:
        """Drop entries stale for longer than grace_factor times their TTL."""
        with self._lock:
            if grace_factor is None:
                count = self.cache.prune()
            else:
                count = self.cache.prune(grace_factor)
        if count:
            logger.info("Pruned %d long-stale cache entries", count)
        return count

    def get_cache_stats(self) -> CacheStats:
        with self._lock:
            return self.cache.stats()

    def get_rate_limit_status(self) -> RateLimitStatus:
        return self.rate_limiter.status()
