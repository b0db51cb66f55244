"""
Single entry point to all market data sources.

A MarketDataClient owns one cache and one rate-limit window, shared by the
CoinGecko, DefiLlama and Fear & Greed clients it exposes. Separate instances
never share state.
"""

from config import COINGECKO_API_KEY_HEADER, ClientConfig
from data.cache import CacheStats, CacheStore
from data.governor import FallbackHook, FetchGovernor
from data.rate_limiter import RateLimiter, RateLimitStatus
from utils.clock import Clock, SystemClock
from utils.logging import get_logger

from .coingecko import CoinGeckoClient
from .defillama import DefiLlamaClient
from .feargreed import FearGreedClient
from .transport import HttpTransport

# Module logger
logger = get_logger(__name__)


class MarketDataClient:
    """
    Aggregated, cached, rate-limited market data client.

    Usage:
        client = MarketDataClient()
        prices = client.coingecko.get_simple_price(["bitcoin"])
        chains = client.defillama.get_chains()
        reading = client.sentiment.get_index()

        client.get_rate_limit_status()
        client.get_cache_stats()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        clock: Clock | None = None,
        transport: HttpTransport | None = None,
        on_fallback: FallbackHook | None = None,
    ):
        """
        Initialize the client.

        Args:
            config: Client configuration (default: ClientConfig())
            clock: Time source shared by cache and rate limiter
            transport: HTTP transport (default: built from config)
            on_fallback: Called whenever a stale value is served after a failure
        """
        self.config = config or ClientConfig()
        self.clock = clock or SystemClock()

        if transport is None:
            headers = {}
            if self.config.coingecko_api_key:
                headers[COINGECKO_API_KEY_HEADER] = self.config.coingecko_api_key
            transport = HttpTransport(
                timeout=self.config.timeout,
                user_agent=self.config.user_agent,
                headers=headers,
            )
        self.transport = transport

        self.cache = CacheStore(clock=self.clock, max_entries=self.config.cache_max_entries)
        self.rate_limiter = RateLimiter(
            max_requests=self.config.max_requests_per_window,
            window_size=self.config.rate_limit_window,
            clock=self.clock,
        )
        self.governor = FetchGovernor(
            self.cache,
            self.rate_limiter,
            transport=self.transport,
            on_fallback=on_fallback,
        )

        self.coingecko = CoinGeckoClient(self.governor)
        self.defillama = DefiLlamaClient(self.governor)
        self.sentiment = FearGreedClient(self.governor)

        logger.debug(
            "MarketDataClient ready: %d requests / %.0fs window, timeout %.1fs",
            self.config.max_requests_per_window,
            self.config.rate_limit_window,
            self.config.timeout,
        )

    def clear_cache(self) -> int:
        """Drop every cached response. Returns the number removed."""
        return self.governor.clear_cache()

    def prune_cache(self, grace_factor: float | None = None) -> int:
        """Drop entries stale for longer than grace_factor times their TTL."""
        return self.governor.prune_cache(grace_factor)

    def get_cache_stats(self) -> CacheStats:
        return self.governor.get_cache_stats()

    def get_rate_limit_status(self) -> RateLimitStatus:
        return self.governor.get_rate_limit_status()

    def reset_rate_limit(self) -> None:
        self.rate_limiter.reset()

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "MarketDataClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
