"""
Configuration constants for the Coinlens project.

Coinlens - Cached, rate-limited access to cryptocurrency market data.
"""

import os
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version


def get_version() -> str:
    """Get package version for User-Agent."""
    try:
        return version("coinlens")
    except PackageNotFoundError:
        return "dev"


# =============================================================================
# Upstream APIs
# =============================================================================

# CoinGecko: prices, market listings, coin metadata
COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
COINGECKO_API_KEY_HEADER = "x-cg-demo-api-key"

# DefiLlama: total value locked, chains, stablecoins, yields
DEFILLAMA_BASE_URL = "https://api.llama.fi"
DEFILLAMA_STABLECOINS_URL = "https://stablecoins.llama.fi"
DEFILLAMA_YIELDS_URL = "https://yields.llama.fi"

# Alternative.me: Crypto Fear & Greed index
FEAR_GREED_BASE_URL = "https://api.alternative.me"

# =============================================================================
# Request Governance
# =============================================================================

# One fixed window shared by every endpoint of a client instance.
# CoinGecko's free tier documents ~30 calls/minute, we stay below it.
RATE_LIMIT_WINDOW_SECONDS = 60.0
MAX_REQUESTS_PER_WINDOW = 25

REQUEST_TIMEOUT_SECONDS = 10.0
USER_AGENT = f"Coinlens/{get_version()}"

# None means unbounded (entries live until cleared)
CACHE_MAX_ENTRIES: int | None = None

# prune() drops entries older than this many TTLs
CACHE_PRUNE_GRACE_FACTOR = 10.0

# =============================================================================
# Cache TTLs (seconds)
# =============================================================================

TTL_PING = 30
TTL_SIMPLE_PRICE = 60
TTL_COIN_MARKETS = 120
TTL_COIN_DETAIL = 300
TTL_MARKET_CHART = 600
TTL_OHLC = 600
TTL_TRENDING = 300
TTL_GLOBAL = 300
TTL_SEARCH = 3600
TTL_CATEGORIES = 900
TTL_EXCHANGES = 900

TTL_PROTOCOLS = 600
TTL_PROTOCOL = 600
TTL_CHAINS = 600
TTL_CHAIN_TVL_HISTORY = 3600
TTL_STABLECOINS = 900
TTL_YIELD_POOLS = 900
TTL_DEX_OVERVIEW = 900
TTL_FEES_OVERVIEW = 900

# The index is published once a day
TTL_FEAR_GREED = 3600
TTL_FEAR_GREED_HISTORY = 3600

# =============================================================================
# Pagination
# =============================================================================

COINGECKO_MAX_PER_PAGE = 250
TOP_N_COINS = 100


# =============================================================================
# Client Configuration
# =============================================================================


@dataclass
class ClientConfig:
    """
    Knobs of a single MarketDataClient instance.

    Every client built from a config gets its own cache and its own
    rate-limit window; nothing is shared between instances.
    """

    rate_limit_window: float = RATE_LIMIT_WINDOW_SECONDS
    max_requests_per_window: int = MAX_REQUESTS_PER_WINDOW
    timeout: float = REQUEST_TIMEOUT_SECONDS
    user_agent: str = USER_AGENT
    cache_max_entries: int | None = CACHE_MAX_ENTRIES
    coingecko_api_key: str | None = None

    def __post_init__(self) -> None:
        if self.rate_limit_window <= 0:
            raise ValueError(
                f"rate_limit_window must be positive, got {self.rate_limit_window}"
            )
        if self.max_requests_per_window <= 0:
            raise ValueError(
                "max_requests_per_window must be positive, "
                f"got {self.max_requests_per_window}"
            )
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.cache_max_entries is not None and self.cache_max_entries <= 0:
            raise ValueError(
                f"cache_max_entries must be positive, got {self.cache_max_entries}"
            )

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """
        Build a config from COINLENS_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable is set to an unparseable value
        """
        env = os.environ
        kwargs: dict = {}

        if "COINLENS_RATE_LIMIT_WINDOW" in env:
            kwargs["rate_limit_window"] = float(env["COINLENS_RATE_LIMIT_WINDOW"])
        if "COINLENS_MAX_REQUESTS" in env:
            kwargs["max_requests_per_window"] = int(env["COINLENS_MAX_REQUESTS"])
        if "COINLENS_TIMEOUT" in env:
            kwargs["timeout"] = float(env["COINLENS_TIMEOUT"])
        if env.get("COINLENS_USER_AGENT"):
            kwargs["user_agent"] = env["COINLENS_USER_AGENT"]
        if env.get("COINLENS_CACHE_MAX_ENTRIES"):
            kwargs["cache_max_entries"] = int(env["COINLENS_CACHE_MAX_ENTRIES"])
        if env.get("COINGECKO_API_KEY"):
            kwargs["coingecko_api_key"] = env["COINGECKO_API_KEY"]

        return cls(**kwargs)
