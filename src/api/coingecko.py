"""
CoinGecko API client for Coinlens.

Provides methods to:
- Fetch simple prices and market listings
- Fetch coin metadata, charts and OHLC candles
- Fetch trending coins, global stats, categories and exchanges

Every call goes through the shared FetchGovernor, so results are cached and
count against the client's rate-limit window.
"""

from dataclasses import dataclass
from typing import Any

import pandas as pd

from config import (
    COINGECKO_BASE_URL,
    COINGECKO_MAX_PER_PAGE,
    TOP_N_COINS,
    TTL_CATEGORIES,
    TTL_COIN_DETAIL,
    TTL_COIN_MARKETS,
    TTL_EXCHANGES,
    TTL_GLOBAL,
    TTL_MARKET_CHART,
    TTL_OHLC,
    TTL_PING,
    TTL_SEARCH,
    TTL_SIMPLE_PRICE,
    TTL_TRENDING,
)
from data.errors import MarketDataError, UpstreamError
from data.governor import FetchGovernor, build_cache_key, normalize_params


@dataclass
class Coin:
    """Represents a coin from the CoinGecko markets listing."""

    id: str
    symbol: str
    name: str
    current_price: float | None = None
    market_cap: float | None = None
    market_cap_rank: int | None = None
    total_volume: float | None = None
    price_change_percentage_24h: float | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Coin":
        return cls(
            id=data["id"],
            symbol=data["symbol"],
            name=data["name"],
            current_price=data.get("current_price"),
            market_cap=data.get("market_cap"),
            market_cap_rank=data.get("market_cap_rank"),
            total_volume=data.get("total_volume"),
            price_change_percentage_24h=data.get("price_change_percentage_24h"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display and processing."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "name": self.name,
            "current_price": self.current_price,
            "market_cap": self.market_cap,
            "market_cap_rank": self.market_cap_rank,
            "total_volume": self.total_volume,
            "price_change_percentage_24h": self.price_change_percentage_24h,
        }


def _expect_dict(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise UpstreamError(f"Expected a JSON object, got {type(payload).__name__}")


def _expect_list(payload: Any) -> None:
    if not isinstance(payload, list):
        raise UpstreamError(f"Expected a JSON array, got {type(payload).__name__}")


def _parse_coins(payload: list) -> list[Coin]:
    return [Coin.from_api(item) for item in payload]


class CoinGeckoClient:
    """
    CoinGecko API client.

    Usage:
        client = MarketDataClient().coingecko
        prices = client.get_simple_price(["bitcoin", "ethereum"])
        coins = client.get_top_coins(n=50)
    """

    def __init__(
        self,
        governor: FetchGovernor,
        base_url: str = COINGECKO_BASE_URL,
    ):
        """
        Initialize the CoinGecko client.

        Args:
            governor: Shared fetch governor (cache + rate limiter)
            base_url: CoinGecko API base URL
        """
        self.governor = governor
        self.base_url = base_url.rstrip("/")

    def _get(
        self,
        endpoint: str,
        ttl: float,
        params: dict[str, Any] | None = None,
        validate=_expect_dict,
        parse=None,
    ) -> Any:
        params = normalize_params(params)
        return self.governor.fetch_json(
            build_cache_key(f"coingecko:{endpoint}", params),
            f"{self.base_url}{endpoint}",
            ttl,
            params=params or None,
            validate=validate,
            parse=parse,
        )

    def ping(self) -> bool:
        """
        Check if the API is reachable.

        Returns:
            True if API responds successfully
        """
        try:
            self._get("/ping", TTL_PING)
            return True
        except MarketDataError:
            return False

    def get_simple_price(
        self,
        coin_ids: list[str],
        vs_currencies: list[str] | None = None,
        include_24h_change: bool = True,
        include_market_cap: bool = False,
    ) -> dict[str, dict[str, float]]:
        """
        Fetch current prices for a set of coins.

        Args:
            coin_ids: CoinGecko coin IDs (e.g., ["bitcoin", "ethereum"])
            vs_currencies: Quote currencies (default: ["usd"])
            include_24h_change: Include "<currency>_24h_change" fields
            include_market_cap: Include "<currency>_market_cap" fields

        Returns:
            Mapping of coin ID to {currency: price, ...}
        """
        params = {
            "ids": sorted(coin_ids),
            "vs_currencies": sorted(vs_currencies or ["usd"]),
            "include_24hr_change": include_24h_change,
            "include_market_cap": include_market_cap,
        }
        return self._get("/simple/price", TTL_SIMPLE_PRICE, params)

    def get_coin_markets(
        self,
        vs_currency: str = "usd",
        per_page: int = COINGECKO_MAX_PER_PAGE,
        page: int = 1,
        coin_ids: list[str] | None = None,
    ) -> list[Coin]:
        """
        Fetch one page of the market listing, sorted by market cap.

        Args:
            vs_currency: Quote currency for prices
            per_page: Page size (max 250)
            page: 1-based page number
            coin_ids: Restrict the listing to these IDs

        Returns:
            List of Coin objects
        """
        params = {
            "vs_currency": vs_currency,
            "order": "market_cap_desc",
            "per_page": min(per_page, COINGECKO_MAX_PER_PAGE),
            "page": page,
            "sparkline": False,
            "ids": sorted(coin_ids) if coin_ids else None,
        }
        return self._get(
            "/coins/markets",
            TTL_COIN_MARKETS,
            params,
            validate=_expect_list,
            parse=_parse_coins,
        )

    def get_top_coins(self, n: int = TOP_N_COINS, vs_currency: str = "usd") -> list[Coin]:
        """
        Fetch top N coins by market cap, paginating as needed.

        Args:
            n: Number of coins to fetch
            vs_currency: Quote currency for prices

        Returns:
            List of Coin objects sorted by market cap rank
        """
        coins: list[Coin] = []
        # Page size must stay constant for page offsets to line up
        per_page = min(COINGECKO_MAX_PER_PAGE, n)
        pages_needed = (n + per_page - 1) // per_page if n > 0 else 0

        for page in range(1, pages_needed + 1):
            batch = self.get_coin_markets(vs_currency, per_page=per_page, page=page)
            coins.extend(batch)

            if len(batch) < per_page or len(coins) >= n:
                break

        return coins[:n]

    def get_coin(self, coin_id: str) -> dict[str, Any]:
        """Fetch full metadata for one coin (market data included, tickers excluded)."""
        params = {
            "localization": False,
            "tickers": False,
            "market_data": True,
            "community_data": False,
            "developer_data": False,
            "sparkline": False,
        }
        return self._get(f"/coins/{coin_id}", TTL_COIN_DETAIL, params)

    def get_market_chart(
        self,
        coin_id: str,
        vs_currency: str = "usd",
        days: int | str = 30,
    ) -> dict[str, list]:
        """
        Fetch historical market data for a coin.

        Args:
            coin_id: CoinGecko coin ID (e.g., "bitcoin", "ethereum")
            vs_currency: Quote currency
            days: Number of days of data, or "max" for all available

        Returns:
            Dictionary with 'prices', 'market_caps', 'total_volumes' keys
            Each value is a list of [timestamp_ms, value] pairs
        """
        data = self._get(
            f"/coins/{coin_id}/market_chart",
            TTL_MARKET_CHART,
            {"vs_currency": vs_currency, "days": str(days)},
        )
        return {
            "prices": data.get("prices", []),
            "market_caps": data.get("market_caps", []),
            "total_volumes": data.get("total_volumes", []),
        }

    def get_market_chart_df(
        self,
        coin_id: str,
        vs_currency: str = "usd",
        days: int | str = 30,
    ) -> pd.DataFrame:
        """
        Fetch historical market data as a DataFrame.

        Returns:
            DataFrame indexed by timestamp with price, market_cap and
            volume columns (empty if the API returned no points)
        """
        chart = self.get_market_chart(coin_id, vs_currency, days)
        if not chart["prices"]:
            return pd.DataFrame(columns=["price", "market_cap", "volume"])

        frames = []
        for source, column in (
            ("prices", "price"),
            ("market_caps", "market_cap"),
            ("total_volumes", "volume"),
        ):
            series = pd.DataFrame(chart[source], columns=["timestamp", column])
            frames.append(series.set_index("timestamp"))

        df = pd.concat(frames, axis=1)
        df.index = pd.to_datetime(df.index, unit="ms")
        df.index.name = "date"
        return df.sort_index()

    def get_ohlc(self, coin_id: str, vs_currency: str = "usd", days: int = 30) -> list[list]:
        """
        Fetch OHLC candles.

        Returns:
            List of [timestamp_ms, open, high, low, close]
        """
        return self._get(
            f"/coins/{coin_id}/ohlc",
            TTL_OHLC,
            {"vs_currency": vs_currency, "days": str(days)},
            validate=_expect_list,
        )

    def get_trending(self) -> list[dict[str, Any]]:
        """Fetch trending coins (search popularity over the last 24h)."""
        data = self._get("/search/trending", TTL_TRENDING)
        return [item.get("item", item) for item in data.get("coins", [])]

    def get_global(self) -> dict[str, Any]:
        """Fetch global market stats (total market cap, dominance, ...)."""
        data = self._get("/global", TTL_GLOBAL)
        return data.get("data", {})

    def get_search(self, query: str) -> dict[str, list]:
        """Search coins, exchanges and categories by name or symbol."""
        return self._get("/search", TTL_SEARCH, {"query": query.strip().lower()})

    def get_categories(self) -> list[dict[str, Any]]:
        """Fetch coin categories with market data."""
        return self._get("/coins/categories", TTL_CATEGORIES, validate=_expect_list)

    def get_exchanges(self, per_page: int = 100, page: int = 1) -> list[dict[str, Any]]:
        """Fetch exchanges ranked by trust score."""
        return self._get(
            "/exchanges",
            TTL_EXCHANGES,
            {"per_page": per_page, "page": page},
            validate=_expect_list,
        )
