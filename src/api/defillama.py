"""
DefiLlama API client for Coinlens.

DefiLlama offers free, keyless access to:
- Total value locked (TVL) per protocol and per chain
- Stablecoin circulation
- Yield pools, DEX volumes and fees

API Documentation: https://defillama.com/docs/api
"""

from typing import Any

import pandas as pd

from config import (
    DEFILLAMA_BASE_URL,
    DEFILLAMA_STABLECOINS_URL,
    DEFILLAMA_YIELDS_URL,
    TTL_CHAIN_TVL_HISTORY,
    TTL_CHAINS,
    TTL_DEX_OVERVIEW,
    TTL_FEES_OVERVIEW,
    TTL_PROTOCOL,
    TTL_PROTOCOLS,
    TTL_STABLECOINS,
    TTL_YIELD_POOLS,
)
from data.errors import UpstreamError
from data.governor import FetchGovernor, build_cache_key, normalize_params


def _expect_list(payload: Any) -> None:
    if not isinstance(payload, list):
        raise UpstreamError(f"Expected a JSON array, got {type(payload).__name__}")


def _expect_dict(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise UpstreamError(f"Expected a JSON object, got {type(payload).__name__}")


def _expect_number(payload: Any) -> None:
    if isinstance(payload, bool) or not isinstance(payload, (int, float)):
        raise UpstreamError(f"Expected a number, got {payload!r}")


def _expect_data_envelope(payload: Any) -> None:
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise UpstreamError("Expected a JSON object with a 'data' array")


class DefiLlamaClient:
    """
    DefiLlama API client.

    Usage:
        client = MarketDataClient().defillama
        chains = client.get_chains()
        df = client.get_chain_tvl_history_df("Ethereum")
    """

    def __init__(
        self,
        governor: FetchGovernor,
        base_url: str = DEFILLAMA_BASE_URL,
        stablecoins_url: str = DEFILLAMA_STABLECOINS_URL,
        yields_url: str = DEFILLAMA_YIELDS_URL,
    ):
        """
        Initialize the DefiLlama client.

        Args:
            governor: Shared fetch governor (cache + rate limiter)
            base_url: Main API base URL (TVL, volumes, fees)
            stablecoins_url: Stablecoins API base URL
            yields_url: Yields API base URL
        """
        self.governor = governor
        self.base_url = base_url.rstrip("/")
        self.stablecoins_url = stablecoins_url.rstrip("/")
        self.yields_url = yields_url.rstrip("/")

    def _get(
        self,
        base_url: str,
        endpoint: str,
        ttl: float,
        params: dict[str, Any] | None = None,
        validate=_expect_dict,
    ) -> Any:
        params = normalize_params(params)
        return self.governor.fetch_json(
            build_cache_key(f"defillama:{endpoint}", params),
            f"{base_url}{endpoint}",
            ttl,
            params=params or None,
            validate=validate,
        )

    def get_protocols(self) -> list[dict[str, Any]]:
        """Fetch all protocols with their current TVL."""
        return self._get(self.base_url, "/protocols", TTL_PROTOCOLS, validate=_expect_list)

    def get_protocol(self, slug: str) -> dict[str, Any]:
        """
        Fetch protocol details, including historical TVL per chain.

        Args:
            slug: Protocol slug (e.g., "aave", "uniswap")
        """
        return self._get(self.base_url, f"/protocol/{slug.lower()}", TTL_PROTOCOL)

    def get_protocol_tvl(self, slug: str) -> float:
        """Fetch the current TVL of a protocol in USD."""
        value = self._get(
            self.base_url,
            f"/tvl/{slug.lower()}",
            TTL_PROTOCOL,
            validate=_expect_number,
        )
        return float(value)

    def get_chains(self) -> list[dict[str, Any]]:
        """Fetch current TVL of every chain."""
        return self._get(self.base_url, "/v2/chains", TTL_CHAINS, validate=_expect_list)

    def get_chain_tvl_history(self, chain: str | None = None) -> list[dict[str, Any]]:
        """
        Fetch historical TVL.

        Args:
            chain: Chain name (e.g., "Ethereum"); None for all chains combined

        Returns:
            List of {"date": unix_seconds, "tvl": usd}
        """
        endpoint = "/v2/historicalChainTvl"
        if chain:
            endpoint = f"{endpoint}/{chain}"
        return self._get(self.base_url, endpoint, TTL_CHAIN_TVL_HISTORY, validate=_expect_list)

    def get_chain_tvl_history_df(self, chain: str | None = None) -> pd.DataFrame:
        """
        Fetch historical TVL as a DataFrame.

        Returns:
            DataFrame with daily DatetimeIndex and a 'tvl' column
        """
        records = self.get_chain_tvl_history(chain)
        if not records:
            return pd.DataFrame(columns=["tvl"])

        df = pd.DataFrame(records)
        df["date"] = pd.to_datetime(pd.to_numeric(df["date"]), unit="s")
        df = df.set_index("date").sort_index()
        return df[["tvl"]]

    def get_stablecoins(self, include_prices: bool = True) -> list[dict[str, Any]]:
        """Fetch stablecoins with their circulating amounts."""
        data = self._get(
            self.stablecoins_url,
            "/stablecoins",
            TTL_STABLECOINS,
            {"includePrices": include_prices},
        )
        return data.get("peggedAssets", [])

    def get_yield_pools(self) -> list[dict[str, Any]]:
        """Fetch yield pools with APY and TVL."""
        data = self._get(
            self.yields_url,
            "/pools",
            TTL_YIELD_POOLS,
            validate=_expect_data_envelope,
        )
        return data["data"]

    def get_dex_overview(self, chain: str | None = None) -> dict[str, Any]:
        """Fetch DEX volume overview, optionally for one chain."""
        endpoint = "/overview/dexs"
        if chain:
            endpoint = f"{endpoint}/{chain}"
        return self._get(
            self.base_url,
            endpoint,
            TTL_DEX_OVERVIEW,
            {"excludeTotalDataChart": True, "excludeTotalDataChartBreakdown": True},
        )

    def get_fees_overview(self, chain: str | None = None) -> dict[str, Any]:
        """Fetch protocol fees overview, optionally for one chain."""
        endpoint = "/overview/fees"
        if chain:
            endpoint = f"{endpoint}/{chain}"
        return self._get(
            self.base_url,
            endpoint,
            TTL_FEES_OVERVIEW,
            {"excludeTotalDataChart": True, "excludeTotalDataChartBreakdown": True},
        )
