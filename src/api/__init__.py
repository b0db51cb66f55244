"""
API client modules for external data sources.

Data source strategy:
- CoinGecko: Prices, market listings, coin metadata
- DefiLlama: DeFi total value locked, stablecoins, yields
- Alternative.me: Crypto Fear & Greed sentiment index

All three share one cache and one rate-limit window per MarketDataClient.
"""

from .coingecko import Coin, CoinGeckoClient
from .defillama import DefiLlamaClient
from .feargreed import FearGreedClient, FearGreedReading
from .market_data import MarketDataClient
from .transport import HttpTransport

__all__ = [
    "MarketDataClient",
    "HttpTransport",
    # CoinGecko
    "Coin",
    "CoinGeckoClient",
    # DefiLlama
    "DefiLlamaClient",
    # Fear & Greed
    "FearGreedClient",
    "FearGreedReading",
]
