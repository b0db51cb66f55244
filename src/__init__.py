"""
Coinlens - Cached, rate-limited access to cryptocurrency market data.

This package provides tools to:
- Query CoinGecko, DefiLlama and the Fear & Greed index through one client
- Cache responses in memory and serve stale data when upstreams fail
- Keep outbound calls under a fixed per-minute quota
"""

__app_name__ = "coinlens"
