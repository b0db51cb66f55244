"""
Tests for the command-line entry point.

The MarketDataClient is replaced by a mock so no network calls are made.
"""

import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

import main
from api.coingecko import Coin
from api.feargreed import FearGreedReading
from data.cache import CacheStats
from data.errors import RateLimited, TransportError
from data.rate_limiter import RateLimitStatus
from utils.formatting import FEAR_GREED_COLORS


@pytest.fixture
def mock_client():
    """Patch MarketDataClient in main and return the instance commands receive."""
    with patch.object(main, "MarketDataClient") as client_cls:
        client = MagicMock()
        client_cls.return_value.__enter__.return_value = client
        client.config.max_requests_per_window = 25
        client.config.rate_limit_window = 60.0
        yield client


@pytest.fixture(autouse=True)
def no_log_file(monkeypatch):
    monkeypatch.setattr(main, "setup_logging", MagicMock())


class TestMainRouting:
    """Tests for argument parsing and dispatch."""

    def test_no_command_prints_help(self, capsys):
        assert main.main([]) == 0
        assert "usage" in capsys.readouterr().out

    def test_verbose_without_log_file_writes_no_file(self, mock_client):
        main.main(["--verbose", "status"])

        main.setup_logging.assert_called_once_with(
            level=logging.DEBUG, log_file=None, verbose=True
        )

    def test_log_file_option(self, mock_client, tmp_path):
        log_file = tmp_path / "coinlens.log"

        main.main(["--log-file", str(log_file), "status"])

        assert main.setup_logging.call_args[1]["log_file"] == log_file

    def test_invalid_config(self, monkeypatch):
        monkeypatch.setenv("COINLENS_MAX_REQUESTS", "0")

        assert main.main(["status"]) == 1

    def test_market_data_error_exit_code(self, mock_client):
        mock_client.coingecko.get_simple_price.side_effect = TransportError("down")

        assert main.main(["price", "bitcoin"]) == 1

    def test_rate_limited_exit_code(self, mock_client):
        status = RateLimitStatus(remaining=0, window_reset_at=60.0, is_blocked=True, retry_after=30.0)
        mock_client.defillama.get_chains.side_effect = RateLimited(status)

        assert main.main(["tvl"]) == 1


class TestCommands:
    """Tests for individual commands."""

    def test_price(self, mock_client):
        mock_client.coingecko.get_simple_price.return_value = {
            "bitcoin": {"usd": 64000.0, "usd_24h_change": 1.2},
        }

        assert main.main(["price", "bitcoin", "--vs", "usd"]) == 0
        mock_client.coingecko.get_simple_price.assert_called_once_with(
            ["bitcoin"], vs_currencies=["usd"]
        )

    def test_price_unknown_coin(self, mock_client):
        mock_client.coingecko.get_simple_price.return_value = {}

        assert main.main(["price", "not-a-coin"]) == 1

    def test_markets(self, mock_client):
        mock_client.coingecko.get_top_coins.return_value = [
            Coin(id="bitcoin", symbol="btc", name="Bitcoin", current_price=64000.0,
                 market_cap=1.26e12, market_cap_rank=1, price_change_percentage_24h=1.5),
        ]

        assert main.main(["markets", "--top", "1"]) == 0
        mock_client.coingecko.get_top_coins.assert_called_once_with(n=1, vs_currency="usd")

    def test_tvl_top_chains(self, mock_client):
        mock_client.defillama.get_chains.return_value = [
            {"name": "Solana", "tvl": 5e9},
            {"name": "Ethereum", "tvl": 5e10},
        ]

        assert main.main(["tvl", "--top", "2"]) == 0

    def test_tvl_unknown_chain(self, mock_client):
        mock_client.defillama.get_chains.return_value = [{"name": "Ethereum", "tvl": 5e10}]

        assert main.main(["tvl", "--chain", "Atlantis"]) == 1
        assert main.main(["tvl", "--chain", "ethereum"]) == 0

    def test_fear_greed_with_history(self, mock_client):
        mock_client.sentiment.get_index.return_value = FearGreedReading(
            value=72,
            classification="Greed",
            timestamp=datetime(2024, 1, 2, tzinfo=timezone.utc),
        )
        mock_client.sentiment.get_history_df.return_value = pd.DataFrame(
            {"value": [20, 72], "classification": ["Extreme Fear", "Greed"]}
        )

        assert main.main(["fear-greed", "--days", "2"]) == 0
        mock_client.sentiment.get_history_df.assert_called_once_with(days=2)

    def test_fear_greed_shows_color(self, mock_client, caplog):
        mock_client.sentiment.get_index.return_value = FearGreedReading(
            value=10,
            classification="Extreme Fear",
            timestamp=datetime(2024, 1, 2, tzinfo=timezone.utc),
        )

        with caplog.at_level(logging.INFO, logger="coinlens"):
            assert main.main(["fear-greed"]) == 0

        assert FEAR_GREED_COLORS["Extreme Fear"] in caplog.text
        mock_client.sentiment.get_history_df.assert_not_called()

    def test_status(self, mock_client):
        mock_client.get_rate_limit_status.return_value = RateLimitStatus(
            remaining=0, window_reset_at=120.0, is_blocked=True, retry_after=12.0
        )
        mock_client.get_cache_stats.return_value = CacheStats(size=1, keys=("coingecko:/ping",))

        assert main.main(["status"]) == 0
