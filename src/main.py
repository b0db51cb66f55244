"""
Coinlens - Cryptocurrency Market Data

Command-line entry point.

Usage:
    python -m main [command] [options]

Commands:
    price         Show current prices for one or more coins
    markets       Show the top coins by market cap
    tvl           Show DeFi total value locked per chain
    fear-greed    Show the Crypto Fear & Greed index
    status        Show cache and rate-limit status

Examples:
    # Bitcoin and Ethereum in USD and EUR
    python -m main price bitcoin ethereum --vs usd eur

    # Top 20 coins
    python -m main markets --top 20

    # Ethereum TVL
    python -m main tvl --chain Ethereum

    # Index over the last week
    python -m main fear-greed --days 7
"""

import argparse
import logging
import sys
from pathlib import Path

from api.market_data import MarketDataClient
from config import ClientConfig
from data.errors import MarketDataError
from utils.formatting import (
    classify_fear_greed,
    fear_greed_color,
    format_large_number,
    format_percent,
    format_price,
)
from utils.logging import get_logger, setup_logging

# Module logger
logger = get_logger(__name__)


def cmd_price(args: argparse.Namespace, client: MarketDataClient) -> int:
    """Show current prices."""
    prices = client.coingecko.get_simple_price(args.coins, vs_currencies=args.vs)

    missing = [coin for coin in args.coins if coin not in prices]
    for coin_id in args.coins:
        if coin_id not in prices:
            continue
        quote = prices[coin_id]
        for currency in args.vs:
            change = quote.get(f"{currency}_24h_change")
            logger.info(
                "%-12s %18s  %9s",
                coin_id,
                format_price(quote.get(currency), currency),
                format_percent(change),
            )

    if missing:
        logger.warning("Unknown coin IDs: %s", ", ".join(missing))
        return 1
    return 0


def cmd_markets(args: argparse.Namespace, client: MarketDataClient) -> int:
    """Show the top coins by market cap."""
    coins = client.coingecko.get_top_coins(n=args.top, vs_currency=args.vs)

    logger.info("%4s  %-20s %16s %12s %9s", "#", "Name", "Price", "Market Cap", "24h")
    logger.info("-" * 66)
    for coin in coins:
        logger.info(
            "%4s  %-20s %16s %12s %9s",
            coin.market_cap_rank or "-",
            coin.name[:20],
            format_price(coin.current_price, args.vs),
            format_large_number(coin.market_cap),
            format_percent(coin.price_change_percentage_24h),
        )
    return 0


def cmd_tvl(args: argparse.Namespace, client: MarketDataClient) -> int:
    """Show total value locked per chain."""
    chains = client.defillama.get_chains()

    if args.chain:
        matches = [c for c in chains if c.get("name", "").lower() == args.chain.lower()]
        if not matches:
            logger.error("Unknown chain: %s", args.chain)
            return 1
        chain = matches[0]
        logger.info("%s TVL: $%s", chain["name"], format_large_number(chain.get("tvl")))
        return 0

    chains = sorted(chains, key=lambda c: c.get("tvl") or 0, reverse=True)
    for i, chain in enumerate(chains[: args.top], start=1):
        logger.info(
            "%3d. %-20s $%s",
            i,
            chain.get("name", "?"),
            format_large_number(chain.get("tvl")),
        )
    return 0


def cmd_fear_greed(args: argparse.Namespace, client: MarketDataClient) -> int:
    """Show the Fear & Greed index."""
    reading = client.sentiment.get_index()
    logger.info(
        "Fear & Greed: %d (%s, %s) as of %s",
        reading.value,
        reading.classification,
        fear_greed_color(reading.classification),
        reading.timestamp.date(),
    )

    if args.days > 1:
        df = client.sentiment.get_history_df(days=args.days)
        mean = df["value"].mean()
        logger.info(
            "Last %d days: min %d, max %d, mean %.1f (%s)",
            len(df),
            df["value"].min(),
            df["value"].max(),
            mean,
            classify_fear_greed(round(mean)),
        )
    return 0


def cmd_status(args: argparse.Namespace, client: MarketDataClient) -> int:
    """Show cache and rate-limit status."""
    config = client.config
    status = client.get_rate_limit_status()
    stats = client.get_cache_stats()

    logger.info("Rate limit: %d requests per %.0fs", config.max_requests_per_window,
                config.rate_limit_window)
    logger.info("  Remaining: %d", status.remaining)
    logger.info("  Blocked: %s", "yes" if status.is_blocked else "no")
    if status.is_blocked:
        logger.info("  Resets in: %.1fs", status.retry_after)

    logger.info("Cache entries: %d", stats.size)
    for key in stats.keys:
        logger.debug("  - %s", key)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="coinlens",
        description="Cached, rate-limited cryptocurrency market data",
    )

    # Global arguments
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Log to file (in addition to console)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # price command
    price_parser = subparsers.add_parser("price", help="Show current prices")
    price_parser.add_argument("coins", nargs="+", help="CoinGecko coin IDs")
    price_parser.add_argument(
        "--vs",
        nargs="+",
        default=["usd"],
        help="Quote currencies (default: usd)",
    )

    # markets command
    markets_parser = subparsers.add_parser("markets", help="Show top coins by market cap")
    markets_parser.add_argument(
        "--top",
        "-n",
        type=int,
        default=20,
        help="Number of coins to show (default: 20)",
    )
    markets_parser.add_argument("--vs", default="usd", help="Quote currency (default: usd)")

    # tvl command
    tvl_parser = subparsers.add_parser("tvl", help="Show DeFi TVL per chain")
    tvl_parser.add_argument("--chain", help="Show a single chain")
    tvl_parser.add_argument(
        "--top",
        "-n",
        type=int,
        default=10,
        help="Number of chains to show (default: 10)",
    )

    # fear-greed command
    fng_parser = subparsers.add_parser("fear-greed", help="Show the Fear & Greed index")
    fng_parser.add_argument(
        "--days",
        type=int,
        default=1,
        help="Also summarize the last N days (default: 1, today only)",
    )

    # status command
    subparsers.add_parser("status", help="Show cache and rate-limit status")

    args = parser.parse_args(argv)

    # Setup logging based on global args
    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(level=log_level, log_file=args.log_file, verbose=args.verbose)

    if args.command is None:
        parser.print_help()
        return 0

    # Route to command handler
    commands = {
        "price": cmd_price,
        "markets": cmd_markets,
        "tvl": cmd_tvl,
        "fear-greed": cmd_fear_greed,
        "status": cmd_status,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        config = ClientConfig.from_env()
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    try:
        with MarketDataClient(config) as client:
            return handler(args, client)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except MarketDataError as e:
        logger.error("%s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
