#!/usr/bin/env python3
"""Consensus Price Oracle.

Fetches a cryptocurrency price from multiple independent sources, computes a
median consensus with a confidence score, checks it against recent history,
and keeps doing so on a fixed cadence.
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.errors import ConfigurationError, QuorumFailure
from .src.fetchers import BaseFetcher, get_available_fetchers
from .src.OracleConfig import (
    DEFAULT_PAIR,
    DEFAULT_SOURCES,
    OracleConfig,
    parse_api_keys,
    parse_env_api_keys,
    split_csv,
)
from .src.PriceOracle import PriceOracle

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_parser(environ=None) -> argparse.ArgumentParser:
    """Build the CLI parser with defaults taken from the environment.

    :param environ: Environment mapping (default: os.environ).
    :returns: Configured parser.
    """
    environ = os.environ if environ is None else environ
    available_sources = get_available_fetchers()

    parser = argparse.ArgumentParser(
        description="Consensus Price Oracle: multi-source aggregated price monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(available_sources)}

Examples:
  # Monitor BCH/USD every 30 seconds
  python -m consensus_oracle.main --pair bch/usd --poll-interval 30

  # One round from three sources, then exit
  python -m consensus_oracle.main --pair btc/usd --sources coinbase,kraken,bitstamp --once

  # With an API key for CoinGecko's demo tier
  python -m consensus_oracle.main --api-keys coingecko=demo:CG-xxxx

Environment variables (CLI args take precedence):
  PAIR, SOURCES, FETCH_TIMEOUT, POLL_INTERVAL, HISTORY_CAPACITY,
  DEVIATION_THRESHOLD_PERCENT, MIN_HISTORY_FOR_VALIDATION, API_KEYS,
  API_KEY_COINGECKO, etc.
""",
    )

    parser.add_argument(
        "--pair",
        type=str,
        help="Trading pair (e.g., bch/usd)",
        default=environ.get("PAIR") or DEFAULT_PAIR,
    )

    parser.add_argument(
        "--sources",
        type=str,
        help=f"Comma-separated price sources. Available: {', '.join(available_sources)}",
        default=environ.get("SOURCES") or ",".join(DEFAULT_SOURCES),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Per-source fetch timeout in seconds (default: 5.0)",
        default=float(environ.get("FETCH_TIMEOUT") or "5.0"),
    )

    parser.add_argument(
        "--poll-interval",
        dest="poll_interval",
        type=float,
        help="Seconds between aggregation rounds (default: 60)",
        default=float(environ.get("POLL_INTERVAL") or "60.0"),
    )

    parser.add_argument(
        "--history-capacity",
        dest="history_capacity",
        type=int,
        help="Number of past medians kept for validation (default: 100)",
        default=int(environ.get("HISTORY_CAPACITY") or "100"),
    )

    parser.add_argument(
        "--deviation-threshold",
        dest="deviation_threshold",
        type=float,
        help="Percent deviation from the recent average flagged as anomalous (default: 10.0)",
        default=float(environ.get("DEVIATION_THRESHOLD_PERCENT") or "10.0"),
    )

    parser.add_argument(
        "--min-history",
        dest="min_history",
        type=int,
        help="Medians required before validation starts (default: 5)",
        default=int(environ.get("MIN_HISTORY_FOR_VALIDATION") or "5"),
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., coingecko=demo:CG-xxxx)",
        default=environ.get("API_KEYS"),
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single aggregation round and exit",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def config_from_args(args: argparse.Namespace, environ=None) -> OracleConfig:
    """Turn parsed CLI arguments into a validated configuration.

    :param args: Parsed arguments.
    :param environ: Environment mapping for API_KEY_<SOURCE> variables.
    :returns: Oracle configuration.
    :raises ConfigurationError: If an option is out of range.
    """
    api_keys = parse_env_api_keys(environ)
    api_keys.update(parse_api_keys(args.api_keys))

    return OracleConfig(
        pair=args.pair.strip(),
        sources=split_csv(args.sources),
        fetch_timeout=args.fetch_timeout,
        poll_interval=args.poll_interval,
        history_capacity=args.history_capacity,
        deviation_threshold_percent=args.deviation_threshold,
        min_history_for_validation=args.min_history,
        api_keys=api_keys,
    )


async def run_once(oracle: PriceOracle) -> int:
    """Run one round and log the result.

    :returns: Process exit code.
    """
    try:
        result = await oracle.tick()
    except QuorumFailure as e:
        logger.error(f"{oracle.pair}: {e}")
        return 1
    finally:
        await BaseFetcher.close_shared_client()

    report = result.report
    logger.info(f"Median:      ${report.median:.6f}")
    logger.info(f"Mean:        ${report.mean:.6f}")
    logger.info(f"Range:       ${report.min:.6f} - ${report.max:.6f}")
    logger.info(f"Sources:     {report.successful_sources}/{report.total_sources}")
    logger.info(f"Confidence:  {result.confidence.confidence}%")
    logger.info(f"Spread:      {result.confidence.spread_percent}%")
    return 0


def main() -> None:
    """Main entry point for the Consensus Price Oracle CLI."""
    parser = build_parser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = config_from_args(args)
        oracle = PriceOracle.from_config(config)
    except ConfigurationError as e:
        parser.error(str(e))

    # Log configuration
    logger.info("=" * 60)
    logger.info("Consensus Price Oracle - Multi-Source Aggregation")
    logger.info("=" * 60)
    logger.info(f"Trading Pair:      {config.pair}")
    logger.info(f"Sources:           {', '.join(config.sources)}")
    logger.info(f"Fetch Timeout:     {config.fetch_timeout}s")
    logger.info(f"Poll Interval:     {config.poll_interval}s")
    logger.info(f"History Capacity:  {config.history_capacity}")
    logger.info(f"Deviation Limit:   {config.deviation_threshold_percent}%")
    logger.info(f"Min History:       {config.min_history_for_validation}")
    if config.api_keys:
        logger.info(f"API Keys:          {', '.join(config.api_keys.keys())}")
    logger.info("=" * 60)

    try:
        if args.once:
            sys.exit(asyncio.run(run_once(oracle)))
        asyncio.run(oracle.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
