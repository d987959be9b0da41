"""
Price fetchers for multiple API sources.

Every fetcher is bound to one asset pair and satisfies the price source
contract (``name`` + ``async fetch()``), so it can be handed straight to the
aggregator.

Usage:
    from consensus_oracle.src.AssetPair import AssetPair
    from consensus_oracle.src.fetchers import get_fetcher, get_available_fetchers

    get_available_fetchers()
    # ['binance', 'bitstamp', 'coinbase', 'coingecko', 'kraken']

    fetcher = get_fetcher("kraken", AssetPair("bch", "usd"))
    price = await fetcher.fetch()
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    FetchRequest,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .binance import BinanceFetcher
from .bitstamp import BitstampFetcher
from .coinbase import CoinbaseFetcher
from .coingecko import CoinGeckoFetcher
from .kraken import KrakenFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "FetchRequest",
    "FetcherError",
    "FetcherConfigError",
    "FetcherHTTPError",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "FETCHER_REGISTRY",
    # Fetcher implementations
    "BinanceFetcher",
    "BitstampFetcher",
    "CoinbaseFetcher",
    "CoinGeckoFetcher",
    "KrakenFetcher",
]
