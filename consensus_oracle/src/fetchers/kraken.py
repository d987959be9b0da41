"""Kraken fetcher.

Endpoint: https://api.kraken.com/0/public/Ticker?pair={BASE}{QUOTE}
Rate Limit: 15-20 calls/second (no key required)
"""

import logging
from typing import Any

from .base import BaseFetcher, FetchRequest, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class KrakenFetcher(BaseFetcher):
    """Fetcher for Kraken public API."""

    name = "kraken"
    BASE_URL = "https://api.kraken.com/0/public"

    # Kraken uses non-standard ticker symbols
    SYMBOL_MAP = {
        "btc": "XBT",
        "doge": "XDG",
    }

    @property
    def symbol(self) -> str:
        """Kraken pair name for the bound pair (e.g., "XBTUSD")."""
        base = self.SYMBOL_MAP.get(self.pair.base, self.pair.base.upper())
        quote = self.SYMBOL_MAP.get(self.pair.quote, self.pair.quote.upper())
        return f"{base}{quote}"

    def build_request(self) -> FetchRequest:
        return FetchRequest(f"{self.BASE_URL}/Ticker", params={"pair": self.symbol})

    def parse_price(self, payload: Any) -> float | None:
        errors = payload.get("error")
        if errors:
            logger.warning(f"[kraken] API error for {self.symbol}: {errors}")
            return None

        result = payload.get("result")
        if not result:
            logger.warning(f"[kraken] No result for {self.symbol}")
            return None

        # Result keys are Kraken's canonical pair names (e.g., "XXBTZUSD"),
        # which differ from the requested name, so take the single entry.
        pair_data = next(iter(result.values()))

        # 'c' is the last trade closed array: [price, lot volume]
        return float(pair_data["c"][0])
