"""Bitstamp fetcher.

Endpoint: https://www.bitstamp.net/api/v2/ticker/{base}{quote}/
Rate Limit: High (no key required)
"""

import logging
from typing import Any

from .base import BaseFetcher, FetchRequest, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class BitstampFetcher(BaseFetcher):
    """Fetcher for Bitstamp public API.

    Supports major fiat and stablecoin quotes. No API key required.
    """

    name = "bitstamp"
    BASE_URL = "https://www.bitstamp.net/api/v2"

    SUPPORTED_QUOTES = frozenset({"usd", "eur", "gbp", "usdt", "usdc", "btc"})

    def supports_pair(self) -> bool:
        return self.pair.quote in self.SUPPORTED_QUOTES

    def build_request(self) -> FetchRequest:
        return FetchRequest(f"{self.BASE_URL}/ticker/{self.pair.base}{self.pair.quote}/")

    def parse_price(self, payload: Any) -> float | None:
        if "last" not in payload:
            logger.warning(f"[bitstamp] No 'last' price for {self.pair}: {payload}")
            return None
        return float(payload["last"])
