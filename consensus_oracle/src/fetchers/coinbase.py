"""Coinbase exchange-rates fetcher.

Endpoint: https://api.coinbase.com/v2/exchange-rates?currency={BASE}
Rate Limit: 10 requests/second (public endpoint, no key required)
"""

import logging
from typing import Any

from .base import BaseFetcher, FetchRequest, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinbaseFetcher(BaseFetcher):
    """Fetcher for the Coinbase exchange-rates API.

    A single response carries the base currency's rate against every quote
    Coinbase knows about, so any quote currency works.
    """

    name = "coinbase"
    BASE_URL = "https://api.coinbase.com/v2"

    def build_request(self) -> FetchRequest:
        return FetchRequest(
            f"{self.BASE_URL}/exchange-rates",
            params={"currency": self.pair.base.upper()},
        )

    def parse_price(self, payload: Any) -> float | None:
        rates = payload["data"]["rates"]
        quote = self.pair.quote.upper()
        if quote not in rates:
            logger.warning(f"[coinbase] No {quote} rate for {self.pair.base.upper()}")
            return None
        return float(rates[quote])
