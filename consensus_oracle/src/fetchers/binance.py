"""Binance spot ticker fetcher.

Endpoint: https://api.binance.com/api/v3/ticker/price?symbol={BASE}{QUOTE}
Rate Limit: 1200 requests/minute (no key required for public endpoints)

Binance lists few native USD markets, so a ``usd`` quote is served from the
``USDT`` market. USDT is treated as a USD proxy; a depegged stablecoin shows up
as a wide spread in the aggregated report rather than being corrected here.
"""

import logging
from typing import Any

from .base import BaseFetcher, FetchRequest, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class BinanceFetcher(BaseFetcher):
    """Fetcher for the Binance spot ticker endpoint."""

    name = "binance"
    BASE_URL = "https://api.binance.com/api/v3"

    # Quote currencies served from a different Binance market
    QUOTE_PROXIES = {
        "usd": "USDT",
    }

    @property
    def symbol(self) -> str:
        """Binance market symbol for the bound pair (e.g., "BCHUSDT")."""
        quote = self.QUOTE_PROXIES.get(self.pair.quote, self.pair.quote.upper())
        return f"{self.pair.base.upper()}{quote}"

    def build_request(self) -> FetchRequest:
        return FetchRequest(f"{self.BASE_URL}/ticker/price", params={"symbol": self.symbol})

    def parse_price(self, payload: Any) -> float | None:
        # Binance reports unknown symbols as {"code": -1121, "msg": "Invalid symbol."}
        if "code" in payload:
            logger.warning(f"[binance] API error for {self.symbol}: {payload.get('msg')}")
            return None
        return float(payload["price"])
