"""CoinGecko fetcher.

Endpoint: https://api.coingecko.com/api/v3/simple/price?ids={id}&vs_currencies={quote}
Rate Limit: 30 calls/min (free), higher with API key

Besides the spot price used by the aggregator, CoinGecko can quote several
currencies in one call and serve a historical daily price; both are exposed
as extra helpers on :class:`CoinGeckoFetcher`.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any

from .base import (
    BaseFetcher,
    FetcherConfigError,
    FetcherError,
    FetchRequest,
    register_fetcher,
)

if TYPE_CHECKING:
    from ..AssetPair import AssetPair

logger = logging.getLogger(__name__)


@register_fetcher
class CoinGeckoFetcher(BaseFetcher):
    """Fetcher for CoinGecko API.

    API tiers:
        - Free: api.coingecko.com (no key, 30 calls/min)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    To use a demo key, prefix with "demo:": API_KEY_COINGECKO=demo:CG-xxxxx
    Pro keys need no prefix: API_KEY_COINGECKO=xxxxx
    """

    name = "coingecko"
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"

    # Map common symbols to CoinGecko IDs
    COIN_IDS = {
        "btc": "bitcoin",
        "bch": "bitcoin-cash",
        "eth": "ethereum",
        "etc": "ethereum-classic",
        "ltc": "litecoin",
        "doge": "dogecoin",
        "xrp": "ripple",
        "xlm": "stellar",
        "sol": "solana",
        "dot": "polkadot",
        "atom": "cosmos",
        "algo": "algorand",
        "xtz": "tezos",
        "trx": "tron",
        "bnb": "binancecoin",
        "ar": "arweave",
        "stx": "blockstack",
        "luna": "terra-luna-2",
        "usdt": "tether",
        "usdc": "usd-coin",
    }

    def __init__(
        self,
        pair: AssetPair,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize with optional demo: prefix handling."""
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]
        super().__init__(pair, api_key=api_key, timeout=timeout)

    @property
    def base_url(self) -> str:
        """Return appropriate base URL based on API key type."""
        if not self.has_api_key or self._is_demo:
            return self.BASE_URL_FREE
        return self.BASE_URL_PRO

    @property
    def coin_id(self) -> str | None:
        """CoinGecko coin ID for the bound pair's base currency."""
        return self.COIN_IDS.get(self.pair.base)

    def _headers(self) -> dict[str, str] | None:
        if not self.has_api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return {header_name: self.api_key}

    def supports_pair(self) -> bool:
        return self.coin_id is not None

    def build_request(self) -> FetchRequest:
        return FetchRequest(
            f"{self.base_url}/simple/price",
            params={"ids": self.coin_id, "vs_currencies": self.pair.quote},
            headers=self._headers(),
        )

    def parse_price(self, payload: Any) -> float | None:
        coin = payload.get(self.coin_id)
        if coin is None:
            logger.warning(f"[coingecko] Coin {self.coin_id} not in response: {payload}")
            return None
        if self.pair.quote not in coin:
            logger.warning(
                f"[coingecko] Quote {self.pair.quote} not available for {self.coin_id}"
            )
            return None
        return float(coin[self.pair.quote])

    async def fetch_multi_currency(
        self, quotes: tuple[str, ...] = ("usd", "eur", "btc")
    ) -> dict[str, float]:
        """Fetch the base currency's price in several quote currencies at once.

        :param quotes: Quote currencies to request.
        :returns: Dict mapping quote currency to price; quotes CoinGecko did
            not return are omitted.
        :raises FetcherConfigError: If the base currency has no CoinGecko ID.
        :raises FetcherError: On HTTP or network failure.
        """
        if self.coin_id is None:
            raise FetcherConfigError(f"[coingecko] Unknown coin: {self.pair.base}")

        wanted = [q.lower() for q in quotes]
        response = await self._get(
            f"{self.base_url}/simple/price",
            params={"ids": self.coin_id, "vs_currencies": ",".join(wanted)},
            headers=self._headers(),
        )
        coin = response.json().get(self.coin_id, {})
        return {q: float(coin[q]) for q in wanted if q in coin}

    async def fetch_historical(self, day: date) -> float | None:
        """Fetch the bound pair's price on a past day.

        :param day: Calendar day to look up.
        :returns: Price in the pair's quote currency, or None if unavailable.
        """
        if self.coin_id is None:
            logger.warning(f"[coingecko] Unknown coin: {self.pair.base}")
            return None

        try:
            response = await self._get(
                f"{self.base_url}/coins/{self.coin_id}/history",
                params={"date": day.strftime("%d-%m-%Y"), "localization": "false"},
                headers=self._headers(),
            )
            prices = response.json()["market_data"]["current_price"]
            return float(prices[self.pair.quote])
        except FetcherError as e:
            logger.warning(f"[coingecko] Failed to fetch history for {self.pair}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[coingecko] No historical price for {self.pair} on {day}: {e!r}")
            return None
