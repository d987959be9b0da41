"""Base fetcher interface and shared HTTP client management.

A fetcher is a price source bound to one :class:`AssetPair`. It exposes the
uniform source contract used by the aggregator::

    name: str
    async fetch() -> float | None

Concrete fetchers only describe *what* to request and *how* to read the
provider's JSON; the base class performs the request through a shared
``httpx.AsyncClient`` and converts every expected provider failure (HTTP error,
network error, malformed payload) into a logged ``None``.

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myfetcher"

        def build_request(self) -> FetchRequest:
            return FetchRequest(f"https://api.example.com/{self.pair.base}")

        def parse_price(self, payload: Any) -> float | None:
            return float(payload["price"])
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, NamedTuple

import httpx

if TYPE_CHECKING:
    from ..AssetPair import AssetPair

logger = logging.getLogger(__name__)


class FetcherError(Exception):
    """Base exception for fetcher errors."""

    pass


class FetcherConfigError(FetcherError):
    """Raised when fetcher configuration is invalid (e.g., missing API key)."""

    pass


class FetcherHTTPError(FetcherError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class FetchRequest(NamedTuple):
    """A single outbound GET request."""

    url: str
    params: dict[str, str] | None = None
    headers: dict[str, str] | None = None


class BaseFetcher(ABC):
    """Abstract base class for price fetchers.

    Subclasses must implement:
        - name: Class variable identifying the source (e.g., "coinbase")
        - build_request(): The GET request for the bound pair
        - parse_price(): Extract the price from the decoded JSON body

    :cvar name: Unique identifier for this fetcher.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar pair: The asset pair this fetcher reports.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Request timeout in seconds.
    """

    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    name: ClassVar[str] = ""

    DEFAULT_TIMEOUT = 5.0

    def __init__(
        self,
        pair: AssetPair,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize the fetcher.

        :param pair: Asset pair to report prices for.
        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Request timeout in seconds (default: 5).
        """
        self.pair = pair
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.pair)!r})"

    @property
    def has_api_key(self) -> bool:
        """Check if this fetcher has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all fetcher instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseFetcher._shared_client is None or BaseFetcher._shared_client.is_closed:
            BaseFetcher._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
        return BaseFetcher._shared_client

    @classmethod
    def set_shared_client(cls, client: httpx.AsyncClient | None) -> None:
        """Replace the shared HTTP client (e.g., one with a custom transport).

        :param client: Client to use for all fetchers, or None to reset.
        """
        BaseFetcher._shared_client = client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseFetcher._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseFetcher._shared_client = None

    def supports_pair(self) -> bool:
        """Check if this fetcher can quote the bound pair.

        Override in subclasses to restrict supported pairs.
        """
        return True

    @abstractmethod
    def build_request(self) -> FetchRequest:
        """Build the GET request for the bound pair."""

    @abstractmethod
    def parse_price(self, payload: Any) -> float | None:
        """Extract the price from a decoded JSON payload.

        May raise KeyError, IndexError, TypeError or ValueError on malformed
        payloads; those are reported as a failed fetch.

        :param payload: Decoded JSON body.
        :returns: Price as float, or None if the provider reported no price.
        """

    async def fetch(self) -> float | None:
        """Fetch the current price for the bound pair.

        Zero or negative prices are returned unchanged; validation is the
        aggregator's job.

        :returns: Current price as float, or None if fetch failed.
        """
        if not self.supports_pair():
            logger.warning(f"[{self.name}] Pair {self.pair} is not supported")
            return None

        request = self.build_request()
        try:
            response = await self._get(
                request.url, params=request.params, headers=request.headers
            )
            return self.parse_price(response.json())
        except FetcherError as e:
            logger.warning(f"[{self.name}] Failed to fetch {self.pair}: {e}")
            return None
        except (KeyError, IndexError, ValueError, TypeError) as e:
            logger.warning(f"[{self.name}] Failed to parse response for {self.pair}: {e!r}")
            return None

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise FetcherHTTPError(response.status_code, response.text[:200])
        return response


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(
    name: str,
    pair: AssetPair,
    api_key: str | None = None,
    timeout: float | None = None,
) -> BaseFetcher:
    """Get a fetcher instance bound to a pair.

    :param name: Fetcher name (e.g., "coinbase", "kraken").
    :param pair: Asset pair to quote.
    :param api_key: Optional API key.
    :param timeout: Optional request timeout in seconds.
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](pair, api_key=api_key, timeout=timeout)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
