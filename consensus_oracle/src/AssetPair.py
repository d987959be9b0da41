"""AssetPair: the trading pair a set of price sources is bound to.

.. code-block:: python

    >>> pair = AssetPair.from_string("BCH/USD")
    >>> str(pair)
    'bch/usd'
    >>> pair.base
    'bch'
"""

from __future__ import annotations


class AssetPair:
    """A base/quote trading pair.

    :ivar base: Base currency symbol (lowercase).
    :ivar quote: Quote currency symbol (lowercase).
    """

    def __init__(self, base: str, quote: str) -> None:
        """Initialize an asset pair.

        :param base: Base currency symbol (e.g., "btc", "bch").
        :param quote: Quote currency symbol (e.g., "usd").
        :raises ValueError: If either symbol is empty.
        """
        base = base.strip().lower()
        quote = quote.strip().lower()
        if not base or not quote:
            raise ValueError("Pair symbols must not be empty")
        self.base = base
        self.quote = quote

    def __str__(self) -> str:
        return f"{self.base}/{self.quote}"

    def __repr__(self) -> str:
        return f"AssetPair({self.base!r}, {self.quote!r})"

    def __hash__(self) -> int:
        return hash((self.base, self.quote))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssetPair):
            return NotImplemented
        return (self.base, self.quote) == (other.base, other.quote)

    @classmethod
    def from_string(cls, pair_str: str) -> AssetPair:
        """Parse a pair string in format "base/quote".

        :param pair_str: Pair string like "btc/usd".
        :returns: New AssetPair instance.
        :raises ValueError: If pair string format is invalid.
        """
        parts = pair_str.split("/")
        if len(parts) != 2 or not all(p.strip() for p in parts):
            raise ValueError(
                f"Invalid pair format '{pair_str}'. Expected 'base/quote' (e.g., 'btc/usd')"
            )
        return cls(parts[0], parts[1])
