"""PriceSource: the uniform contract every price provider satisfies.

The aggregator only needs a ``name`` and a zero-argument coroutine returning a
price. Registered HTTP fetchers satisfy it once bound to a pair;
:class:`CallableSource` adapts any coroutine function (other SDKs, on-chain
reads, fixed test values).

.. code-block:: python

    >>> async def read_feed() -> float:
    ...     return 412.5
    >>> source = CallableSource("my-feed", read_feed)
    >>> source.name
    'my-feed'
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, runtime_checkable


@runtime_checkable
class PriceSource(Protocol):
    """A named provider of a single asset price."""

    name: str

    async def fetch(self) -> float | None:
        """Return the current price, or None if the provider had no answer."""
        ...


@dataclass(frozen=True)
class CallableSource:
    """A price source backed by a coroutine function.

    :ivar name: Unique source name.
    :ivar func: Zero-argument coroutine function returning a price or None.
    """

    name: str
    func: Callable[[], Awaitable[float | None]]

    async def fetch(self) -> float | None:
        return await self.func()
