"""PriceAggregator: concurrent fan-out to price sources and consensus statistics.

Algorithm:
    1. Call every source's fetch() concurrently, each under its own timeout
    2. Wait for all calls to settle (no short-circuit on first success)
    3. Discard failures: exceptions, timeouts, None, zero/negative prices
    4. Fail the round with QuorumFailure if nothing valid remains
    5. Compute median, mean, min and max across the valid prices

.. code-block:: python

    >>> samples = [PriceSample("a", 10.0), PriceSample("b", 20.0), PriceSample("c", 30.0)]
    >>> report = summarize(samples, total_sources=4)
    >>> report.median, report.mean
    (20.0, 20.0)
    >>> report.successful_sources, report.total_sources
    (3, 4)
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from statistics import fmean
from statistics import median as _median
from typing import Sequence

from .errors import ConfigurationError, QuorumFailure, SourceFailure
from .PriceSource import PriceSource

logger = logging.getLogger(__name__)

# Below this many valid sources a single provider can move the median.
RECOMMENDED_QUORUM = 2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PriceSample:
    """One observation from one source in one aggregation round.

    :ivar source_name: Name of the source that produced the price.
    :ivar price: Observed price.
    :ivar fetched_at: When the price was received.
    """

    source_name: str
    price: float
    fetched_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class AggregatedPriceReport:
    """Summary statistics of one aggregation round.

    :ivar median: Median of valid prices (the consensus price).
    :ivar mean: Arithmetic mean of valid prices.
    :ivar min: Lowest valid price.
    :ivar max: Highest valid price.
    :ivar per_source: Valid price keyed by source name.
    :ivar successful_sources: Number of sources that produced a valid price.
    :ivar total_sources: Number of sources queried.
    :ivar timestamp: When the report was produced.
    """

    median: float
    mean: float
    min: float
    max: float
    per_source: dict[str, float]
    successful_sources: int
    total_sources: int
    timestamp: datetime

    @property
    def failed_sources(self) -> int:
        """Number of sources excluded from this round."""
        return self.total_sources - self.successful_sources

    @property
    def is_low_trust(self) -> bool:
        """True if fewer than the recommended quorum of sources answered."""
        return self.successful_sources < RECOMMENDED_QUORUM


def summarize(
    samples: Sequence[PriceSample],
    total_sources: int,
    timestamp: datetime | None = None,
) -> AggregatedPriceReport:
    """Fold valid samples into an aggregated report.

    Samples are assumed to be already validated (positive, finite, one per
    source).

    :param samples: Valid samples from one round.
    :param total_sources: Number of sources queried in the round.
    :param timestamp: Report time (default: now, UTC).
    :returns: Aggregated report.
    :raises QuorumFailure: If samples is empty.
    """
    if not samples:
        raise QuorumFailure()

    prices = [s.price for s in samples]
    return AggregatedPriceReport(
        median=float(_median(prices)),
        mean=fmean(prices),
        min=min(prices),
        max=max(prices),
        per_source={s.source_name: s.price for s in samples},
        successful_sources=len(samples),
        total_sources=total_sources,
        timestamp=timestamp or _utcnow(),
    )


class PriceAggregator:
    """Queries a set of price sources concurrently and aggregates the answers.

    Partial failure is expected: any source may time out, error or return
    garbage, and the round still succeeds as long as one valid price arrives.

    :ivar fetch_timeout: Default per-source timeout in seconds.
    """

    DEFAULT_FETCH_TIMEOUT = 5.0

    def __init__(self, fetch_timeout: float = DEFAULT_FETCH_TIMEOUT) -> None:
        """Initialize the aggregator.

        :param fetch_timeout: Per-source timeout in seconds (default: 5.0).
        :raises ConfigurationError: If fetch_timeout is not positive.
        """
        if fetch_timeout <= 0:
            raise ConfigurationError("fetch_timeout must be positive")
        self.fetch_timeout = fetch_timeout

    @staticmethod
    def check_sources(sources: Sequence[PriceSource]) -> None:
        """Validate a source list.

        :param sources: Sources to validate.
        :raises ConfigurationError: If the list is empty or names repeat.
        """
        if not sources:
            raise ConfigurationError("At least one price source must be configured")
        names = [s.name for s in sources]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate source names: {duplicates}")

    async def aggregate(
        self,
        sources: Sequence[PriceSource],
        timeout: float | None = None,
    ) -> AggregatedPriceReport:
        """Fetch from all sources and aggregate the valid prices.

        :param sources: Sources to query.
        :param timeout: Per-source timeout in seconds (default: fetch_timeout).
        :returns: Aggregated report over the sources that succeeded.
        :raises ConfigurationError: If sources is empty or has duplicate names.
        :raises QuorumFailure: If no source produced a valid price.
        """
        self.check_sources(sources)
        if timeout is None:
            timeout = self.fetch_timeout
        elif timeout <= 0:
            raise ConfigurationError("timeout must be positive")

        outcomes = await asyncio.gather(
            *(self._fetch_one(source, timeout) for source in sources)
        )

        samples: list[PriceSample] = []
        failures: list[SourceFailure] = []
        for outcome in outcomes:
            if isinstance(outcome, SourceFailure):
                failures.append(outcome)
            else:
                samples.append(outcome)

        for failure in failures:
            logger.warning(f"Excluding source: {failure}")

        if not samples:
            raise QuorumFailure(failures)

        report = summarize(samples, total_sources=len(sources))
        if report.is_low_trust:
            logger.warning(
                f"Only {report.successful_sources}/{report.total_sources} sources "
                f"answered; median ${report.median:.6f} is low-trust"
            )
        return report

    async def _fetch_one(
        self, source: PriceSource, timeout: float
    ) -> PriceSample | SourceFailure:
        """Fetch one source, converting every failure into a SourceFailure.

        :param source: Source to query.
        :param timeout: Timeout in seconds.
        :returns: A valid sample, or the reason the source was excluded.
        """
        try:
            price = await asyncio.wait_for(source.fetch(), timeout=timeout)
        except asyncio.TimeoutError:
            return SourceFailure(source.name, f"timeout after {timeout}s")
        except Exception as e:  # Adapter bug or unexpected provider error
            return SourceFailure(source.name, f"error: {e!r}")

        if price is None:
            return SourceFailure(source.name, "no price")
        try:
            price = float(price)
        except (TypeError, ValueError):
            return SourceFailure(source.name, f"non-numeric price {price!r}")
        if not math.isfinite(price) or price <= 0:
            return SourceFailure(source.name, f"invalid price {price}")

        logger.debug(f"[{source.name}] ${price:.6f}")
        return PriceSample(source.name, price)
