"""ConfidenceScorer: a 0-100 trust score for an aggregated price.

The score averages two equally weighted components:

- spread confidence: ``max(0, 100 - spread_percent * 2)``, so sources that
  agree exactly score 100 and a 50% (or wider) max/min spread scores 0
- source confidence: the share of configured sources that answered

This is a simple, auditable heuristic, not a statistical confidence interval.
It is monotonic: more agreement or more answering sources never lowers it.

.. code-block:: python

    >>> result = ConfidenceScorer().score(report)  # 4/4 sources, 1% spread
    >>> result.confidence
    99
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ConfigurationError
from .PriceAggregator import AggregatedPriceReport


@dataclass(frozen=True)
class ConfidenceResult:
    """Confidence assessment of one aggregated price.

    :ivar price: The consensus (median) price.
    :ivar confidence: Overall score, 0-100.
    :ivar spread_percent: (max - min) / median, in percent, rounded to 2 places.
    :ivar source_count: Number of sources that answered.
    :ivar spread_confidence: Spread component, 0-100.
    :ivar source_confidence: Source-ratio component, 0-100.
    """

    price: float
    confidence: int
    spread_percent: float
    source_count: int
    spread_confidence: float
    source_confidence: float


class ConfidenceScorer:
    """Scores aggregated reports by source agreement and coverage.

    :ivar spread_penalty: Confidence points lost per percent of spread.
    """

    def __init__(self, spread_penalty: float = 2.0) -> None:
        """Initialize the scorer.

        :param spread_penalty: Points lost per percent of spread (default: 2.0,
            i.e. a 50% spread zeroes the spread component).
        :raises ConfigurationError: If spread_penalty is not positive.
        """
        if spread_penalty <= 0:
            raise ConfigurationError("spread_penalty must be positive")
        self.spread_penalty = spread_penalty

    def score(
        self,
        report: AggregatedPriceReport,
        total_configured_sources: int | None = None,
    ) -> ConfidenceResult:
        """Score an aggregated report.

        :param report: Report to score.
        :param total_configured_sources: Number of configured sources (default:
            report.total_sources).
        :returns: Confidence result.
        :raises ConfigurationError: If total_configured_sources is not positive.
        """
        total = (
            report.total_sources
            if total_configured_sources is None
            else total_configured_sources
        )
        if total <= 0:
            raise ConfigurationError("total_configured_sources must be positive")

        spread_percent = (report.max - report.min) / report.median * 100
        spread_confidence = max(0.0, 100.0 - spread_percent * self.spread_penalty)
        source_confidence = min(100.0, report.successful_sources / total * 100)

        return ConfidenceResult(
            price=report.median,
            confidence=round((spread_confidence + source_confidence) / 2),
            spread_percent=round(spread_percent, 2),
            source_count=report.successful_sources,
            spread_confidence=spread_confidence,
            source_confidence=source_confidence,
        )
