"""PriceOracle: consensus price oracle for one asset pair.

Wires the configured fetchers, aggregator, confidence scorer, history
validator and monitor together.

Architecture:
    - One fetcher per configured source, bound to the oracle's pair
    - Every round queries all fetchers concurrently, each under its own timeout
    - The consensus price is the median of the valid answers
    - A confidence score rates source agreement and coverage
    - Each median is checked against the rolling average of recent medians
    - The monitor repeats the round on a fixed cadence and emits TickResults
"""

from __future__ import annotations

import logging
from typing import Sequence

from .AssetPair import AssetPair
from .ConfidenceScorer import ConfidenceResult, ConfidenceScorer
from .errors import ConfigurationError
from .fetchers import BaseFetcher, get_available_fetchers, get_fetcher
from .HistoryValidator import HistoryValidator, ValidationResult
from .OracleConfig import OracleConfig
from .PriceAggregator import AggregatedPriceReport, PriceAggregator
from .PriceMonitor import ErrorCallback, PriceMonitor, TickCallback, TickResult
from .PriceSource import PriceSource

logger = logging.getLogger(__name__)


class PriceOracle:
    """Consensus price oracle for a single asset pair.

    :ivar pair: Asset pair being priced.
    :ivar sources: Price sources queried every round.
    :ivar aggregator: Concurrent fetch and statistics.
    :ivar scorer: Confidence scorer.
    :ivar validator: History validator for this pair.
    :ivar monitor: Periodic runner.
    """

    def __init__(
        self,
        pair: AssetPair,
        sources: Sequence[PriceSource],
        fetch_timeout: float = 5.0,
        poll_interval: float = 60.0,
        history_capacity: int = 100,
        deviation_threshold_percent: float = 10.0,
        min_history_for_validation: int = 5,
    ) -> None:
        """Initialize the oracle.

        :param pair: Asset pair being priced.
        :param sources: Price sources (at least one, unique names).
        :param fetch_timeout: Per-source fetch timeout in seconds (default: 5.0).
        :param poll_interval: Seconds between monitor ticks (default: 60.0).
        :param history_capacity: Rolling history size (default: 100).
        :param deviation_threshold_percent: Anomaly cutoff (default: 10.0).
        :param min_history_for_validation: Cold-start floor (default: 5).
        :raises ConfigurationError: If any option is invalid.
        """
        PriceAggregator.check_sources(sources)

        self.pair = pair
        self.sources = list(sources)
        self.aggregator = PriceAggregator(fetch_timeout=fetch_timeout)
        self.scorer = ConfidenceScorer()
        self.validator = HistoryValidator(
            capacity=history_capacity,
            deviation_threshold_percent=deviation_threshold_percent,
            min_history=min_history_for_validation,
        )
        self.monitor = PriceMonitor(
            self.sources,
            aggregator=self.aggregator,
            scorer=self.scorer,
            validator=self.validator,
            interval=poll_interval,
            label=str(pair),
        )

        logger.info(
            f"PriceOracle initialized: pair={pair}, "
            f"sources={[s.name for s in self.sources]}, "
            f"fetch_timeout={fetch_timeout}s, poll_interval={poll_interval}s"
        )

    @classmethod
    def from_config(cls, config: OracleConfig) -> PriceOracle:
        """Build an oracle from configuration using registered fetchers.

        :param config: Oracle configuration.
        :returns: New oracle.
        :raises ConfigurationError: If the pair or a source name is invalid.
        """
        available = get_available_fetchers()
        invalid = [s for s in config.sources if s not in available]
        if invalid:
            raise ConfigurationError(f"Unknown sources: {invalid}. Available: {available}")

        try:
            pair = AssetPair.from_string(config.pair)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        fetchers: list[BaseFetcher] = [
            get_fetcher(
                source,
                pair,
                api_key=config.api_keys.get(source),
                timeout=config.fetch_timeout,
            )
            for source in config.sources
        ]

        unsupported = [f.name for f in fetchers if not f.supports_pair()]
        if unsupported:
            logger.warning(f"{pair}: not supported by {unsupported}; they will always fail")

        return cls(
            pair,
            fetchers,
            fetch_timeout=config.fetch_timeout,
            poll_interval=config.poll_interval,
            history_capacity=config.history_capacity,
            deviation_threshold_percent=config.deviation_threshold_percent,
            min_history_for_validation=config.min_history_for_validation,
        )

    async def get_aggregated_price(self) -> AggregatedPriceReport:
        """Query all sources once and aggregate.

        Does not touch the validation history.

        :returns: Aggregated report.
        :raises QuorumFailure: If no source produced a valid price.
        """
        return await self.aggregator.aggregate(self.sources)

    async def get_price_with_confidence(self) -> ConfidenceResult:
        """Query all sources once and score the result.

        :returns: Confidence result for the fresh report.
        :raises QuorumFailure: If no source produced a valid price.
        """
        report = await self.get_aggregated_price()
        return self.scorer.score(report, len(self.sources))

    async def validate_price(self) -> ValidationResult:
        """Query all sources once and validate the median against history.

        The median is recorded in this oracle's history.

        :returns: Validation result.
        :raises QuorumFailure: If no source produced a valid price.
        """
        report = await self.get_aggregated_price()
        return self.validator.validate(report.median)

    async def tick(self) -> TickResult:
        """Run one full aggregate -> score -> validate round.

        :returns: Tick result.
        :raises QuorumFailure: If no source produced a valid price.
        """
        return await self.monitor.tick()

    def start_monitoring(
        self,
        callback: TickCallback,
        interval: float | None = None,
        error_callback: ErrorCallback | None = None,
    ) -> bool:
        """Start periodic monitoring. See :meth:`PriceMonitor.start`."""
        return self.monitor.start(callback, interval=interval, error_callback=error_callback)

    def stop_monitoring(self) -> bool:
        """Stop periodic monitoring. See :meth:`PriceMonitor.stop`."""
        return self.monitor.stop()

    async def run(self, callback: TickCallback | None = None) -> None:
        """Monitor until cancelled, then release HTTP resources.

        :param callback: Optional sink for tick results (ticks are logged
            regardless).
        """
        self.start_monitoring(callback or (lambda _result: None))
        try:
            await self.monitor.wait()
        finally:
            self.stop_monitoring()
            await BaseFetcher.close_shared_client()
