"""PriceMonitor: periodic aggregate -> score -> validate pipeline.

The monitor is a two-state machine (``STOPPED`` / ``RUNNING``). ``start()``
schedules a tick immediately and then every ``interval`` seconds; ``stop()``
cancels the schedule. Each tick runs the aggregator, scores the report,
validates the median against history and hands a :class:`TickResult` to the
caller's callback.

Scheduling guarantees:
    - Ticks never overlap. A round that overruns the interval causes the
      missed slots to be skipped, not queued.
    - A failed tick is logged (and forwarded to the optional error callback);
      the next tick is still scheduled.
    - stop() never cancels an in-flight round's network calls. The round is
      allowed to finish and its result is discarded.
      A start() that follows waits for that round before its first tick.

.. code-block:: python

    monitor = PriceMonitor(sources, interval=30.0, label="bch/usd")
    monitor.start(lambda tick: print(tick.report.median))
    ...
    monitor.stop()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence, Union

from .ConfidenceScorer import ConfidenceResult, ConfidenceScorer
from .errors import ConfigurationError
from .HistoryValidator import HistoryValidator, ValidationResult
from .PriceAggregator import AggregatedPriceReport, PriceAggregator
from .PriceSource import PriceSource

logger = logging.getLogger(__name__)


class MonitorState(str, Enum):
    """Lifecycle state of a :class:`PriceMonitor`."""

    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class TickResult:
    """Everything one successful tick produced.

    :ivar report: The aggregated report for this round.
    :ivar confidence: Confidence score of the report.
    :ivar validation: History validation of the report's median.
    :ivar previous_report: Last good report before this one, if any.
    """

    report: AggregatedPriceReport
    confidence: ConfidenceResult
    validation: ValidationResult
    previous_report: AggregatedPriceReport | None = None

    @property
    def change_percent(self) -> float | None:
        """Median change vs the previous good report, in percent."""
        if self.previous_report is None:
            return None
        previous = self.previous_report.median
        return (self.report.median - previous) / previous * 100


TickCallback = Callable[[TickResult], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[Exception], Union[None, Awaitable[None]]]


def _retrieve_exception(task: asyncio.Task) -> None:
    # Marks a discarded round's exception as retrieved.
    if not task.cancelled():
        task.exception()


class PriceMonitor:
    """Runs the price pipeline on a fixed cadence.

    :ivar sources: Sources queried every tick.
    :ivar aggregator: Aggregator used for each round.
    :ivar scorer: Confidence scorer.
    :ivar validator: History validator (owned by this monitor).
    :ivar interval: Default seconds between ticks.
    :ivar label: Name used in log messages (e.g., the asset pair).
    :ivar last_report: Last successfully aggregated report.
    """

    DEFAULT_INTERVAL = 60.0

    def __init__(
        self,
        sources: Sequence[PriceSource],
        aggregator: PriceAggregator | None = None,
        scorer: ConfidenceScorer | None = None,
        validator: HistoryValidator | None = None,
        interval: float = DEFAULT_INTERVAL,
        label: str = "price",
    ) -> None:
        """Initialize the monitor.

        :param sources: Sources to query every tick.
        :param aggregator: Aggregator (default: PriceAggregator()).
        :param scorer: Confidence scorer (default: ConfidenceScorer()).
        :param validator: History validator (default: HistoryValidator()).
        :param interval: Default seconds between ticks (default: 60.0).
        :param label: Name used in log messages.
        :raises ConfigurationError: If sources is empty or interval is not positive.
        """
        PriceAggregator.check_sources(sources)
        if interval <= 0:
            raise ConfigurationError("interval must be positive")

        self.sources = list(sources)
        self.aggregator = aggregator or PriceAggregator()
        self.scorer = scorer or ConfidenceScorer()
        self.validator = validator or HistoryValidator()
        self.interval = interval
        self.label = label
        self.last_report: AggregatedPriceReport | None = None

        self._state = MonitorState.STOPPED
        self._timer: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is MonitorState.RUNNING

    def evaluate(
        self,
        report: AggregatedPriceReport,
        previous_report: AggregatedPriceReport | None = None,
    ) -> TickResult:
        """Score and validate an aggregated report.

        Appends the report's median to the validator's history.

        :param report: Report to evaluate.
        :param previous_report: Last good report, for change tracking.
        :returns: Tick result.
        """
        confidence = self.scorer.score(report, len(self.sources))
        validation = self.validator.validate(report.median)
        return TickResult(report, confidence, validation, previous_report)

    async def tick(self) -> TickResult:
        """Run one full pipeline round now.

        :returns: Tick result.
        :raises QuorumFailure: If no source produced a valid price.
        """
        report = await self.aggregator.aggregate(self.sources)
        result = self.evaluate(report, self.last_report)
        self.last_report = report
        return result

    def start(
        self,
        callback: TickCallback,
        interval: float | None = None,
        error_callback: ErrorCallback | None = None,
    ) -> bool:
        """Start ticking. Must be called from a running event loop.

        :param callback: Called with a TickResult after every successful tick.
            May be a plain function or a coroutine function.
        :param interval: Seconds between ticks (default: self.interval).
        :param error_callback: Called with the exception of every failed tick.
        :returns: True if started, False if already running.
        :raises ConfigurationError: If interval is not positive.
        """
        if self._state is MonitorState.RUNNING:
            logger.debug(f"{self.label}: monitor already running")
            return False

        interval = self.interval if interval is None else interval
        if interval <= 0:
            raise ConfigurationError("interval must be positive")

        self._state = MonitorState.RUNNING
        self._timer = asyncio.get_running_loop().create_task(
            self._run(interval, callback, error_callback),
            name=f"price-monitor:{self.label}",
        )
        logger.info(
            f"{self.label}: monitoring {len(self.sources)} sources every {interval}s"
        )
        return True

    def stop(self) -> bool:
        """Stop ticking.

        :returns: True if stopped, False if already stopped.
        """
        if self._state is MonitorState.STOPPED:
            return False

        self._state = MonitorState.STOPPED
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        logger.info(f"{self.label}: monitoring stopped")
        return True

    async def wait(self) -> None:
        """Wait until the monitor is stopped."""
        timer = self._timer
        if timer is not None:
            await asyncio.wait({timer})

    async def _run(
        self,
        interval: float,
        callback: TickCallback,
        error_callback: ErrorCallback | None,
    ) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            await self._run_tick(callback, error_callback)

            next_tick += interval
            now = loop.time()
            if now > next_tick:
                skipped = math.ceil((now - next_tick) / interval)
                logger.warning(
                    f"{self.label}: round overran the {interval}s interval, "
                    f"skipping {skipped} tick(s)"
                )
                next_tick += skipped * interval
            await asyncio.sleep(next_tick - now)

    async def _run_tick(
        self,
        callback: TickCallback,
        error_callback: ErrorCallback | None,
    ) -> None:
        # A round left running by an earlier stop() must finish first;
        # its result is discarded.
        pending = {task for task in self._in_flight if not task.done()}
        if pending:
            logger.debug(f"{self.label}: waiting for {len(pending)} earlier round(s)")
            await asyncio.wait(pending)

        # Shielded so that stop() leaves in-flight fetches running.
        round_task = asyncio.ensure_future(self.aggregator.aggregate(self.sources))
        self._in_flight.add(round_task)
        round_task.add_done_callback(self._in_flight.discard)
        round_task.add_done_callback(_retrieve_exception)

        try:
            report = await asyncio.shield(round_task)
        except Exception as e:
            logger.error(f"{self.label}: tick failed: {e}")
            await self._notify(error_callback, e)
            return

        result = self.evaluate(report, self.last_report)
        self.last_report = report
        self._log_tick(result)
        await self._notify(callback, result)

    async def _notify(self, sink: Callable[[Any], Any] | None, payload: Any) -> None:
        if sink is None:
            return
        try:
            outcome = sink(payload)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception(f"{self.label}: monitor callback raised")

    def _log_tick(self, result: TickResult) -> None:
        report = result.report
        breakdown = ", ".join(
            f"{name}=${price:.6f}" for name, price in sorted(report.per_source.items())
        )
        log_msg = (
            f"{self.label}: ${report.median:.6f} (median of [{breakdown}], "
            f"{report.successful_sources}/{report.total_sources} sources, "
            f"confidence={result.confidence.confidence}%"
        )
        if result.change_percent is not None:
            log_msg += f", change={result.change_percent:+.2f}%"
        log_msg += ")"

        if result.validation.is_valid:
            logger.info(log_msg)
        else:
            logger.warning(f"{log_msg}: {result.validation.reason}")
