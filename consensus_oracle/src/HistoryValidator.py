"""HistoryValidator: anomaly detection against a rolling window of medians.

Every validated median becomes part of the history; there is no separate
record step. The first few values are accepted unconditionally (there is
nothing to compare against yet). After that, a value is flagged when it
deviates from the average of the preceding window by the threshold or more.

The comparison window excludes the value being validated, so a jump is
measured against prices that were known before it. Passing
``include_current=True`` restores the inclusive window, where the new value
dilutes its own deviation.

.. code-block:: python

    >>> validator = HistoryValidator()
    >>> for _ in range(9):
    ...     _ = validator.validate(100.0)
    >>> result = validator.validate(200.0)
    >>> result.is_valid, result.deviation_percent
    (False, 100.0)
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from itertools import islice
from statistics import fmean

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

REASON_INSUFFICIENT_HISTORY = "insufficient history"
REASON_NORMAL = "price within normal range"
REASON_DEVIATION = "significant price deviation detected"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one price against history.

    :ivar current_price: The validated price.
    :ivar is_valid: False if the price deviates too far from recent history.
    :ivar deviation_percent: Deviation from the recent average, in percent.
    :ivar reason: Human-readable explanation.
    """

    current_price: float
    is_valid: bool
    deviation_percent: float
    reason: str


class PriceHistory:
    """Fixed-capacity FIFO buffer of past prices (oldest evicted first)."""

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ConfigurationError("history capacity must be at least 1")
        self._prices: deque[float] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._prices.maxlen or 0

    def append(self, price: float) -> None:
        self._prices.append(price)

    def clear(self) -> None:
        self._prices.clear()

    def recent(self, count: int, skip_last: int = 0) -> list[float]:
        """Return up to ``count`` most recent prices, oldest first.

        :param count: Maximum number of prices to return.
        :param skip_last: Number of newest prices to leave out.
        """
        end = max(0, len(self._prices) - skip_last)
        start = max(0, end - count)
        return list(islice(self._prices, start, end))

    def snapshot(self) -> tuple[float, ...]:
        return tuple(self._prices)

    def __len__(self) -> int:
        return len(self._prices)


class HistoryValidator:
    """Validates prices against the rolling average of recent history.

    Owns its :class:`PriceHistory` exclusively; use one validator per asset.

    :ivar deviation_threshold_percent: Deviation at which a price is flagged.
    :ivar min_history: Entries required before deviation is checked.
    :ivar window_size: Number of recent entries averaged.
    :ivar include_current: Whether the new value is part of its own window.
    """

    DEFAULT_CAPACITY = 100
    DEFAULT_DEVIATION_THRESHOLD_PERCENT = 10.0
    DEFAULT_MIN_HISTORY = 5
    DEFAULT_WINDOW_SIZE = 10

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        deviation_threshold_percent: float = DEFAULT_DEVIATION_THRESHOLD_PERCENT,
        min_history: int = DEFAULT_MIN_HISTORY,
        window_size: int = DEFAULT_WINDOW_SIZE,
        include_current: bool = False,
    ) -> None:
        """Initialize the validator.

        :param capacity: History buffer capacity (default: 100).
        :param deviation_threshold_percent: Anomaly cutoff (default: 10.0).
        :param min_history: Cold-start floor, counting the new value (default: 5).
        :param window_size: Rolling average window (default: 10).
        :param include_current: Average over a window that includes the new
            value (default: False).
        :raises ConfigurationError: If any parameter is out of range, or the
            capacity cannot hold enough history for a comparison.
        """
        if deviation_threshold_percent <= 0:
            raise ConfigurationError("deviation_threshold_percent must be positive")
        if min_history < 1:
            raise ConfigurationError("min_history must be at least 1")
        if window_size < 1:
            raise ConfigurationError("window_size must be at least 1")
        if capacity < min_history:
            raise ConfigurationError("history capacity must be at least min_history")
        if capacity < 2 and not include_current:
            raise ConfigurationError(
                "history capacity must be at least 2 to compare against past prices"
            )

        self._history = PriceHistory(capacity)
        self.deviation_threshold_percent = deviation_threshold_percent
        self.min_history = min_history
        self.window_size = window_size
        self.include_current = include_current

    @property
    def history(self) -> tuple[float, ...]:
        """Snapshot of the history buffer, oldest first."""
        return self._history.snapshot()

    def __len__(self) -> int:
        return len(self._history)

    def clear_history(self) -> None:
        """Forget all recorded prices (next validations are cold-start again)."""
        self._history.clear()

    def validate(self, new_median: float) -> ValidationResult:
        """Record a price and check it against recent history.

        :param new_median: The latest aggregated median.
        :returns: Validation result.
        :raises ValueError: If new_median is not a positive finite number.
        """
        if not math.isfinite(new_median) or new_median <= 0:
            raise ValueError(f"price must be positive and finite, got {new_median}")

        self._history.append(new_median)

        window = self._history.recent(
            self.window_size, skip_last=0 if self.include_current else 1
        )
        if len(self._history) < self.min_history or not window:
            return ValidationResult(
                current_price=new_median,
                is_valid=True,
                deviation_percent=0.0,
                reason=REASON_INSUFFICIENT_HISTORY,
            )

        recent_average = fmean(window)
        deviation_percent = round(
            abs(new_median - recent_average) / recent_average * 100, 2
        )
        is_valid = deviation_percent < self.deviation_threshold_percent

        if not is_valid:
            logger.warning(
                f"Price ${new_median:.6f} deviates {deviation_percent:.2f}% from "
                f"recent average ${recent_average:.6f}"
            )

        return ValidationResult(
            current_price=new_median,
            is_valid=is_valid,
            deviation_percent=deviation_percent,
            reason=REASON_NORMAL if is_valid else REASON_DEVIATION,
        )
