"""
Consensus Price Oracle - Multi-Source Aggregation Module

This module provides a robust consensus price from multiple untrusted sources:
- AssetPair: Trading pair the sources are bound to
- PriceSource / CallableSource: Uniform price source contract
- PriceAggregator: Concurrent fan-out with median/mean/min/max statistics
- ConfidenceScorer: 0-100 score from source agreement and coverage
- HistoryValidator: Rolling-window anomaly detection
- PriceMonitor: Periodic pipeline with start/stop lifecycle
- PriceOracle: Facade wiring everything for one pair
- fetchers: Modular price fetcher implementations
"""

from .AssetPair import AssetPair
from .ConfidenceScorer import ConfidenceResult, ConfidenceScorer
from .errors import ConfigurationError, OracleError, QuorumFailure, SourceFailure
from .HistoryValidator import HistoryValidator, PriceHistory, ValidationResult
from .OracleConfig import OracleConfig
from .PriceAggregator import (
    AggregatedPriceReport,
    PriceAggregator,
    PriceSample,
    summarize,
)
from .PriceMonitor import MonitorState, PriceMonitor, TickResult
from .PriceOracle import PriceOracle
from .PriceSource import CallableSource, PriceSource

__all__ = [
    "AggregatedPriceReport",
    "AssetPair",
    "CallableSource",
    "ConfidenceResult",
    "ConfidenceScorer",
    "ConfigurationError",
    "HistoryValidator",
    "MonitorState",
    "OracleConfig",
    "OracleError",
    "PriceAggregator",
    "PriceHistory",
    "PriceMonitor",
    "PriceOracle",
    "PriceSample",
    "PriceSource",
    "QuorumFailure",
    "SourceFailure",
    "TickResult",
    "ValidationResult",
    "summarize",
]
