"""Unit tests for PriceAggregator."""

import asyncio
import math

import pytest

from consensus_oracle.src.errors import ConfigurationError, QuorumFailure
from consensus_oracle.src.PriceAggregator import (
    PriceAggregator,
    PriceSample,
    summarize,
)
from consensus_oracle.src.PriceSource import CallableSource


def fixed(name: str, price: float | None) -> CallableSource:
    """Source that always answers with the given price."""

    async def fetch() -> float | None:
        return price

    return CallableSource(name, fetch)


def failing(name: str) -> CallableSource:
    """Source whose fetch raises."""

    async def fetch() -> float | None:
        raise ConnectionError("provider unreachable")

    return CallableSource(name, fetch)


def slow(name: str, price: float, delay: float) -> CallableSource:
    """Source that answers after a delay."""

    async def fetch() -> float | None:
        await asyncio.sleep(delay)
        return price

    return CallableSource(name, fetch)


def samples(*prices: float) -> list[PriceSample]:
    return [PriceSample(f"s{i}", p) for i, p in enumerate(prices)]


class TestSummarize:
    """Test the pure statistics step."""

    def test_median_odd(self) -> None:
        """Median of odd count is the middle value."""
        report = summarize(samples(10.0, 20.0, 30.0), total_sources=3)
        assert report.median == 20.0

    def test_median_even(self) -> None:
        """Median of even count averages the two middle values."""
        report = summarize(samples(10.0, 20.0, 30.0, 40.0), total_sources=4)
        assert report.median == 25.0

    def test_median_order_independent(self) -> None:
        """Input order does not matter."""
        report = summarize(samples(40.0, 10.0, 30.0, 20.0), total_sources=4)
        assert report.median == 25.0

    def test_mean_min_max(self) -> None:
        """Mean, min and max are computed over all samples."""
        report = summarize(samples(10.0, 20.0, 60.0), total_sources=5)
        assert report.mean == 30.0
        assert report.min == 10.0
        assert report.max == 60.0
        assert report.successful_sources == 3
        assert report.total_sources == 5
        assert report.failed_sources == 2

    @pytest.mark.parametrize(
        "prices",
        [
            (100.0,),
            (1.0, 1000.0),
            (99.5, 100.0, 100.5, 250.0),
            (0.0001, 0.0002, 0.00015),
        ],
    )
    def test_min_le_median_and_mean_le_max(self, prices) -> None:
        """min <= median <= max and min <= mean <= max."""
        report = summarize(samples(*prices), total_sources=len(prices))
        assert report.min <= report.median <= report.max
        assert report.min <= report.mean <= report.max

    def test_per_source_keyed_by_name(self) -> None:
        """per_source maps source name to price."""
        report = summarize(
            [PriceSample("kraken", 101.0), PriceSample("coinbase", 100.0)],
            total_sources=2,
        )
        assert report.per_source == {"kraken": 101.0, "coinbase": 100.0}

    def test_empty_raises_quorum_failure(self) -> None:
        """No samples means no report."""
        with pytest.raises(QuorumFailure, match="all sources failed"):
            summarize([], total_sources=3)

    def test_low_trust_flag(self) -> None:
        """A single answering source is low-trust."""
        assert summarize(samples(100.0), total_sources=4).is_low_trust
        assert not summarize(samples(100.0, 101.0), total_sources=4).is_low_trust


class TestPriceAggregatorInit:
    """Test PriceAggregator initialization."""

    def test_default_timeout(self) -> None:
        """Default per-source timeout is 5 seconds."""
        assert PriceAggregator().fetch_timeout == 5.0

    def test_invalid_timeout(self) -> None:
        """Non-positive timeout fails fast."""
        with pytest.raises(ConfigurationError, match="fetch_timeout must be positive"):
            PriceAggregator(fetch_timeout=0)

    def test_configuration_error_is_value_error(self) -> None:
        """ConfigurationError can be caught as ValueError."""
        with pytest.raises(ValueError):
            PriceAggregator(fetch_timeout=-1)


class TestPriceAggregatorAggregate:
    """Test concurrent aggregation."""

    @pytest.mark.asyncio
    async def test_all_sources_succeed(self) -> None:
        """Every valid answer is folded into the report."""
        agg = PriceAggregator()
        report = await agg.aggregate(
            [fixed("a", 100.0), fixed("b", 101.0), fixed("c", 102.0)]
        )

        assert report.median == 101.0
        assert report.successful_sources == 3
        assert report.total_sources == 3
        assert report.timestamp.tzinfo is not None

    @pytest.mark.asyncio
    async def test_one_of_four_fails(self) -> None:
        """A single failing source is excluded, not fatal."""
        agg = PriceAggregator()
        report = await agg.aggregate(
            [fixed("a", 100.0), fixed("b", 101.0), fixed("c", 102.0), failing("d")]
        )

        assert report.successful_sources == 3
        assert report.total_sources == 4
        assert "d" not in report.per_source

    @pytest.mark.asyncio
    async def test_timeout_excludes_source(self) -> None:
        """A source exceeding the timeout fails for the round."""
        agg = PriceAggregator()
        report = await agg.aggregate(
            [fixed("a", 100.0), fixed("b", 102.0), slow("c", 500.0, delay=5.0)],
            timeout=0.05,
        )

        assert report.successful_sources == 2
        assert report.total_sources == 3
        assert report.median == 101.0

    @pytest.mark.asyncio
    async def test_all_four_fail(self) -> None:
        """Zero valid sources raises QuorumFailure listing every failure."""
        agg = PriceAggregator()
        sources = [failing("a"), fixed("b", None), fixed("c", 0.0), failing("d")]

        with pytest.raises(QuorumFailure, match="all sources failed") as exc_info:
            await agg.aggregate(sources)

        assert {f.source_name for f in exc_info.value.failures} == {"a", "b", "c", "d"}

    @pytest.mark.asyncio
    async def test_invalid_prices_discarded(self) -> None:
        """None, zero, negative and non-finite prices are discarded."""
        agg = PriceAggregator()
        report = await agg.aggregate([
            fixed("valid1", 100.0),
            fixed("valid2", 101.0),
            fixed("none", None),
            fixed("zero", 0.0),
            fixed("negative", -50.0),
            fixed("nan", math.nan),
            fixed("inf", math.inf),
        ])

        assert set(report.per_source) == {"valid1", "valid2"}
        assert report.median == 100.5
        assert report.total_sources == 7

    @pytest.mark.asyncio
    async def test_numeric_strings_accepted(self) -> None:
        """Prices that convert cleanly to float are accepted."""
        agg = PriceAggregator()
        report = await agg.aggregate([fixed("a", "100.5")])  # type: ignore[arg-type]
        assert report.median == 100.5

    @pytest.mark.asyncio
    async def test_fetches_run_concurrently(self) -> None:
        """Round duration is bounded by the slowest source, not the sum."""
        agg = PriceAggregator()
        loop = asyncio.get_running_loop()
        started = loop.time()

        report = await agg.aggregate(
            [slow("a", 100.0, 0.2), slow("b", 101.0, 0.2), slow("c", 102.0, 0.2)]
        )

        assert report.successful_sources == 3
        assert loop.time() - started < 0.5

    @pytest.mark.asyncio
    async def test_empty_sources(self) -> None:
        """An empty source list is a configuration error."""
        with pytest.raises(ConfigurationError, match="At least one price source"):
            await PriceAggregator().aggregate([])

    @pytest.mark.asyncio
    async def test_duplicate_source_names(self) -> None:
        """Source names are the correlation key and must be unique."""
        with pytest.raises(ConfigurationError, match="Duplicate source names"):
            await PriceAggregator().aggregate([fixed("a", 1.0), fixed("a", 2.0)])

    @pytest.mark.asyncio
    async def test_invalid_call_timeout(self) -> None:
        """A non-positive per-call timeout is rejected."""
        with pytest.raises(ConfigurationError, match="timeout must be positive"):
            await PriceAggregator().aggregate([fixed("a", 1.0)], timeout=0)
