"""Unit tests for PriceOracle."""

import asyncio

import pytest

from consensus_oracle.src.AssetPair import AssetPair
from consensus_oracle.src.errors import ConfigurationError, QuorumFailure
from consensus_oracle.src.fetchers import CoinbaseFetcher, KrakenFetcher
from consensus_oracle.src.OracleConfig import OracleConfig
from consensus_oracle.src.PriceOracle import PriceOracle
from consensus_oracle.src.PriceSource import CallableSource

BCH_USD = AssetPair("bch", "usd")


def fixed(name: str, price: float | None) -> CallableSource:
    async def fetch() -> float | None:
        return price

    return CallableSource(name, fetch)


def make_oracle(*prices: float | None, **kwargs) -> PriceOracle:
    sources = [fixed(f"s{i}", p) for i, p in enumerate(prices)]
    return PriceOracle(BCH_USD, sources, **kwargs)


class TestPriceOracleInit:
    """Test PriceOracle construction."""

    def test_components_share_settings(self) -> None:
        """Options reach the components they configure."""
        oracle = make_oracle(
            100.0,
            fetch_timeout=2.0,
            poll_interval=30.0,
            history_capacity=20,
            deviation_threshold_percent=5.0,
            min_history_for_validation=3,
        )

        assert oracle.aggregator.fetch_timeout == 2.0
        assert oracle.monitor.interval == 30.0
        assert oracle.monitor.label == "bch/usd"
        assert oracle.monitor.validator is oracle.validator
        assert oracle.validator.deviation_threshold_percent == 5.0
        assert oracle.validator.min_history == 3

    def test_no_sources(self) -> None:
        """An oracle needs at least one source."""
        with pytest.raises(ConfigurationError):
            PriceOracle(BCH_USD, [])

    def test_invalid_option(self) -> None:
        """Invalid options are rejected at construction."""
        with pytest.raises(ConfigurationError):
            make_oracle(100.0, poll_interval=0)


class TestPriceOracleFromConfig:
    """Test building an oracle from configuration."""

    def test_fetchers_bound_to_pair(self) -> None:
        """One fetcher per configured source, bound to the pair."""
        oracle = PriceOracle.from_config(
            OracleConfig(
                pair="BTC/USD",
                sources=["coinbase", "kraken"],
                fetch_timeout=3.0,
                api_keys={"kraken": "secret"},
            )
        )

        assert oracle.pair == AssetPair("btc", "usd")
        assert [type(s) for s in oracle.sources] == [CoinbaseFetcher, KrakenFetcher]
        assert all(s.pair == oracle.pair for s in oracle.sources)
        assert all(s.timeout == 3.0 for s in oracle.sources)
        assert oracle.sources[1].api_key == "secret"
        assert oracle.sources[0].api_key is None

    def test_unknown_source(self) -> None:
        """Unknown source names are a configuration error."""
        with pytest.raises(ConfigurationError, match="Unknown sources"):
            PriceOracle.from_config(OracleConfig(sources=["coinbase", "nope"]))

    def test_invalid_pair(self) -> None:
        """Malformed pairs are a configuration error."""
        with pytest.raises(ConfigurationError, match="Invalid pair format"):
            PriceOracle.from_config(OracleConfig(pair="bchusd"))


class TestPriceOracleQueries:
    """Test the one-shot query methods."""

    @pytest.mark.asyncio
    async def test_get_aggregated_price(self) -> None:
        """Aggregation does not record history."""
        oracle = make_oracle(100.0, 101.0, 102.0, None)

        report = await oracle.get_aggregated_price()

        assert report.median == 101.0
        assert report.successful_sources == 3
        assert report.total_sources == 4
        assert len(oracle.validator) == 0

    @pytest.mark.asyncio
    async def test_get_price_with_confidence(self) -> None:
        """Confidence accounts for every configured source."""
        oracle = make_oracle(100.0, 100.0, None, None)

        result = await oracle.get_price_with_confidence()

        assert result.price == 100.0
        assert result.source_confidence == 50.0
        assert result.confidence == 75

    @pytest.mark.asyncio
    async def test_validate_price_records_history(self) -> None:
        """Each validation appends the median to history."""
        oracle = make_oracle(100.0, 100.0)

        for _ in range(5):
            result = await oracle.validate_price()

        assert len(oracle.validator) == 5
        assert result.is_valid
        assert result.reason == "price within normal range"

    @pytest.mark.asyncio
    async def test_all_sources_fail(self) -> None:
        """Queries raise QuorumFailure when nothing answers."""
        oracle = make_oracle(None, None)

        with pytest.raises(QuorumFailure):
            await oracle.get_aggregated_price()
        with pytest.raises(QuorumFailure):
            await oracle.tick()

    @pytest.mark.asyncio
    async def test_tick(self) -> None:
        """tick() runs the full pipeline once."""
        oracle = make_oracle(100.0, 104.0)

        result = await oracle.tick()

        assert result.report.median == 102.0
        assert result.confidence.source_count == 2
        assert oracle.monitor.last_report is result.report


class TestPriceOracleMonitoring:
    """Test monitoring through the facade."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        """Monitoring delivers ticks until stopped."""
        results = []
        ticked = asyncio.Event()

        def on_tick(result) -> None:
            results.append(result)
            ticked.set()

        oracle = make_oracle(100.0)
        try:
            assert oracle.start_monitoring(on_tick, interval=10.0) is True
            assert oracle.start_monitoring(on_tick) is False
            await asyncio.wait_for(ticked.wait(), timeout=1.0)
        finally:
            assert oracle.stop_monitoring() is True

        assert oracle.stop_monitoring() is False
        assert results[0].report.median == 100.0

    @pytest.mark.asyncio
    async def test_run_until_cancelled(self) -> None:
        """run() monitors until its task is cancelled."""
        results = []
        oracle = make_oracle(100.0, poll_interval=0.02)

        task = asyncio.ensure_future(oracle.run(results.append))
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert results
        assert not oracle.monitor.is_running
