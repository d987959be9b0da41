"""Unit tests for the command-line entry point."""

import pytest

from consensus_oracle.main import build_parser, config_from_args, run_once
from consensus_oracle.src.AssetPair import AssetPair
from consensus_oracle.src.errors import ConfigurationError
from consensus_oracle.src.PriceOracle import PriceOracle
from consensus_oracle.src.PriceSource import CallableSource


def fixed(name: str, price: float | None) -> CallableSource:
    async def fetch() -> float | None:
        return price

    return CallableSource(name, fetch)


class TestBuildParser:
    """Test CLI argument parsing."""

    def test_defaults(self) -> None:
        """Without arguments or environment the documented defaults apply."""
        args = build_parser({}).parse_args([])

        assert args.pair == "bch/usd"
        assert args.sources == "coinbase,kraken,binance,coingecko"
        assert args.fetch_timeout == 5.0
        assert args.poll_interval == 60.0
        assert args.history_capacity == 100
        assert args.deviation_threshold == 10.0
        assert args.min_history == 5
        assert args.api_keys is None
        assert not args.once

    def test_environment_defaults(self) -> None:
        """Environment variables provide defaults."""
        args = build_parser({"PAIR": "eth/usd", "POLL_INTERVAL": "30"}).parse_args([])

        assert args.pair == "eth/usd"
        assert args.poll_interval == 30.0

    def test_cli_overrides_environment(self) -> None:
        """CLI arguments take precedence over the environment."""
        args = build_parser({"PAIR": "eth/usd"}).parse_args(
            ["--pair", "btc/usd", "--sources", "kraken", "--once", "--min-history", "3"]
        )

        assert args.pair == "btc/usd"
        assert args.sources == "kraken"
        assert args.min_history == 3
        assert args.once


class TestConfigFromArgs:
    """Test converting arguments to configuration."""

    def test_config(self) -> None:
        """Arguments map onto configuration fields."""
        args = build_parser({}).parse_args(
            [
                "--sources", "Coinbase, kraken",
                "--deviation-threshold", "7.5",
                "--api-keys", "coingecko=demo:CG-x",
            ]
        )

        config = config_from_args(args, {"API_KEY_KRAKEN": "k"})

        assert config.sources == ["coinbase", "kraken"]
        assert config.deviation_threshold_percent == 7.5
        assert config.api_keys == {"coingecko": "demo:CG-x", "kraken": "k"}

    def test_invalid(self) -> None:
        """Out-of-range arguments are configuration errors."""
        args = build_parser({}).parse_args(["--poll-interval", "0"])

        with pytest.raises(ConfigurationError):
            config_from_args(args, {})


class TestRunOnce:
    """Test the single-round mode."""

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        """A successful round exits with status 0."""
        oracle = PriceOracle(AssetPair("bch", "usd"), [fixed("a", 100.0), fixed("b", 101.0)])
        assert await run_once(oracle) == 0

    @pytest.mark.asyncio
    async def test_quorum_failure(self) -> None:
        """A round with no valid price exits with status 1."""
        oracle = PriceOracle(AssetPair("bch", "usd"), [fixed("a", None)])
        assert await run_once(oracle) == 1
