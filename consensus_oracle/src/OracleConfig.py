"""OracleConfig: recognized oracle options and their environment variables.

==============================  =============================  =========
Option                          Environment variable           Default
==============================  =============================  =========
pair                            PAIR                           bch/usd
sources                         SOURCES                        coinbase,kraken,binance,coingecko
fetch_timeout (seconds)         FETCH_TIMEOUT                  5.0
poll_interval (seconds)         POLL_INTERVAL                  60.0
history_capacity                HISTORY_CAPACITY               100
deviation_threshold_percent     DEVIATION_THRESHOLD_PERCENT    10.0
min_history_for_validation      MIN_HISTORY_FOR_VALIDATION     5
api_keys                        API_KEYS, API_KEY_<SOURCE>     {}
==============================  =============================  =========
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from .errors import ConfigurationError

DEFAULT_PAIR = "bch/usd"
DEFAULT_SOURCES = ("coinbase", "kraken", "binance", "coingecko")


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: coingecko=demo:CG-abc123

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            source, key = item.split("=", 1)
            api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for: API_KEY_COINGECKO, APIKEY_COINGECKO, etc.

    :param environ: Environment mapping (default: os.environ).
    :returns: Dict mapping source names to API keys.
    """
    environ = os.environ if environ is None else environ
    api_keys = {}
    prefixes = ["API_KEY_", "APIKEY_"]

    for key, value in environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                api_keys[key[len(prefix):].lower()] = value
                break

    return api_keys


def split_csv(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


@dataclass
class OracleConfig:
    """Validated oracle configuration.

    :ivar pair: Asset pair in "base/quote" form.
    :ivar sources: Registered fetcher names to query.
    :ivar fetch_timeout: Per-source fetch timeout in seconds.
    :ivar poll_interval: Seconds between monitor ticks.
    :ivar history_capacity: Rolling history window size.
    :ivar deviation_threshold_percent: Anomaly cutoff in percent.
    :ivar min_history_for_validation: Cold-start floor.
    :ivar api_keys: API keys keyed by source name.
    """

    pair: str = DEFAULT_PAIR
    sources: list[str] = field(default_factory=lambda: list(DEFAULT_SOURCES))
    fetch_timeout: float = 5.0
    poll_interval: float = 60.0
    history_capacity: int = 100
    deviation_threshold_percent: float = 10.0
    min_history_for_validation: int = 5
    api_keys: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.sources:
            raise ConfigurationError("At least one source must be specified")
        if self.fetch_timeout <= 0:
            raise ConfigurationError("fetch_timeout must be positive")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")
        if self.history_capacity < 1:
            raise ConfigurationError("history_capacity must be at least 1")
        if self.deviation_threshold_percent <= 0:
            raise ConfigurationError("deviation_threshold_percent must be positive")
        if self.min_history_for_validation < 1:
            raise ConfigurationError("min_history_for_validation must be at least 1")
        if self.history_capacity < max(2, self.min_history_for_validation):
            raise ConfigurationError(
                "history_capacity must be at least 2 and at least "
                "min_history_for_validation"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> OracleConfig:
        """Build a configuration from environment variables.

        :param environ: Environment mapping (default: os.environ).
        :returns: Validated configuration.
        :raises ConfigurationError: If a value is missing, malformed or out of range.
        """
        environ = os.environ if environ is None else environ

        def get(name: str, default: str) -> str:
            return environ.get(name) or default

        api_keys = parse_env_api_keys(environ)
        api_keys.update(parse_api_keys(environ.get("API_KEYS")))

        try:
            return cls(
                pair=get("PAIR", DEFAULT_PAIR),
                sources=split_csv(get("SOURCES", ",".join(DEFAULT_SOURCES))),
                fetch_timeout=float(get("FETCH_TIMEOUT", "5.0")),
                poll_interval=float(get("POLL_INTERVAL", "60.0")),
                history_capacity=int(get("HISTORY_CAPACITY", "100")),
                deviation_threshold_percent=float(
                    get("DEVIATION_THRESHOLD_PERCENT", "10.0")
                ),
                min_history_for_validation=int(get("MIN_HISTORY_FOR_VALIDATION", "5")),
                api_keys=api_keys,
            )
        except ValueError as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"Invalid environment configuration: {e}") from e
