"""Error taxonomy for the consensus price oracle.

Three classes of failure are distinguished:

- :class:`SourceFailure`: a single source failed for one round (network error,
  timeout, malformed response, non-positive price). Recovered locally by the
  aggregator and never raised to callers.
- :class:`QuorumFailure`: no source produced a valid price. Fatal to the round.
- :class:`ConfigurationError`: caller mistake detected at construction time.
"""

from __future__ import annotations


class OracleError(Exception):
    """Base exception for oracle errors."""

    pass


class ConfigurationError(OracleError, ValueError):
    """Raised when oracle configuration is invalid (empty sources, bad interval)."""

    pass


class SourceFailure(OracleError):
    """Describes why a single source was excluded from a round.

    :ivar source_name: Name of the failed source.
    :ivar reason: Short failure description (e.g., "timeout", "invalid price").
    """

    def __init__(self, source_name: str, reason: str):
        """Initialize the source failure.

        :param source_name: Name of the failed source.
        :param reason: Short failure description.
        """
        self.source_name = source_name
        self.reason = reason
        super().__init__(f"[{source_name}] {reason}")


class QuorumFailure(OracleError):
    """Raised when no source produced a valid price in a round.

    :ivar failures: Per-source failures collected during the round.
    """

    def __init__(self, failures: list[SourceFailure] | None = None):
        """Initialize the quorum failure.

        :param failures: Per-source failures collected during the round.
        """
        self.failures = list(failures or [])
        detail = ", ".join(str(f) for f in self.failures)
        message = "all sources failed"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
