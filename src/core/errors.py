"""
Error taxonomy for the query console.

Every failure the user can see ends up as a short status line; none of
these are fatal to a session.
"""
from __future__ import annotations


class ConsoleError(Exception):
    """Base class for all console failures."""


class ParseError(ConsoleError):
    """URL state is absent, too short, or not a valid query state."""


class ValidationError(ConsoleError):
    """Pre-flight check rejected the request before any network use."""


class TooManyBuckets(ValidationError):
    """Timeline window would produce more buckets than allowed."""

    def __init__(self, buckets: float):
        self.buckets = buckets
        super().__init__(
            f"Too many data points to return {buckets}, please increase window granularity."
        )


class MissingDimensions(ValidationError):
    """Samples query issued without any dimension column."""

    def __init__(self):
        super().__init__("Please specify dimensions for samples")


class TransportError(ConsoleError):
    """Backend unreachable or returned an unusable payload."""


class QueryExecutionError(ConsoleError):
    """Backend answered, but the query itself failed."""

    def __init__(self, error: str, duration_ms: int = 0):
        self.error = error
        self.duration_ms = duration_ms
        super().__init__(f"[query: error={error}, latency={duration_ms} ms]")


class ScriptError(ConsoleError):
    """A builder script could not be parsed or produced an invalid query."""
