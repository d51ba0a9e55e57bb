"""
Pre-flight checks run after decode and before compile.

Checks performed, in order, stopping at the first failure:
  1. Timeline queries with an explicit window must not produce more than
     ``max_buckets`` time buckets.
  2. Samples queries must name at least one dimension.

A window of 0 means "auto" and is never checked.  No other display/window
combination is inspected; everything else is left to the backend.
"""
from __future__ import annotations

from src.core.config import get_settings
from src.core.errors import MissingDimensions, TooManyBuckets, ValidationError
from src.core.logging import get_logger
from src.query.state import DisplayType, QueryState

logger = get_logger(__name__)


def bucket_count(state: QueryState) -> float:
    """Number of timeline buckets the state would produce (0 for auto window)."""
    if state.window <= 0:
        return 0.0
    range_seconds = (state.end - state.start) / 1000
    return range_seconds / state.window


def check_request(state: QueryState, max_buckets: int | None = None) -> None:
    """Raise a ValidationError subclass if *state* must not be sent.

    Parameters
    ----------
    state : QueryState
        The decoded state.
    max_buckets : int, optional
        Override the timeline bucket ceiling from settings.
    """
    if max_buckets is None:
        max_buckets = get_settings().max_timeline_buckets

    if state.display == DisplayType.TIMELINE and state.window > 0:
        buckets = bucket_count(state)
        if buckets > max_buckets:
            logger.warning("Timeline rejected: buckets=%s max=%d", buckets, max_buckets)
            raise TooManyBuckets(buckets)

    if state.display == DisplayType.SAMPLES and not state.keys:
        logger.warning("Samples rejected: no dimensions on table=%s", state.table)
        raise MissingDimensions()


def validate_state(state: QueryState, max_buckets: int | None = None) -> list[str]:
    """Return the validation failure messages (empty list = state may be sent)."""
    try:
        check_request(state, max_buckets=max_buckets)
    except ValidationError as exc:
        return [str(exc)]
    return []
