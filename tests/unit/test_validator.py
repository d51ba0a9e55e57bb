"""
Unit tests -- pre-flight validation gate.
"""
import pytest

from src.core.errors import MissingDimensions, TooManyBuckets, ValidationError
from src.governance.validator import bucket_count, check_request, validate_state
from src.query.state import QueryState


def _state(**overrides) -> QueryState:
    base = {
        "table": "nebula.test",
        "start": 0,
        "end": 1_000_000_000,
        "keys": ["event"],
        "metrics": "value",
        "display": "TIMELINE",
        "window": 1_000_000,
    }
    base.update(overrides)
    return QueryState(**base)


# ── Timeline buckets ────────────────────────────────────

def test_exactly_max_buckets_passes():
    s = _state()
    assert bucket_count(s) == 1000
    check_request(s)


def test_one_over_max_buckets_fails():
    s = _state(window=999_999)
    with pytest.raises(TooManyBuckets) as info:
        check_request(s)
    assert info.value.buckets == pytest.approx(1000.001, rel=1e-6)
    assert "Too many data points to return 1000.001" in str(info.value)
    assert "increase window granularity" in str(info.value)


def test_auto_window_never_checked():
    check_request(_state(window=0, end=10**15))


def test_window_only_checked_for_timeline():
    check_request(_state(display="BAR", window=1))


def test_custom_max_buckets():
    with pytest.raises(TooManyBuckets):
        check_request(_state(), max_buckets=999)


# ── Samples dimensions ──────────────────────────────────

def test_samples_without_keys_fails():
    with pytest.raises(MissingDimensions, match="Please specify dimensions for samples"):
        check_request(_state(display="SAMPLES", keys=[]))


def test_samples_with_keys_passes():
    check_request(_state(display="SAMPLES", keys=["host"]))


def test_table_without_keys_passes():
    check_request(_state(display="TABLE", keys=[]))


# ── Error hierarchy / list form ─────────────────────────

def test_failures_are_validation_errors():
    assert issubclass(TooManyBuckets, ValidationError)
    assert issubclass(MissingDimensions, ValidationError)


def test_validate_state_lists_message():
    assert validate_state(_state()) == []
    errors = validate_state(_state(display="SAMPLES", keys=[]))
    assert errors == ["Please specify dimensions for samples"]


def test_bucket_check_runs_first():
    # timeline never reaches the samples rule
    errors = validate_state(_state(window=1, keys=[]))
    assert len(errors) == 1
    assert errors[0].startswith("Too many data points")
