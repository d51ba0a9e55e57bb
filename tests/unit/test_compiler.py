"""
Unit tests -- RequestCompiler: QueryState -> BackendRequest.
"""
from src.query.compiler import (
    BackendRequest,
    MetricDescriptor,
    OrderDescriptor,
    compile_keys,
    compile_request,
    to_seconds,
)
from src.query.state import (
    TIME_COLUMN,
    DisplayType,
    FilterGroup,
    FilterRule,
    Operation,
    OrderType,
    QueryState,
    RollupMethod,
)


def _state(**overrides) -> QueryState:
    base = {
        "table": "nebula.test",
        "start": 1548979200000,
        "end": 1556668800000,
        "keys": ["host"],
        "metrics": "latency",
        "rollup": "AVG",
        "sort": "DESC",
        "limit": 25,
    }
    base.update(overrides)
    return QueryState(**base)


# ── Timestamps ──────────────────────────────────────────

def test_millis_to_seconds():
    req = compile_request(_state())
    assert req.start == 1548979200
    assert req.end == 1556668800


def test_half_second_rounds_up():
    assert to_seconds(1548979200500) == 1548979201
    assert to_seconds(1548979200499) == 1548979200


# ── Samples ─────────────────────────────────────────────

def test_samples_prepends_time_column():
    req = compile_request(_state(display="SAMPLES", keys=["host"]))
    assert req.dimensions == [TIME_COLUMN, "host"]


def test_samples_prepend_is_idempotent():
    s = _state(display="SAMPLES", keys=[TIME_COLUMN, "host"])
    assert compile_keys(s) == [TIME_COLUMN, "host"]


def test_samples_has_no_metric_or_order():
    req = compile_request(_state(display="SAMPLES"))
    assert req.metrics is None
    assert req.order is None
    wire = req.to_wire()
    assert "metrics" not in wire
    assert "order" not in wire


def test_state_keys_not_mutated():
    s = _state(display="SAMPLES", keys=["host"])
    compile_request(s)
    compile_request(s)
    assert s.keys == ["host"]


# ── Metric / order ──────────────────────────────────────

def test_table_has_single_metric_and_order():
    req = compile_request(_state(display="TABLE"))
    assert req.metrics == [MetricDescriptor(column="latency", method=RollupMethod.AVG)]
    assert req.order == OrderDescriptor(column="latency", type=OrderType.DESC)
    assert req.dimensions == ["host"]


def test_non_samples_keys_verbatim():
    req = compile_request(_state(display="BAR", keys=["b", "a"]))
    assert req.dimensions == ["b", "a"]


# ── Filters ─────────────────────────────────────────────

def _group(logic, *rules) -> FilterGroup:
    return FilterGroup(logic=logic, rules=[FilterRule(column=c, op=o, values=v) for c, o, v in rules])


def test_and_filter():
    req = compile_request(_state(filter=_group("AND", ("host", "EQ", ["a", "b"]))))
    assert req.filter_or is None
    assert len(req.filter_and.expressions) == 1
    pred = req.filter_and.expressions[0]
    assert (pred.column, pred.op, pred.values) == ("host", Operation.EQ, ["a", "b"])


def test_or_filter():
    req = compile_request(
        _state(filter=_group("OR", ("host", "EQ", ["a"]), ("region", "LIKE", ["us%"])))
    )
    assert req.filter_and is None
    assert [p.column for p in req.filter_or.expressions] == ["host", "region"]


def test_empty_rules_skipped_in_filter():
    req = compile_request(_state(filter=_group("AND", ("host", "EQ", []), ("region", "EQ", ["eu"]))))
    assert [p.column for p in req.filter_and.expressions] == ["region"]


def test_all_empty_filter_omitted():
    req = compile_request(_state(filter=_group("AND", ("host", "EQ", []))))
    assert not req.has_filter
    wire = req.to_wire()
    assert "filter_and" not in wire
    assert "filter_or" not in wire


def test_no_filter_omitted():
    assert not compile_request(_state()).has_filter


# ── Carried fields / wire ───────────────────────────────

def test_limit_window_display_carried():
    req = compile_request(_state(display="TIMELINE", window=300, limit=7))
    assert req.top == 7
    assert req.window == 300
    assert req.display == DisplayType.TIMELINE


def test_origin_not_on_wire():
    s = _state()
    req = compile_request(s)
    assert req.origin == s
    assert "origin" not in req.to_wire()


def test_wire_is_json_ready():
    wire = compile_request(_state()).to_wire()
    assert wire["display"] == "TABLE"
    assert wire["metrics"] == [{"column": "latency", "method": "AVG"}]
    assert wire["order"] == {"column": "latency", "type": "DESC"}


def test_returns_backend_request():
    assert isinstance(compile_request(_state()), BackendRequest)
