"""
Unit tests -- declarative builder and script evaluation.
"""
import pytest

from src.core.errors import ScriptError
from src.query.builder import QueryBuilder, evaluate_script
from src.query.state import DisplayType, Operation, OrderType, RollupMethod


def _builder() -> QueryBuilder:
    return (
        QueryBuilder()
        .table("nebula.test")
        .time("2019-02-01 00:00:00", "2019-05-01 00:00:00")
        .select("event")
        .metric("value", "sum")
    )


# ── Fluent API ──────────────────────────────────────────

def test_build_minimal():
    state = _builder().build()
    assert state.table == "nebula.test"
    assert state.start == 1548979200000
    assert state.end == 1556668800000
    assert state.keys == ["event"]
    assert state.metrics == "value"
    assert state.rollup == RollupMethod.SUM
    assert state.filter is None


def test_build_with_filters_and_options():
    state = (
        _builder()
        .where("region", "eq", ["us", "eu"])
        .where("tag", "like", [])
        .logic("or")
        .display("timeline")
        .window(3600)
        .sort("asc")
        .limit(10)
        .build()
    )
    assert state.filter.logic == "OR"
    assert len(state.filter.rules) == 1  # empty rule dropped
    assert state.filter.rules[0].op == Operation.EQ
    assert state.display == DisplayType.TIMELINE
    assert state.window == 3600
    assert state.sort == OrderType.ASC
    assert state.limit == 10


def test_validate_reports_missing_table():
    assert QueryBuilder().validate() == "no table specified"


def test_validate_reports_missing_time():
    assert QueryBuilder().table("t").validate() == "no time range specified"


def test_metric_required_outside_samples():
    qb = QueryBuilder().table("t").time(1, 2).display("bar")
    assert "metric is required" in qb.validate()


def test_samples_need_dimensions():
    qb = QueryBuilder().table("t").time(1, 2).display("samples")
    assert qb.validate() == "samples need at least one dimension"


def test_samples_need_no_metric():
    state = QueryBuilder().table("t").time(1, 2).display("samples").select("host").build()
    assert state.display == DisplayType.SAMPLES


def test_build_raises_validation_error():
    with pytest.raises(ScriptError, match="^Validation Error: no table"):
        QueryBuilder().build()


def test_bad_time_range_is_validation_error():
    with pytest.raises(ScriptError, match="^Validation Error"):
        _builder().time(5000, 1000).build()


def test_unknown_enum_value():
    with pytest.raises(ScriptError, match="unknown display 'donut'"):
        QueryBuilder().display("donut")


def test_reset_clears_everything():
    qb = _builder()
    qb.reset()
    assert qb.validate() == "no table specified"


# ── Scripts ─────────────────────────────────────────────

SCRIPT = """
table: nebula.test
time: {start: "2019-02-01 00:00:00", end: "2019-05-01 00:00:00"}
select: [event]
where:
  logic: and
  rules:
    - {column: tag, op: eq, values: [a, b]}
display: bar
metric: {column: value, rollup: p90}
sort: desc
limit: 20
"""


def test_script_builds_state_with_code():
    state = evaluate_script(SCRIPT)
    assert state.table == "nebula.test"
    assert state.display == DisplayType.BAR
    assert state.rollup == RollupMethod.P90
    assert state.filter.rules[0].values == ["a", "b"]
    assert state.limit == 20
    assert state.code == SCRIPT


def test_script_unquoted_timestamps():
    script = SCRIPT.replace('"2019-02-01 00:00:00"', "2019-02-01 00:00:00")
    assert evaluate_script(script).start == 1548979200000


def test_script_yaml_error():
    with pytest.raises(ScriptError, match="^Code Error"):
        evaluate_script("table: [unclosed")


def test_script_must_be_mapping():
    with pytest.raises(ScriptError, match="must be a mapping"):
        evaluate_script("__import__('os').system('echo hi')")


def test_script_unknown_key_rejected():
    with pytest.raises(ScriptError, match="^Code Error: eval"):
        evaluate_script(SCRIPT + "eval: print(1)\n")


def test_script_missing_metric_is_validation_error():
    script = "table: t\ntime: {start: 1, end: 2}\ndisplay: pie\n"
    with pytest.raises(ScriptError, match="^Validation Error: a metric is required"):
        evaluate_script(script)


def test_script_bad_operation():
    script = SCRIPT.replace("op: eq", "op: between")
    with pytest.raises(ScriptError, match="invalid filter on 'tag'"):
        evaluate_script(script)
