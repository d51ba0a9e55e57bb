"""
Unit tests -- FilterTree: building the flat predicate group.
"""
import pytest

from src.query.filters import build_filter, effective_rules
from src.query.state import FilterGroup, FilterRule, Operation


def test_rules_with_values_kept():
    group = build_filter([{"c": "event", "o": "EQ", "v": ["click"]}], "AND")
    assert isinstance(group, FilterGroup)
    assert group.logic == "AND"
    assert group.rules[0].column == "event"
    assert group.rules[0].op == Operation.EQ


def test_empty_rules_dropped():
    group = build_filter(
        [
            {"c": "event", "o": "EQ", "v": []},
            {"c": "region", "o": "NEQ", "v": ["us"]},
        ],
        "OR",
    )
    assert len(group.rules) == 1
    assert group.rules[0].column == "region"
    assert group.logic == "OR"


def test_all_empty_returns_none():
    assert build_filter([{"c": "event", "o": "EQ", "v": []}]) is None


def test_no_rules_returns_none():
    assert build_filter([], "AND") is None


def test_long_names_and_models_accepted():
    group = build_filter(
        [
            {"column": "a", "op": "like", "values": ["x%"]},
            FilterRule(column="b", op=Operation.LESS, values=["3"]),
        ],
        "and",
    )
    assert [r.column for r in group.rules] == ["a", "b"]
    assert group.logic == "AND"


def test_no_legality_checks():
    # unknown columns are the backend's problem
    group = build_filter([{"c": "no_such_column", "o": "ILIKE", "v": ["?"]}])
    assert group.rules[0].column == "no_such_column"


def test_bad_logic_raises():
    with pytest.raises(ValueError, match="Unsupported filter logic"):
        build_filter([], "XOR")


def test_effective_rules():
    group = FilterGroup(
        logic="AND",
        rules=[FilterRule(column="a", op="EQ", values=[]), FilterRule(column="b", op="EQ", values=["1"])],
    )
    assert [r.column for r in effective_rules(group)] == ["b"]
    assert effective_rules(None) == []
