"""
FilterTree -- builds the single-level AND/OR predicate group from editor rows.

Operator and column legality are the backend's business; this module only
drops rules that carry no values.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping

from src.query.state import FilterGroup, FilterRule
from src.core.logging import get_logger

logger = get_logger(__name__)

_LOGICS = ("AND", "OR")


def _to_rule(raw: FilterRule | Mapping[str, Any]) -> FilterRule:
    if isinstance(raw, FilterRule):
        return raw
    return FilterRule.model_validate(dict(raw))


def build_filter(
    rules: Iterable[FilterRule | Mapping[str, Any]],
    logic: str = "AND",
) -> FilterGroup | None:
    """Return a FilterGroup, or None when no rule has any value.

    Parameters
    ----------
    rules : iterable
        FilterRule objects or mappings using either the URL keys
        (``c``/``o``/``v``) or the long names (``column``/``op``/``values``).
    logic : str
        ``AND`` or ``OR`` (case-insensitive).
    """
    normalised = logic.strip().upper()
    if normalised not in _LOGICS:
        raise ValueError(f"Unsupported filter logic '{logic}'. Choose from: {', '.join(_LOGICS)}")

    kept: list[FilterRule] = []
    dropped = 0
    for raw in rules:
        rule = _to_rule(raw)
        if rule.values:
            kept.append(rule)
        else:
            dropped += 1

    if dropped:
        logger.debug("Dropped %d filter rule(s) without values", dropped)

    if not kept:
        return None
    return FilterGroup(logic=normalised, rules=kept)


def effective_rules(group: FilterGroup | None) -> list[FilterRule]:
    """Rules of *group* that would actually be sent (non-empty values)."""
    if group is None:
        return []
    return [r for r in group.rules if r.values]
