"""
RequestCompiler -- turns a validated QueryState into a BackendRequest.

Pure and side-effect free: no network, no mutation of the input state.  The
compiled request only ever uses columns named in the state; the time column is
the single implicit addition (samples always return timestamps).
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.core.utils import js_round
from src.query.filters import effective_rules
from src.query.state import (
    TIME_COLUMN,
    DisplayType,
    FilterGroup,
    Operation,
    OrderType,
    QueryState,
    RollupMethod,
)


# ── Request model ────────────────────────────────────────


class Predicate(BaseModel):
    column: str
    op: Operation
    values: list[str]


class PredicateGroup(BaseModel):
    expressions: list[Predicate] = Field(default_factory=list)


class MetricDescriptor(BaseModel):
    column: str
    method: RollupMethod


class OrderDescriptor(BaseModel):
    column: str
    type: OrderType


class BackendRequest(BaseModel):
    """Concrete query request as the backend expects it."""

    table: str
    start: int = Field(..., description="Epoch seconds")
    end: int = Field(..., description="Epoch seconds")
    filter_and: PredicateGroup | None = None
    filter_or: PredicateGroup | None = None
    dimensions: list[str] = Field(default_factory=list)
    display: DisplayType
    window: int = 0
    metrics: list[MetricDescriptor] | None = None
    order: OrderDescriptor | None = None
    top: int

    # the state this request was compiled from; never part of the wire format
    origin: QueryState | None = Field(None, exclude=True)

    @property
    def has_filter(self) -> bool:
        return self.filter_and is not None or self.filter_or is not None

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with absent fields omitted."""
        return self.model_dump(mode="json", exclude_none=True)


# ── Compilation ──────────────────────────────────────────


def to_seconds(ms: int) -> int:
    return js_round(ms / 1000)


def _compile_filter(group: FilterGroup | None) -> dict[str, PredicateGroup]:
    predicates = [
        Predicate(column=r.column, op=r.op, values=list(r.values))
        for r in effective_rules(group)
    ]
    if not predicates:
        return {}
    if group.logic == "AND":
        return {"filter_and": PredicateGroup(expressions=predicates)}
    return {"filter_or": PredicateGroup(expressions=predicates)}


def compile_keys(state: QueryState) -> list[str]:
    """Dimension list to send: samples always lead with the time column."""
    keys = list(state.keys)
    if state.display == DisplayType.SAMPLES and (not keys or keys[0] != TIME_COLUMN):
        keys.insert(0, TIME_COLUMN)
    return keys


def compile_request(state: QueryState) -> BackendRequest:
    """Build the backend request for a validated *state*."""
    fields: dict[str, Any] = {
        "table": state.table,
        "start": to_seconds(state.start),
        "end": to_seconds(state.end),
        "dimensions": compile_keys(state),
        "display": state.display,
        "window": state.window,
        "top": state.limit,
        "origin": state,
    }
    fields.update(_compile_filter(state.filter))

    # rollup and ordering are meaningless over raw sampled rows
    if state.display != DisplayType.SAMPLES:
        fields["metrics"] = [MetricDescriptor(column=state.metrics, method=state.rollup)]
        fields["order"] = OrderDescriptor(column=state.metrics, type=state.sort)

    return BackendRequest(**fields)
