"""
Declarative query builder.

Queries can be written as a small YAML document instead of clicking through
the controls.  The document is parsed with ``yaml.safe_load``, checked against
a strict schema, and replayed through ``QueryBuilder``; nothing in it is ever
executed as code.

Example script::

    table: nebula.test
    time: {start: "2019-02-01 00:00:00", end: "2019-05-01 00:00:00"}
    select: [event]
    where:
      logic: and
      rules:
        - {column: tag, op: eq, values: [a, b]}
    display: bar
    metric: {column: value, rollup: sum}
    sort: desc
    limit: 20
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from src.core.errors import ScriptError
from src.core.logging import get_logger
from src.query.filters import build_filter
from src.query.state import (
    DisplayType,
    FilterRule,
    OrderType,
    QueryState,
    RollupMethod,
)

logger = get_logger(__name__)

TimeValue = Union[int, str, datetime]


def _enum(enum_cls, value: Any, what: str):
    try:
        return enum_cls(str(getattr(value, "value", value)).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value.lower() for m in enum_cls)
        raise ScriptError(f"Code Error: unknown {what} '{value}'. Allowed: {allowed}") from None


class QueryBuilder:
    """Fluent builder producing a QueryState."""

    def __init__(self):
        self.reset()

    def reset(self) -> "QueryBuilder":
        self._table: str | None = None
        self._start: TimeValue | None = None
        self._end: TimeValue | None = None
        self._keys: list[str] = []
        self._rules: list[FilterRule] = []
        self._logic = "AND"
        self._window = 0
        self._display = DisplayType.TABLE
        self._metric = ""
        self._rollup = RollupMethod.COUNT
        self._sort = OrderType.DESC
        self._limit = 100
        return self

    # ── chain methods ───────────────────────────────────

    def table(self, name: str) -> "QueryBuilder":
        self._table = name
        return self

    def time(self, start: TimeValue, end: TimeValue) -> "QueryBuilder":
        self._start, self._end = start, end
        return self

    def select(self, *keys: str) -> "QueryBuilder":
        self._keys = [str(k) for k in keys]
        return self

    def where(self, column: str, op: str, values: list[Any] | Any) -> "QueryBuilder":
        try:
            self._rules.append(FilterRule(column=column, op=op, values=values))
        except PydanticValidationError as exc:
            raise ScriptError(f"Code Error: invalid filter on '{column}': {exc.errors()[0]['msg']}") from exc
        return self

    def logic(self, logic: str) -> "QueryBuilder":
        normalised = str(logic).strip().upper()
        if normalised not in ("AND", "OR"):
            raise ScriptError(f"Code Error: unknown filter logic '{logic}'. Allowed: and, or")
        self._logic = normalised
        return self

    def window(self, seconds: int) -> "QueryBuilder":
        self._window = int(seconds)
        return self

    def display(self, display: str | DisplayType) -> "QueryBuilder":
        self._display = _enum(DisplayType, display, "display")
        return self

    def metric(self, column: str, rollup: str | RollupMethod = RollupMethod.COUNT) -> "QueryBuilder":
        self._metric = column
        self._rollup = _enum(RollupMethod, rollup, "rollup")
        return self

    def sort(self, order: str | OrderType) -> "QueryBuilder":
        self._sort = _enum(OrderType, order, "sort order")
        return self

    def limit(self, n: int) -> "QueryBuilder":
        self._limit = int(n)
        return self

    # ── terminal methods ────────────────────────────────

    def validate(self) -> str | None:
        """Return the first problem with the query so far, or None."""
        if not self._table:
            return "no table specified"
        if self._start is None or self._end is None:
            return "no time range specified"
        if self._display != DisplayType.SAMPLES and not self._metric:
            return f"a metric is required for {self._display.value.lower()} queries"
        if self._display == DisplayType.SAMPLES and not self._keys:
            return "samples need at least one dimension"
        if self._limit <= 0:
            return "limit must be positive"
        if self._window < 0:
            return "window must not be negative"
        return None

    def build(self) -> QueryState:
        error = self.validate()
        if error:
            raise ScriptError(f"Validation Error: {error}")
        try:
            return QueryState(
                table=self._table,
                start=self._start,
                end=self._end,
                filter=build_filter(self._rules, self._logic),
                keys=self._keys,
                window=self._window,
                display=self._display,
                metrics=self._metric,
                rollup=self._rollup,
                sort=self._sort,
                limit=self._limit,
            )
        except (PydanticValidationError, ValueError) as exc:
            raise ScriptError(f"Validation Error: {exc}") from exc


# ── Script documents ────────────────────────────────────


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ScriptTime(_Strict):
    start: TimeValue
    end: TimeValue


class ScriptRule(_Strict):
    column: str
    op: str
    values: list[Any] = Field(default_factory=list)


class ScriptWhere(_Strict):
    logic: str = "and"
    rules: list[ScriptRule] = Field(default_factory=list)


class ScriptMetric(_Strict):
    column: str
    rollup: str = "count"


class ScriptDocument(_Strict):
    table: str
    time: ScriptTime
    select: list[str] = Field(default_factory=list)
    where: ScriptWhere | None = None
    window: int = 0
    display: str = "table"
    metric: ScriptMetric | None = None
    sort: str = "desc"
    limit: int = 100


def _load_document(code: str) -> ScriptDocument:
    try:
        raw = yaml.safe_load(code)
    except yaml.YAMLError as exc:
        raise ScriptError(f"Code Error: {exc}") from exc
    if not isinstance(raw, dict):
        raise ScriptError("Code Error: a script must be a mapping of query settings")
    try:
        return ScriptDocument.model_validate(raw)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first["loc"])
        raise ScriptError(f"Code Error: {where}: {first['msg']}") from exc


def evaluate_script(code: str, builder: QueryBuilder | None = None) -> QueryState:
    """Turn a builder script into a QueryState carrying the script itself.

    Raises
    ------
    ScriptError
        ``Code Error: ...`` for unreadable scripts, ``Validation Error: ...``
        when the described query is incomplete.
    """
    doc = _load_document(code)
    qb = (builder or QueryBuilder()).reset()

    qb.table(doc.table).time(doc.time.start, doc.time.end)
    qb.select(*doc.select)
    if doc.where is not None:
        qb.logic(doc.where.logic)
        for rule in doc.where.rules:
            qb.where(rule.column, rule.op, rule.values)
    qb.window(doc.window).display(doc.display).sort(doc.sort).limit(doc.limit)
    if doc.metric is not None:
        qb.metric(doc.metric.column, doc.metric.rollup)

    state = qb.build()
    logger.info("Script built query table=%s display=%s", state.table, state.display.value)
    return state.model_copy(update={"code": code})
