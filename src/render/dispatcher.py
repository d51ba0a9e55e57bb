"""
ResultDispatcher -- turns a backend response into a render instruction.

Supported variants:
  - table     (TABLE and SAMPLES: rows shown as a grid, untouched)
  - timeline  (TIMELINE: rows grouped into series by the primary dimension)
  - chart     (BAR, PIE, LINE, FLAME: keyed by dimension / metric column)
  - empty     (backend returned no rows)
  - failed    (backend reported an error, or the payload was unreadable)

The dimension/metric pair is a heuristic: the first key is the dimension and
the first non-key column of the first row is the metric.  That is only right
for single-dimension, single-metric results.
"""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from src.core.errors import QueryExecutionError
from src.core.logging import get_logger
from src.query.state import WINDOW_KEY, DisplayType, QueryState

logger = get_logger(__name__)

DEFAULT_SERIES = "default"


class BackendResponse(BaseModel):
    """Typed reply from either transport."""

    error: str | None = None
    duration: int = Field(0, description="Query time in milliseconds")
    data: bytes = b""


# ── Render instructions ─────────────────────────────────


@dataclass
class RenderInstruction:
    status: str

    @property
    def kind(self) -> str:
        return "base"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "status": self.status}


@dataclass
class QueryFailed(RenderInstruction):
    error: str = ""
    duration_ms: int = 0

    @property
    def kind(self) -> str:
        return "failed"

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "error": self.error, "duration_ms": self.duration_ms}


@dataclass
class EmptyResult(RenderInstruction):
    duration_ms: int = 0

    @property
    def kind(self) -> str:
        return "empty"

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "duration_ms": self.duration_ms}


@dataclass
class RenderTable(RenderInstruction):
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return "table"

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "rows": self.rows}


@dataclass
class RenderTimeline(RenderInstruction):
    series: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    window_key: str = WINDOW_KEY
    metric_column: str = ""
    start_ms: int = 0

    @property
    def kind(self) -> str:
        return "timeline"

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "series": self.series,
            "window_key": self.window_key,
            "metric_column": self.metric_column,
            "start_ms": self.start_ms,
        }


@dataclass
class RenderChart(RenderInstruction):
    chart: DisplayType = DisplayType.BAR
    rows: list[dict[str, Any]] = field(default_factory=list)
    dimension_column: str = ""
    metric_column: str = ""

    @property
    def kind(self) -> str:
        return self.chart.value.lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "rows": self.rows,
            "dimension_column": self.dimension_column,
            "metric_column": self.metric_column,
        }


# ── Renderer seam ───────────────────────────────────────


class Renderer(ABC):
    """Whatever actually paints results (Streamlit, a test recorder, ...)."""

    @abstractmethod
    def display_table(self, rows: list[dict[str, Any]]) -> None: ...

    @abstractmethod
    def display_timeline(
        self,
        series: dict[str, list[dict[str, Any]]],
        window_key: str,
        metric_column: str,
        start_ms: int,
    ) -> None: ...

    @abstractmethod
    def display_bar(self, rows: list[dict[str, Any]], dimension: str, metric: str) -> None: ...

    @abstractmethod
    def display_pie(self, rows: list[dict[str, Any]], dimension: str, metric: str) -> None: ...

    @abstractmethod
    def display_line(self, rows: list[dict[str, Any]], dimension: str, metric: str) -> None: ...

    @abstractmethod
    def display_flame(self, rows: list[dict[str, Any]], dimension: str, metric: str) -> None: ...

    def display_empty(self) -> None:
        pass

    def display_error(self, message: str) -> None:
        pass


# ── Dispatch ────────────────────────────────────────────


def extract_xy(rows: list[dict[str, Any]], keys: list[str]) -> tuple[str, str]:
    """Return (dimension_column, metric_column) for charting."""
    dimension = keys[0] if keys else ""
    metric = ""
    if rows:
        for col in rows[0]:
            if col not in keys:
                metric = col
                break
    return dimension, metric


def decode_rows(data: bytes) -> list[dict[str, Any]]:
    """UTF-8 JSON array of row objects -> list of dicts."""
    rows = json.loads(data.decode("utf-8")) if data else []
    if not isinstance(rows, list):
        raise ValueError("result is not a JSON array")
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            raise ValueError(f"row {i} is not a JSON object")
    return rows


def group_series(rows: list[dict[str, Any]], column: str) -> dict[str, list[dict[str, Any]]]:
    """Group rows by the stringified value of *column*, first-seen order."""
    series: dict[str, list[dict[str, Any]]] = {}
    for row in rows:
        series.setdefault(str(row.get(column)), []).append(row)
    return series


def render_rows(state: QueryState, rows: list[dict[str, Any]], status: str) -> RenderInstruction:
    """Pick the render variant for non-empty *rows*."""
    dimension, metric = extract_xy(rows, state.keys)
    display = state.display

    if display in (DisplayType.TABLE, DisplayType.SAMPLES):
        return RenderTable(status=status, rows=rows)

    if display == DisplayType.TIMELINE:
        series = group_series(rows, dimension) if dimension else {DEFAULT_SERIES: rows}
        return RenderTimeline(
            status=status,
            series=series,
            window_key=WINDOW_KEY,
            metric_column=metric,
            start_ms=state.start,
        )

    return RenderChart(
        status=status,
        chart=display,
        rows=rows,
        dimension_column=dimension,
        metric_column=metric,
    )


def _failed(error: QueryExecutionError) -> QueryFailed:
    return QueryFailed(status=str(error), error=error.error, duration_ms=error.duration_ms)


def dispatch(state: QueryState, response: BackendResponse) -> RenderInstruction:
    """Turn *response* into a render instruction for *state*."""
    if response.error:
        logger.warning("Query failed: %s (%d ms)", response.error, response.duration)
        return _failed(QueryExecutionError(response.error, response.duration))

    try:
        rows = decode_rows(response.data)
    except (UnicodeDecodeError, ValueError) as exc:
        logger.warning("Unreadable query result: %s", exc)
        return _failed(QueryExecutionError(f"malformed result: {exc}", response.duration))

    status = f"[query time: {response.duration} ms]"
    if not rows:
        return EmptyResult(status=status, duration_ms=response.duration)

    logger.info("Dispatching %d rows as %s", len(rows), state.display.value)
    return render_rows(state, rows, status)


def draw(instruction: RenderInstruction, renderer: Renderer) -> None:
    """Feed *instruction* to the matching renderer method."""
    if isinstance(instruction, QueryFailed):
        renderer.display_error(instruction.status)
    elif isinstance(instruction, EmptyResult):
        renderer.display_empty()
    elif isinstance(instruction, RenderTable):
        renderer.display_table(instruction.rows)
    elif isinstance(instruction, RenderTimeline):
        renderer.display_timeline(
            instruction.series,
            instruction.window_key,
            instruction.metric_column,
            instruction.start_ms,
        )
    elif isinstance(instruction, RenderChart):
        painters = {
            DisplayType.BAR: renderer.display_bar,
            DisplayType.PIE: renderer.display_pie,
            DisplayType.LINE: renderer.display_line,
            DisplayType.FLAME: renderer.display_flame,
        }
        painters[instruction.chart](
            instruction.rows, instruction.dimension_column, instruction.metric_column
        )
