"""
QueryState -- the single source of truth for a console query.

The state is what gets persisted in the URL fragment, so its JSON shape is
part of the public surface: short aliases (``l``/``r`` for filter groups,
``c``/``o``/``v`` for rules) and string-valued enums.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.core.utils import format_time, js_round, parse_time

# Reserved column every table carries, explicitly or implicitly.
TIME_COLUMN = "_time_"
# Time-bucket field produced for timeline queries.
WINDOW_KEY = "_window_"


# ── Enums ────────────────────────────────────────────────


class DisplayType(str, Enum):
    TABLE = "TABLE"
    SAMPLES = "SAMPLES"
    TIMELINE = "TIMELINE"
    BAR = "BAR"
    PIE = "PIE"
    LINE = "LINE"
    FLAME = "FLAME"


class RollupMethod(str, Enum):
    COUNT = "COUNT"
    SUM = "SUM"
    MIN = "MIN"
    MAX = "MAX"
    AVG = "AVG"
    TREEMERGE = "TREEMERGE"
    P10 = "P10"
    P25 = "P25"
    P50 = "P50"
    P75 = "P75"
    P90 = "P90"
    P99 = "P99"
    P99_9 = "P99_9"
    P99_99 = "P99_99"


class OrderType(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


_OP_SYMBOLS = {
    "EQ": "=",
    "NEQ": "!=",
    "MORE": ">",
    "LESS": "<",
    "LIKE": "like",
    "ILIKE": "ilike",
}


class Operation(str, Enum):
    EQ = "EQ"
    NEQ = "NEQ"
    MORE = "MORE"
    LESS = "LESS"
    LIKE = "LIKE"
    ILIKE = "ILIKE"

    @property
    def symbol(self) -> str:
        """Operator as shown in the filter editor."""
        return _OP_SYMBOLS[self.value]


def _upper(value: Any) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


# ── Filters ──────────────────────────────────────────────


class FilterRule(BaseModel):
    """One predicate: ``column op values``."""

    model_config = ConfigDict(populate_by_name=True)

    column: str = Field(..., alias="c")
    op: Operation = Field(..., alias="o")
    values: list[str] = Field(default_factory=list, alias="v")

    normalise_op = field_validator("op", mode="before")(_upper)

    @field_validator("values", mode="before")
    @classmethod
    def stringify_values(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (str, int, float)):
            v = [v]
        if isinstance(v, list):
            return [str(x) for x in v]
        return v


class FilterGroup(BaseModel):
    """A flat group of rules joined by one operator. Groups never nest."""

    model_config = ConfigDict(populate_by_name=True)

    logic: Literal["AND", "OR"] = Field("AND", alias="l")
    rules: list[FilterRule] = Field(default_factory=list, alias="r")

    normalise_logic = field_validator("logic", mode="before")(_upper)


# ── Query state ──────────────────────────────────────────


class QueryState(BaseModel):
    """Everything needed to reproduce a query, round-tripped through the URL."""

    model_config = ConfigDict(populate_by_name=True)

    table: str = Field(..., min_length=1, description="Table to query")
    start: int = Field(..., description="Range start, epoch milliseconds")
    end: int = Field(..., description="Range end, epoch milliseconds")
    filter: FilterGroup | None = None
    keys: list[str] = Field(default_factory=list, description="Dimension columns, primary first")
    window: int = Field(0, ge=0, description="Bucket width in seconds, 0 = auto")
    display: DisplayType = DisplayType.TABLE
    metrics: str = Field("", description="Metric column")
    rollup: RollupMethod = RollupMethod.COUNT
    sort: OrderType = OrderType.DESC
    limit: int = Field(100, gt=0, description="Result row cap")
    code: str | None = Field(None, description="Builder script that produced this state")
    arch: int | None = Field(None, description="Transport mode override")

    normalise_enums = field_validator("display", "rollup", "sort", mode="before")(_upper)

    @field_validator("start", "end", mode="before")
    @classmethod
    def to_millis(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            return int(v.timestamp() * 1000)
        if isinstance(v, str):
            text = v.strip()
            if text.lstrip("-").isdigit():
                return int(text)
            return parse_time(text)
        return v

    @field_validator("keys", mode="before")
    @classmethod
    def keys_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @model_validator(mode="after")
    def check_invariants(self) -> "QueryState":
        if self.start >= self.end:
            raise ValueError(f"start ({self.start}) must be before end ({self.end})")
        if TIME_COLUMN in self.keys and self.display != DisplayType.SAMPLES:
            raise ValueError(f"'{TIME_COLUMN}' is reserved and only implied for samples")
        return self

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict in the URL shape (absent optionals omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Table metadata ───────────────────────────────────────


class TableSchema(BaseModel):
    """Per-table statistics and column lists, as reported by the backend."""

    model_config = ConfigDict(populate_by_name=True)

    block_count: int = Field(0, alias="bc")
    row_count: int = Field(0, alias="rc")
    memory_bytes: int = Field(0, alias="ms")
    min_time: int = Field(0, alias="mt", description="Epoch seconds")
    max_time: int = Field(0, alias="xt", description="Epoch seconds")
    dimensions: list[str] = Field(default_factory=list, alias="dl")
    metrics: list[str] = Field(default_factory=list, alias="ml")

    @field_validator("dimensions", "metrics", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def selectable_columns(self) -> list[str]:
        """Columns the user may pick for keys or metric; the time column is implicit."""
        seen: list[str] = []
        for col in [*self.dimensions, *self.metrics]:
            if col != TIME_COLUMN and col not in seen:
                seen.append(col)
        return seen

    def default_range(self) -> tuple[int, int]:
        """(start, end) in epoch milliseconds covering all data."""
        return self.min_time * 1000, self.max_time * 1000 + 1

    def summary(self) -> str:
        rows_m = js_round(self.row_count / 10_000) / 100
        mem_gb = js_round(self.memory_bytes / 10_000_000) / 100
        start, end = self.default_range()
        return (
            f"[Blocks: {self.block_count}, Rows: {rows_m}M, Mem: {mem_gb}GB, "
            f"Min T: {format_time(start)}, Max T: {format_time(end)}]"
        )


class UserInfo(BaseModel):
    auth: bool = False
    user: str | None = None

    @property
    def banner(self) -> str:
        return self.user if self.auth and self.user else "unauth"
