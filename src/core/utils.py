"""
Small shared utilities.
"""
from __future__ import annotations

import math
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@contextmanager
def timer() -> Generator[dict, None, None]:
    """Context manager that records elapsed wall-clock milliseconds."""
    result: dict = {}
    start = time.perf_counter()
    try:
        yield result
    finally:
        result["elapsed_ms"] = int((time.perf_counter() - start) * 1000)


def js_round(value: float) -> int:
    """Round half up, matching JavaScript's Math.round."""
    return int(math.floor(value + 0.5))


def format_time(ms: int | float) -> str:
    """Format epoch milliseconds as a UTC calendar string."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime(TIME_FORMAT)


def parse_time(value: str) -> int:
    """Parse a calendar or ISO-8601 string into epoch milliseconds (UTC when naive)."""
    text = value.strip()
    try:
        dt = datetime.strptime(text, TIME_FORMAT)
    except ValueError:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
