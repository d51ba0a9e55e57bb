"""
Console session -- orchestrates decode -> validate -> compile -> run -> dispatch.

All mutable state of one user session lives in a ``SessionContext`` that is
handed to every pipeline step; there are no module-level globals.  Steps run
strictly in order, and any failure before the network call leaves the previous
render on screen.

Each ``execute`` takes a new generation number; a response that arrives after
a newer query was started is logged and dropped instead of being drawn.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from src.core.config import Settings, get_settings
from src.core.errors import ParseError, TransportError, ValidationError
from src.core.logging import get_logger
from src.core.utils import timer
from src.governance.validator import check_request
from src.query.codec import decode_payload, decode_state, default_fragment, encode_state, has_state
from src.query.compiler import compile_request
from src.query.state import QueryState, TableSchema
from src.render.dispatcher import (
    QueryFailed,
    RenderChart,
    RenderInstruction,
    Renderer,
    RenderTable,
    RenderTimeline,
    dispatch,
    draw,
)
from src.render.scheduler import ResizeScheduler
from src.transport.base import Transport
from src.transport.direct import RpcStub
from src.transport.router import get_transport

logger = get_logger(__name__)

RUNNING = "running query..."

T = TypeVar("T")


@dataclass
class SessionContext:
    """Everything one console session owns."""

    transport: Transport
    arch_mode: int
    renderer: Renderer | None = None
    settings: Settings = field(default_factory=get_settings)
    fragment: str = ""
    state: QueryState | None = None
    table: str | None = None
    schema: TableSchema | None = None
    rows: list[dict[str, Any]] = field(default_factory=list)
    instruction: RenderInstruction | None = None
    status: str = ""
    generation: int = 0
    scheduler: ResizeScheduler = field(default_factory=ResizeScheduler)

    def next_generation(self) -> int:
        self.generation += 1
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation


def _arch_override(fragment: str | None) -> int | None:
    if not has_state(fragment):
        return None
    try:
        arch = decode_payload(fragment).get("arch")
        return int(arch) if arch is not None else None
    except (ParseError, TypeError, ValueError):
        return None


def start_session(
    renderer: Renderer | None = None,
    settings: Settings | None = None,
    fragment: str | None = None,
    stub: RpcStub | None = None,
    transport: Transport | None = None,
) -> SessionContext:
    """Create a session; the transport mode is fixed here for its lifetime.

    An ``arch`` value in the initial fragment overrides the configured mode.
    """
    settings = settings or get_settings()
    arch_mode = _arch_override(fragment) or settings.arch_mode
    if transport is None:
        transport = get_transport(arch_mode, settings=settings, stub=stub)
    else:
        arch_mode = transport.arch_mode or arch_mode
    logger.info("Session started | arch_mode=%d", arch_mode)
    return SessionContext(
        transport=transport,
        arch_mode=arch_mode,
        renderer=renderer,
        settings=settings,
        fragment=fragment or "",
    )


async def load_tables(ctx: SessionContext) -> list[str]:
    """Sorted table names (status carries the error on failure)."""
    try:
        tables = sorted(await ctx.transport.list_tables())
    except TransportError as exc:
        ctx.status = str(exc)
        logger.warning("Table listing failed: %s", exc)
        return []
    logger.info("Loaded %d tables", len(tables))
    return tables


async def select_table(ctx: SessionContext, table: str) -> TableSchema | None:
    """Fetch *table*'s schema; switching tables clears the current query."""
    try:
        schema = await ctx.transport.get_table_state(table)
    except TransportError as exc:
        ctx.status = str(exc)
        logger.warning("Table state failed for %s: %s", table, exc)
        return None

    if ctx.table is not None and ctx.table != table:
        ctx.fragment = ""
        ctx.state = None
    ctx.table = table
    ctx.schema = schema
    ctx.status = schema.summary()
    return schema


def build(ctx: SessionContext, state: QueryState | dict[str, Any]) -> str:
    """Store *state* as the session fragment and return it."""
    if isinstance(state, dict):
        if not state.get("start") or not state.get("end"):
            raise ValidationError("please enter start and end time")
        state = QueryState.model_validate(state)
    ctx.fragment = encode_state(state)
    return ctx.fragment


async def restore(ctx: SessionContext, fragment: str | None, tables: list[str]) -> RenderInstruction | None:
    """Re-open the session at *fragment* (or the first table when it is empty)."""
    if not has_state(fragment):
        if not tables:
            return None
        fragment = default_fragment(tables[0])

    try:
        payload = decode_payload(fragment)
    except ParseError as exc:
        logger.info("Nothing to restore: %s", exc)
        return None

    table = payload.get("table")
    if not table:
        return None
    if await select_table(ctx, table) is None:
        return None

    ctx.fragment = fragment
    return await execute(ctx, fragment)


async def execute(ctx: SessionContext, fragment: str | None = None) -> RenderInstruction | None:
    """Run the query held in *fragment* (default: the session fragment).

    Returns the drawn instruction, or None when nothing was drawn (no state,
    validation failure, transport failure, or a stale response).
    """
    fragment = fragment if fragment is not None else ctx.fragment

    # 1. decode
    try:
        state = decode_state(fragment)
    except ParseError as exc:
        logger.debug("Execute skipped: %s", exc)
        return None

    if state.arch is not None and state.arch != ctx.arch_mode:
        logger.warning("Ignoring arch=%d in URL; session runs arch_mode=%d", state.arch, ctx.arch_mode)

    # 2. validate
    try:
        check_request(state, max_buckets=ctx.settings.max_timeline_buckets)
    except ValidationError as exc:
        ctx.status = str(exc)
        return None

    # 3. compile
    ctx.fragment = fragment
    ctx.state = state
    generation = ctx.next_generation()
    request = compile_request(state)
    ctx.status = RUNNING
    logger.info("Execute | gen=%d table=%s display=%s", generation, state.table, state.display.value)

    # 4. run
    with timer() as t:
        try:
            response = await ctx.transport.run_query(request)
        except TransportError as exc:
            if ctx.is_current(generation):
                ctx.status = str(exc)
            logger.warning("Query transport failed (gen=%d): %s", generation, exc)
            return None

    if not ctx.is_current(generation):
        logger.info("Dropping stale response gen=%d (current=%d)", generation, ctx.generation)
        return None

    # 5. dispatch
    instruction = dispatch(state, response)
    logger.info("Query done | gen=%d kind=%s wall=%d ms", generation, instruction.kind, t["elapsed_ms"])
    return _present(ctx, instruction)


def _present(ctx: SessionContext, instruction: RenderInstruction) -> RenderInstruction:
    ctx.instruction = instruction
    ctx.status = instruction.status
    if isinstance(instruction, (RenderTable, RenderChart)):
        ctx.rows = instruction.rows
    elif isinstance(instruction, RenderTimeline):
        ctx.rows = [row for rows in instruction.series.values() for row in rows]
    elif not isinstance(instruction, QueryFailed):
        ctx.rows = []

    if ctx.renderer is not None:
        draw(instruction, ctx.renderer)
        if not isinstance(instruction, QueryFailed):
            ctx.scheduler.bind(lambda: draw(instruction, ctx.renderer))
    return instruction


def on_resize(ctx: SessionContext) -> bool:
    """Redraw the last result from cached rows; no fetch."""
    return ctx.scheduler.notify_resize()


async def current_user(ctx: SessionContext) -> str:
    """Text for the user banner."""
    user = await ctx.transport.get_user()
    return user.banner


def run_isolated(
    ctx: SessionContext,
    step: Callable[..., Awaitable[T]],
    *args: Any,
    factory: Callable[[], Transport] | None = None,
) -> T:
    """Run one async session step to completion from synchronous code.

    Each call gets its own event loop, so the transport is built inside that
    loop and closed before it ends; no connection pool outlives its loop.
    """
    def fresh_transport() -> Transport:
        if factory is not None:
            return factory()
        return get_transport(ctx.arch_mode, settings=ctx.settings)

    async def bound() -> T:
        ctx.transport = fresh_transport()
        try:
            return await step(ctx, *args)
        finally:
            await ctx.transport.aclose()

    return asyncio.run(bound())


async def close(ctx: SessionContext) -> None:
    ctx.scheduler.clear()
    await ctx.transport.aclose()
