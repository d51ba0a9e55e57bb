"""
Direct binary-protocol transport (arch mode 1).

The console does not own the wire encoding: it adapts an injected RPC stub
whose replies use the service's own field names and maps them onto the same
typed objects the proxy transport produces.
"""
from __future__ import annotations

from typing import Any, Protocol

from src.core.errors import TransportError
from src.core.logging import get_logger
from src.query.compiler import BackendRequest
from src.query.state import TableSchema
from src.render.dispatcher import BackendResponse
from src.transport.base import Transport

logger = get_logger(__name__)


class RpcStub(Protocol):
    """Async client generated for the query service."""

    async def tables(self, limit: int) -> Any: ...

    async def state(self, table: str) -> Any: ...

    async def query(self, request: dict[str, Any]) -> Any: ...


def _field(reply: Any, name: str, default: Any = None) -> Any:
    if isinstance(reply, dict):
        return reply.get(name, default)
    return getattr(reply, name, default)


class DirectTransport(Transport):
    """Binary RPC transport."""

    arch_mode = 1

    def __init__(self, stub: RpcStub, list_limit: int = 100):
        self._stub = stub
        self._list_limit = list_limit

    async def list_tables(self) -> list[str]:
        try:
            reply = await self._stub.tables(self._list_limit)
        except Exception as exc:
            raise TransportError(f"RPC Error: {exc}") from exc
        return [str(t) for t in (_field(reply, "table_list") or [])]

    async def get_table_state(self, table: str) -> TableSchema:
        try:
            reply = await self._stub.state(table)
        except Exception as exc:
            raise TransportError(f"Error code: {exc}") from exc
        if reply is None:
            raise TransportError("Failed to get reply")
        return TableSchema(
            block_count=_field(reply, "block_count", 0),
            row_count=_field(reply, "row_count", 0),
            memory_bytes=_field(reply, "mem_size", 0),
            min_time=_field(reply, "min_time", 0),
            max_time=_field(reply, "max_time", 0),
            dimensions=list(_field(reply, "dimension_list") or []),
            metrics=list(_field(reply, "metric_list") or []),
        )

    async def run_query(self, request: BackendRequest) -> BackendResponse:
        try:
            reply = await self._stub.query(request.to_wire())
        except Exception as exc:
            logger.warning("RPC query failed: %s", exc)
            raise TransportError(f"Failed to get reply: {exc}") from exc
        if reply is None:
            raise TransportError("Failed to get reply: None")

        stats = _field(reply, "stats")
        data = _field(reply, "data") or b""
        if isinstance(data, str):
            data = data.encode("utf-8")
        return BackendResponse(
            error=_field(stats, "error") or None,
            duration=int(_field(stats, "query_time_ms", 0) or 0),
            data=bytes(data),
        )
