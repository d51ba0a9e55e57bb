"""
JSON-over-HTTP proxy transport.

Talks to the web server's single query endpoint (``/?api=...``) so that OAuth
lives in one place and the RPC port can stay private.  Query requests forward
the percent-encoded *state* JSON; the web server compiles and runs it.
"""
from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from src.core.errors import TransportError
from src.core.logging import get_logger
from src.query.codec import state_json
from src.query.compiler import BackendRequest
from src.query.state import TableSchema, UserInfo
from src.render.dispatcher import BackendResponse
from src.transport.base import Transport

logger = get_logger(__name__)


def _as_bytes(data: Any) -> bytes:
    """Normalise the ``data`` field of a query reply to raw bytes."""
    if data is None:
        return b""
    if isinstance(data, bytes):
        return data
    if isinstance(data, str):
        return data.encode("utf-8")
    if isinstance(data, dict) and data.get("type") == "Buffer":
        data = data.get("data", [])
    if isinstance(data, list):
        try:
            return bytes(data)
        except (TypeError, ValueError) as exc:
            raise TransportError(f"Query data is not a byte array: {exc}") from exc
    raise TransportError(f"Unsupported query data type: {type(data).__name__}")


class HttpProxyTransport(Transport):
    """Web API transport (arch mode 2)."""

    arch_mode = 2

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def _get(self, api: str, **params: str) -> Any:
        query = {"api": api, "start": "0", "end": "0", **params}
        try:
            resp = await self._client.get("/", params=query)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("Proxy api=%s returned %d", api, exc.response.status_code)
            raise TransportError(
                f"Error: {exc.response.status_code} {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Proxy api=%s unreachable: %s", api, exc)
            raise TransportError(f"Error: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Error: api={api} returned invalid JSON") from exc

    async def list_tables(self) -> list[str]:
        data = await self._get("tables")
        if not isinstance(data, list):
            raise TransportError("Error: table list is not an array")
        return [str(t) for t in data]

    async def get_table_state(self, table: str) -> TableSchema:
        data = await self._get("state", table=table)
        try:
            return TableSchema.model_validate(data)
        except PydanticValidationError as exc:
            raise TransportError(f"Error: unreadable state for table '{table}'") from exc

    async def run_query(self, request: BackendRequest) -> BackendResponse:
        if request.origin is None:
            raise TransportError("Error: proxy queries need the originating state")
        # the client percent-encodes params, so pass the plain JSON text
        data = await self._get("query", query=state_json(request.origin))
        if not isinstance(data, dict):
            raise TransportError("Error: query reply is not an object")
        logger.info("Proxy query table=%s duration=%s ms", request.table, data.get("duration"))
        return BackendResponse(
            error=data.get("error") or None,
            duration=int(data.get("duration") or 0),
            data=_as_bytes(data.get("data")),
        )

    async def get_user(self) -> UserInfo:
        try:
            resp = await self._client.get("/", params={"api": "user"})
            resp.raise_for_status()
            return UserInfo.model_validate(resp.json())
        except (httpx.HTTPError, ValueError, PydanticValidationError) as exc:
            logger.warning("User lookup failed: %s", exc)
            return UserInfo()

    async def aclose(self) -> None:
        await self._client.aclose()
