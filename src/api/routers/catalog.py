"""
GET /tables, GET /tables/{table}, GET /user -- metadata endpoints.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from src.api.deps import console_transport
from src.core.errors import TransportError
from src.core.logging import get_logger
from src.transport.base import Transport

logger = get_logger(__name__)
router = APIRouter()


class TableStateResponse(BaseModel):
    table: str
    block_count: int
    row_count: int
    memory_bytes: int
    min_time: int
    max_time: int
    dimensions: list[str]
    metrics: list[str]
    columns: list[str]
    default_start: int
    default_end: int
    summary: str


class UserResponse(BaseModel):
    auth: bool
    user: str | None = None
    banner: str


@router.get("/tables")
async def list_tables(transport: Transport = Depends(console_transport)) -> dict:
    """Return table names, sorted."""
    try:
        tables = await transport.list_tables()
    except TransportError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"tables": sorted(tables)}


@router.get("/tables/{table}", response_model=TableStateResponse)
async def table_state(table: str, transport: Transport = Depends(console_transport)) -> TableStateResponse:
    """Return statistics and selectable columns for one table."""
    try:
        schema = await transport.get_table_state(table)
    except TransportError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    start, end = schema.default_range()
    return TableStateResponse(
        table=table,
        **schema.model_dump(),
        columns=schema.selectable_columns(),
        default_start=start,
        default_end=end,
        summary=schema.summary(),
    )


@router.get("/user", response_model=UserResponse)
async def current_user(transport: Transport = Depends(console_transport)) -> UserResponse:
    user = await transport.get_user()
    return UserResponse(auth=user.auth, user=user.user, banner=user.banner)
