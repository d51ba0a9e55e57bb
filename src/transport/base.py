"""
Transport interface -- the only way the console talks to the backend.

Two strategies implement it (direct binary RPC and the JSON web proxy); one
is chosen per session and the rest of the console depends only on this class.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from src.query.compiler import BackendRequest
from src.query.state import TableSchema, UserInfo
from src.render.dispatcher import BackendResponse


class Transport(ABC):
    """Async, fallible access to tables, table state, and query execution.

    Every method raises ``TransportError`` when the backend cannot be reached
    or answers with something unusable.
    """

    arch_mode: int = 0

    @abstractmethod
    async def list_tables(self) -> list[str]: ...

    @abstractmethod
    async def get_table_state(self, table: str) -> TableSchema: ...

    @abstractmethod
    async def run_query(self, request: BackendRequest) -> BackendResponse: ...

    async def get_user(self) -> UserInfo:
        return UserInfo()

    async def aclose(self) -> None:
        pass
