"""
Shared fakes: an in-memory transport and a renderer that records calls.
"""
from __future__ import annotations

import json

import pytest

from src.core.errors import TransportError
from src.query.state import TableSchema, UserInfo
from src.render.dispatcher import BackendResponse, Renderer
from src.transport.base import Transport


def rows_response(rows, duration=12, error=None) -> BackendResponse:
    return BackendResponse(error=error, duration=duration, data=json.dumps(rows).encode("utf-8"))


class FakeTransport(Transport):
    arch_mode = 2

    def __init__(self, tables=None, schemas=None, responses=None, fail_query=False):
        self.tables = tables if tables is not None else ["nebula.test", "k.pinterest"]
        self.schemas = schemas or {}
        self.responses = list(responses or [])
        self.fail_query = fail_query
        self.requests = []
        self.before_reply = None
        self.closed = False

    async def list_tables(self):
        return list(self.tables)

    async def get_table_state(self, table):
        if table not in self.tables:
            raise TransportError(f"Error: unknown table {table}")
        return self.schemas.get(table) or TableSchema(
            bc=3, rc=2_000_000, ms=1_000_000_000, mt=1548979200, xt=1556668800,
            dl=["_time_", "event", "region"], ml=["value"],
        )

    async def run_query(self, request):
        self.requests.append(request)
        if self.before_reply is not None:
            self.before_reply()
        if self.fail_query:
            raise TransportError("Failed to get reply: connection refused")
        if self.responses:
            return self.responses.pop(0)
        return rows_response([])

    async def get_user(self):
        return UserInfo(auth=True, user="alice")

    async def aclose(self):
        self.closed = True


class RecordingRenderer(Renderer):
    def __init__(self):
        self.calls = []

    def display_table(self, rows):
        self.calls.append(("table", rows))

    def display_timeline(self, series, window_key, metric_column, start_ms):
        self.calls.append(("timeline", series, window_key, metric_column, start_ms))

    def display_bar(self, rows, dimension, metric):
        self.calls.append(("bar", rows, dimension, metric))

    def display_pie(self, rows, dimension, metric):
        self.calls.append(("pie", rows, dimension, metric))

    def display_line(self, rows, dimension, metric):
        self.calls.append(("line", rows, dimension, metric))

    def display_flame(self, rows, dimension, metric):
        self.calls.append(("flame", rows, dimension, metric))

    def display_empty(self):
        self.calls.append(("empty",))

    def display_error(self, message):
        self.calls.append(("error", message))


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()
