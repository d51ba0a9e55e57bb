"""Shared FastAPI dependencies."""
from __future__ import annotations

from typing import AsyncIterator

from src.transport.base import Transport
from src.transport.router import get_transport


async def console_transport() -> AsyncIterator[Transport]:
    """One transport per request, closed when the response is sent."""
    transport = get_transport()
    try:
        yield transport
    finally:
        await transport.aclose()
