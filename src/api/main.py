"""
FastAPI application entry-point.

Run with ``query-console-api`` or ``uvicorn src.api.main:app``.
"""
from __future__ import annotations

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routers import catalog, query
from src.core.config import get_settings
from src.core.errors import ConsoleError
from src.core.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Query Console",
    version="0.1.0",
    description="Build, share, and run analytical queries from URL state",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query.router, prefix="/query", tags=["Query"])
app.include_router(catalog.router, tags=["Catalog"])


@app.exception_handler(ConsoleError)
async def console_error_handler(request: Request, exc: ConsoleError) -> JSONResponse:
    # anything the routers did not map to a status code
    logger.exception("Unhandled console error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.get("/health")
def health():
    settings = get_settings()
    return {"status": "ok", "arch_mode": settings.arch_mode}


def run() -> None:
    settings = get_settings()
    uvicorn.run("src.api.main:app", host="0.0.0.0", port=settings.api_port)
