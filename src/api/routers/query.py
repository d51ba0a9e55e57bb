"""POST /query/* -- build, compile, run, and script endpoints."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.api.deps import console_transport
from src.core.errors import ParseError, ScriptError, TransportError
from src.core.logging import get_logger
from src.core.utils import timer
from src.governance.validator import validate_state
from src.query.builder import evaluate_script
from src.query.codec import decode_state, encode_state
from src.query.compiler import compile_request
from src.query.state import QueryState
from src.render.dispatcher import dispatch
from src.transport.base import Transport

logger = get_logger(__name__)
router = APIRouter()


class FragmentRequest(BaseModel):
    fragment: str = Field(..., description="URL fragment holding the query state")


class ScriptRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=20_000, description="Builder script (YAML)")


class BuildResponse(BaseModel):
    fragment: str
    state: dict


class CompileResponse(BaseModel):
    state: dict
    request: dict | None
    validation_errors: list[str]
    is_valid: bool


class RunResponse(BaseModel):
    state: dict
    status: str
    validation_errors: list[str]
    instruction: dict | None
    success: bool
    latency_ms: int


def _decode(fragment: str) -> QueryState:
    try:
        return decode_state(fragment)
    except ParseError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/build", response_model=BuildResponse)
def build_endpoint(state: QueryState) -> BuildResponse:
    """State -> shareable fragment."""
    return BuildResponse(fragment=encode_state(state), state=state.to_payload())


@router.post("/compile", response_model=CompileResponse)
def compile_endpoint(req: FragmentRequest) -> CompileResponse:
    """Dry-run: fragment -> validated backend request (nothing is sent)."""
    state = _decode(req.fragment)
    errors = validate_state(state)
    request: dict[str, Any] | None = None
    if not errors:
        request = compile_request(state).to_wire()
    return CompileResponse(
        state=state.to_payload(),
        request=request,
        validation_errors=errors,
        is_valid=not errors,
    )


@router.post("/run", response_model=RunResponse)
async def run_endpoint(req: FragmentRequest, transport: Transport = Depends(console_transport)) -> RunResponse:
    """Full pipeline: fragment -> validate -> compile -> run -> dispatch."""
    state = _decode(req.fragment)
    instruction = None
    with timer() as t:
        errors = validate_state(state)
        if not errors:
            try:
                response = await transport.run_query(compile_request(state))
            except TransportError as exc:
                logger.warning("Query run failed: %s", exc)
                raise HTTPException(status_code=502, detail=str(exc))
            instruction = dispatch(state, response)

    if instruction is None:
        return RunResponse(
            state=state.to_payload(),
            status=errors[0],
            validation_errors=errors,
            instruction=None,
            success=False,
            latency_ms=t["elapsed_ms"],
        )

    return RunResponse(
        state=state.to_payload(),
        status=instruction.status,
        validation_errors=[],
        instruction=instruction.to_dict(),
        success=instruction.kind != "failed",
        latency_ms=t["elapsed_ms"],
    )


@router.post("/script", response_model=BuildResponse)
def script_endpoint(req: ScriptRequest) -> BuildResponse:
    """Builder script -> state + fragment."""
    try:
        state = evaluate_script(req.code)
    except ScriptError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return BuildResponse(fragment=encode_state(state), state=state.to_payload())
