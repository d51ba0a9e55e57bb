"""
StateCodec -- QueryState <-> shareable URL fragment.

The fragment is ``#`` followed by the percent-encoded compact JSON of the
state.  Decoding is strict: anything that is not a complete, valid state is a
ParseError, which callers treat as "nothing to execute".
"""
from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote, unquote

from pydantic import ValidationError as PydanticValidationError

from src.core.errors import ParseError
from src.query.state import QueryState

FRAGMENT_MARKER = "#"

# characters encodeURIComponent leaves alone
_SAFE = "-_.!~*'()"

# shortest fragment that can hold a state worth executing
_MIN_FRAGMENT_LEN = 3
# below this the URL holds no usable state and the first table is loaded
_MIN_RESTORE_LEN = 10


def _compact(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _percent_encode(payload: dict[str, Any]) -> str:
    return quote(_compact(payload), safe=_SAFE)


def encode_state(state: QueryState) -> str:
    """Serialise *state* into a URL fragment (including the leading ``#``)."""
    return FRAGMENT_MARKER + _percent_encode(state.to_payload())


def state_json(state: QueryState) -> str:
    """Compact JSON of *state*, the body the fragment percent-encodes."""
    return _compact(state.to_payload())


def _strip_marker(fragment: str) -> str:
    if fragment[:1] in (FRAGMENT_MARKER, "?"):
        return fragment[1:]
    return fragment


def decode_payload(fragment: str | None) -> dict[str, Any]:
    """Percent-decode and parse the fragment into a raw JSON object."""
    if not fragment or len(fragment) < _MIN_FRAGMENT_LEN:
        raise ParseError("No query state in URL")

    body = unquote(_strip_marker(fragment))
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ParseError(f"URL state is not valid JSON: {exc.msg}") from exc

    if not isinstance(payload, dict):
        raise ParseError("URL state must be a JSON object")
    return payload


def decode_state(fragment: str | None) -> QueryState:
    """Parse a URL fragment into a QueryState.

    Raises
    ------
    ParseError
        The fragment is absent, too short, not JSON, or not a valid state.
    """
    payload = decode_payload(fragment)
    try:
        return QueryState.model_validate(payload)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "state" for err in exc.errors())
        raise ParseError(f"URL state is incomplete or invalid ({fields})") from exc


def has_state(fragment: str | None) -> bool:
    """True when the fragment is long enough to carry a state."""
    return bool(fragment) and len(fragment) >= _MIN_RESTORE_LEN


def default_fragment(table: str) -> str:
    """Fragment selecting *table* with nothing else set."""
    return FRAGMENT_MARKER + _percent_encode({"table": table})
