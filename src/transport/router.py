"""
TransportRouter -- picks the transport strategy for a session.

Supported arch modes:
  1 -- direct binary RPC against the query service (needs an RPC stub)
  2 -- JSON API on the web server (default)

The choice is made once when a session starts and never mixed afterwards.
"""
from __future__ import annotations

from typing import Any, Callable

from src.core.config import Settings, get_settings
from src.core.errors import TransportError
from src.core.logging import get_logger
from src.transport.base import Transport
from src.transport.direct import DirectTransport, RpcStub
from src.transport.http_proxy import HttpProxyTransport

logger = get_logger(__name__)

ARCH_DIRECT = 1
ARCH_PROXY = 2


def _direct(settings: Settings, stub: RpcStub | None) -> Transport:
    if stub is None:
        raise TransportError(
            f"Direct mode needs an RPC client for {settings.service_addr}. "
            f"Pass one in, or set ARCH_MODE=2 to use the web API."
        )
    return DirectTransport(stub, list_limit=settings.list_tables_limit)


def _proxy(settings: Settings, stub: RpcStub | None) -> Transport:
    return HttpProxyTransport(settings.web_base_url, timeout=settings.request_timeout_s)


_STRATEGIES: dict[int, Callable[[Settings, Any], Transport]] = {
    ARCH_DIRECT: _direct,
    ARCH_PROXY: _proxy,
}


def get_transport(
    arch_mode: int | None = None,
    settings: Settings | None = None,
    stub: RpcStub | None = None,
) -> Transport:
    """Build the transport for *arch_mode* (defaults to the configured mode).

    Parameters
    ----------
    arch_mode : int, optional
        1 (direct RPC) or 2 (web API).
    settings : Settings, optional
        Override the cached settings.
    stub : RpcStub, optional
        RPC client, required for direct mode.
    """
    settings = settings or get_settings()
    if arch_mode is None:
        arch_mode = settings.arch_mode

    factory = _STRATEGIES.get(arch_mode)
    if factory is None:
        raise NotImplementedError(
            f"Arch mode '{arch_mode}' is not supported.  "
            f"Choose from: {', '.join(str(m) for m in _STRATEGIES)}"
        )

    logger.info("Transport selected: arch_mode=%d", arch_mode)
    return factory(settings, stub)
