"""
Console logging: one stdout handler per named logger, level from settings.
"""
from __future__ import annotations

import logging
import sys

from src.core.config import get_settings

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# every logger handed out, so the level can be changed at runtime
_LOGGERS: dict[str, logging.Logger] = {}


def _resolve_level(level: str | None) -> int:
    name = (level or get_settings().log_level).upper()
    return getattr(logging, name, logging.INFO)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        logger.addHandler(handler)
    logger.setLevel(_resolve_level(level))
    _LOGGERS[name] = logger
    return logger


def set_level(level: str) -> None:
    """Apply *level* to every console logger created so far."""
    resolved = _resolve_level(level)
    for logger in _LOGGERS.values():
        logger.setLevel(resolved)
