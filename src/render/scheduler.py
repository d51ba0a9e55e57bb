"""
Resize scheduler -- re-renders the last result when the viewport changes.

Holds at most one subscription: every successful dispatch replaces the
previous redraw callback instead of stacking another listener.
"""
from __future__ import annotations

from typing import Callable

from src.core.logging import get_logger

logger = get_logger(__name__)


class ResizeScheduler:
    """Single-slot resize subscription."""

    def __init__(self):
        self._callback: Callable[[], None] | None = None
        self._redraws = 0

    @property
    def active(self) -> bool:
        return self._callback is not None

    @property
    def subscription_count(self) -> int:
        return 1 if self._callback is not None else 0

    @property
    def redraws(self) -> int:
        return self._redraws

    def bind(self, callback: Callable[[], None]) -> None:
        """Make *callback* the only resize listener."""
        if self._callback is not None:
            logger.debug("Replacing resize subscription")
        self._callback = callback

    def clear(self) -> None:
        self._callback = None

    def notify_resize(self) -> bool:
        """Run the current listener; return False when nothing is bound."""
        if self._callback is None:
            return False
        self._redraws += 1
        self._callback()
        return True
