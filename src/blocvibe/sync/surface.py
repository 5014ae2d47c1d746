"""
Collaborators the sync session talks to.

The rendering surface (the script-driven canvas) and the user notification
channel are external; these protocols pin down what the session needs from
them.
"""

from __future__ import annotations

import logging
from typing import Protocol

from blocvibe.render.markup import HighlightDirective, RenderResult

logger = logging.getLogger(__name__)


class RenderingSurface(Protocol):
    """Outbound bridge to the canvas."""

    def load(self, result: RenderResult) -> None:
        """Replace the canvas content with a full render, then apply its highlight."""
        ...

    def highlight(self, directive: HighlightDirective | None) -> None:
        """Apply (or clear, with None) the selection highlight without re-rendering."""
        ...


class Notifier(Protocol):
    """Transient user notifications (toasts/snackbars)."""

    def notify(self, level: str, message: str) -> None: ...


class LoggingNotifier:
    """Notifier that routes messages to the ``blocvibe`` log."""

    _LEVELS = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "success": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def notify(self, level: str, message: str) -> None:
        logger.log(self._LEVELS.get(level, logging.INFO), message)
