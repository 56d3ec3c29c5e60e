"""Launcher visibility state machine.

States are ``Hidden`` and ``Visible``. Each transition finishes its window
side effect before returning, and a transition into the current state is a
no-op. Only the dispatcher drives this machine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import WindowConfig
from ..errors import DisplayResolutionFailed
from .window import WindowCapability

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Hidden:
    pass


@dataclass(frozen=True)
class Visible:
    mode: str
    display: str | None
    # Set while the surface serves an IPC selection request.
    session_id: int | None = None


VisibilityState = Hidden | Visible


class VisibilityStateMachine:
    def __init__(self, window: WindowCapability, window_config: WindowConfig) -> None:
        self.window = window
        self.window_config = window_config
        self._state: VisibilityState = Hidden()

    @property
    def state(self) -> VisibilityState:
        return self._state

    @property
    def is_visible(self) -> bool:
        return isinstance(self._state, Visible)

    def resolve_display(self) -> str | None:
        """Pick the display to show on.

        Normal mode follows keyboard focus. Fixed mode looks up the configured
        display name and falls back to the primary display when it is absent.
        """
        if self.window_config.mode != "fixed":
            return self.window.resolve_focused_display()
        name = self.window_config.display
        if name:
            display = self.window.resolve_display_by_name(name)
            if display is not None:
                return display
            logger.warning("%s, falling back to primary display", DisplayResolutionFailed(name))
        return self.window.resolve_primary_display()

    def show(self, mode: str, session_id: int | None = None) -> bool:
        """Transition to ``Visible``; returns ``False`` when already visible."""
        if isinstance(self._state, Visible):
            return False
        display = self.resolve_display()
        self.window.show(display)
        self._state = Visible(mode=mode, display=display, session_id=session_id)
        logger.debug("Visible: mode=%s display=%s session=%s", mode, display, session_id)
        return True

    def hide(self) -> bool:
        """Transition to ``Hidden``; returns ``False`` when already hidden."""
        if isinstance(self._state, Hidden):
            return False
        self.window.hide()
        self._state = Hidden()
        logger.debug("Hidden")
        return True
