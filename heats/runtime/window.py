"""Window capability consumed by the visibility state machine.

The core never touches native windows. A frontend supplies an object with
this shape; ``LoggingWindow`` is the stand-in used by a daemon running
without a native frontend attached.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

logger = logging.getLogger(__name__)


class WindowCapability(Protocol):
    def show(self, display_id: str | None) -> None: ...

    def hide(self) -> None: ...

    def resolve_focused_display(self) -> str | None: ...

    def resolve_display_by_name(self, name: str) -> str | None: ...

    def resolve_primary_display(self) -> str | None: ...


class LoggingWindow:
    """Headless window that only records what a real surface would do.

    Display names match by case-insensitive substring, the same rule fixed
    mode uses against real display names.
    """

    def __init__(self, displays: Sequence[str] = ("main",)) -> None:
        self.displays = tuple(displays)
        self.shown_on: str | None = None
        self.visible = False

    def show(self, display_id: str | None) -> None:
        self.visible = True
        self.shown_on = display_id
        logger.info("Launcher shown on display %s", display_id or "<primary>")

    def hide(self) -> None:
        self.visible = False
        logger.info("Launcher hidden")

    def resolve_focused_display(self) -> str | None:
        return self.resolve_primary_display()

    def resolve_display_by_name(self, name: str) -> str | None:
        needle = name.casefold()
        for display in self.displays:
            if needle in display.casefold():
                return display
        return None

    def resolve_primary_display(self) -> str | None:
        return self.displays[0] if self.displays else None
