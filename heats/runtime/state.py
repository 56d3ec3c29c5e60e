from __future__ import annotations

from dataclasses import dataclass, field

from ..ipc.server import IpcSession
from ..items import Item
from ..matching import MatchResult


@dataclass
class LauncherState:
    query: str = ""
    selected: int = 0
    results: list[MatchResult] = field(default_factory=list)
    eval_items: tuple[Item, ...] = ()
    errors: list[str] = field(default_factory=list)
    # Bumped on every show and hide; background results carry the value they
    # were started under and are dropped when it no longer matches.
    generation: int = 0
    active_mode: str | None = None
    session: IpcSession | None = None
    loading: bool = False

    def entries(self) -> list[Item]:
        """Selectable rows in display order: evaluator items, then matches."""
        return [*self.eval_items, *(result.item for result in self.results)]

    def clamp_selection(self) -> None:
        count = len(self.eval_items) + len(self.results)
        self.selected = max(0, min(self.selected, count - 1))
