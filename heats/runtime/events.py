"""Events consumed by the dispatcher loop.

Frontends, the hotkey pump, the IPC server and background loaders all talk
to the dispatcher exclusively by posting these immutable values.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ProviderLoadFailed
from ..ipc.server import IpcSession
from ..items import Item


@dataclass(frozen=True)
class HotkeyPressed:
    mode: str


@dataclass(frozen=True)
class QueryChanged:
    text: str


@dataclass(frozen=True)
class SelectionMoved:
    delta: int


@dataclass(frozen=True)
class SelectionConfirmed:
    """Confirm the highlighted entry, or the entry at ``index`` when given."""

    index: int | None = None


@dataclass(frozen=True)
class EscapePressed:
    pass


@dataclass(frozen=True)
class WindowClosed:
    """The launcher surface was closed by something other than the core."""


@dataclass(frozen=True)
class IpcSessionRequested:
    session: IpcSession


@dataclass(frozen=True)
class IpcClientGone:
    session: IpcSession


@dataclass(frozen=True)
class ItemsLoaded:
    generation: int
    items: tuple[Item, ...]
    failures: tuple[ProviderLoadFailed, ...] = ()


@dataclass(frozen=True)
class EvaluatorResults:
    generation: int
    query: str
    items: tuple[Item, ...]


@dataclass(frozen=True)
class Shutdown:
    pass


Event = (
    HotkeyPressed
    | QueryChanged
    | SelectionMoved
    | SelectionConfirmed
    | EscapePressed
    | WindowClosed
    | IpcSessionRequested
    | IpcClientGone
    | ItemsLoaded
    | EvaluatorResults
    | Shutdown
)
