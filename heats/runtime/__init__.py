"""Launcher runtime: events, visibility, hotkeys and the dispatcher loop."""

from __future__ import annotations

from .dispatcher import Dispatcher
from .events import (
    EscapePressed,
    EvaluatorResults,
    HotkeyPressed,
    IpcClientGone,
    IpcSessionRequested,
    ItemsLoaded,
    QueryChanged,
    SelectionConfirmed,
    SelectionMoved,
    Shutdown,
    WindowClosed,
)
from .hotkeys import HotkeyBinding, HotkeyRouter, parse_hotkey, pump_hotkeys
from .state import LauncherState
from .visibility import Hidden, Visible, VisibilityStateMachine
from .window import LoggingWindow, WindowCapability

__all__ = [
    "Dispatcher",
    "EscapePressed",
    "EvaluatorResults",
    "Hidden",
    "HotkeyBinding",
    "HotkeyPressed",
    "HotkeyRouter",
    "IpcClientGone",
    "IpcSessionRequested",
    "ItemsLoaded",
    "LauncherState",
    "LoggingWindow",
    "QueryChanged",
    "SelectionConfirmed",
    "SelectionMoved",
    "Shutdown",
    "Visible",
    "VisibilityStateMachine",
    "WindowCapability",
    "WindowClosed",
    "parse_hotkey",
    "pump_hotkeys",
]
