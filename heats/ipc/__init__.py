"""Local IPC: dmenu-style selection requests over a per-user Unix socket."""

from __future__ import annotations

from .client import read_stdin_items, send_and_receive, send_hotkey
from .paths import pid_path, read_pid, remove_pid, runtime_dir, socket_path, write_pid
from .protocol import (
    CANCEL_SENTINEL,
    END_MARKER,
    HotkeyRequest,
    SelectionRequest,
    encode_request,
    encode_response,
    read_request,
)
from .server import IpcServer, IpcSession, prepare_endpoint

__all__ = [
    "CANCEL_SENTINEL",
    "END_MARKER",
    "HotkeyRequest",
    "IpcServer",
    "IpcSession",
    "SelectionRequest",
    "encode_request",
    "encode_response",
    "pid_path",
    "prepare_endpoint",
    "read_pid",
    "read_request",
    "remove_pid",
    "runtime_dir",
    "send_and_receive",
    "send_hotkey",
    "socket_path",
    "write_pid",
]
