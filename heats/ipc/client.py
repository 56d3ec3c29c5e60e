"""Client side of the selection protocol."""

from __future__ import annotations

import json
import socket
from pathlib import Path
from typing import TextIO

from .paths import socket_path as default_socket_path
from .protocol import encode_request


def _connect(path: Path) -> socket.socket:
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.connect(str(path))
    except OSError as exc:
        sock.close()
        raise ConnectionError(f"heatsd is not running ({path})") from exc
    return sock


def _read_line(sock: socket.socket) -> str:
    chunks: list[bytes] = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            break
        chunks.append(chunk)
        if b"\n" in chunk:
            break
    raw = b"".join(chunks).split(b"\n", 1)[0]
    return raw.decode("utf-8", errors="replace").removesuffix("\r")


def send_and_receive(
    items: list[str],
    format_name: str = "text",
    path: Path | None = None,
) -> str | None:
    """Send items to the daemon and block until the user picks one.

    Returns the selection, or ``None`` when the request was cancelled.
    Raises ``ConnectionError`` when the daemon is unreachable.
    """
    target = path if path is not None else default_socket_path()
    with _connect(target) as sock:
        sock.sendall(encode_request(items, format_name))
        sock.shutdown(socket.SHUT_WR)
        response = _read_line(sock)
    return response or None


def send_hotkey(binding: str, path: Path | None = None) -> bool:
    """Ask the daemon to toggle the mode bound to ``binding``."""
    target = path if path is not None else default_socket_path()
    with _connect(target) as sock:
        sock.sendall((json.dumps({"hotkey": binding}) + "\n").encode("utf-8"))
        sock.shutdown(socket.SHUT_WR)
        return _read_line(sock) == "ok"


def read_stdin_items(stream: TextIO) -> list[str]:
    """Collect non-empty lines from ``stream``."""
    lines = (line.rstrip("\r\n") for line in stream)
    return [line for line in lines if line]
