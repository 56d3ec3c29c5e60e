"""Wire format of the dmenu-style selection protocol.

A request is UTF-8, newline delimited::

    {"format": "jsonl"}        optional context line
    item one                   text label, or a JSON record in jsonl format
    item two
    \\x04                       optional end marker

Items end at EOF (the client half-closes) or at the end marker, in which case
the client keeps the connection open and closing it cancels the request. The
reply is one line: the selected label (text) or the selected record's
``data`` field (jsonl), or an empty line when the request was cancelled.

A context line carrying ``{"hotkey": "<binding>"}`` is a control request that
toggles the launcher instead of asking for a selection.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import BinaryIO

from ..errors import IpcProtocolError
from ..items import Item, item_from_record, parse_record, text_items

CANCEL_SENTINEL = ""
END_MARKER = "\x04"
FORMATS = ("text", "jsonl")
DMENU_PROVIDER = "dmenu"
HOTKEY_ACK = "ok"


@dataclass(frozen=True)
class SelectionRequest:
    format: str
    items: tuple[Item, ...]
    # Client ended items with the end marker and is holding the connection.
    held_open: bool = False


@dataclass(frozen=True)
class HotkeyRequest:
    binding: str


def _decode(raw: bytes) -> str:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise IpcProtocolError(f"request is not valid UTF-8: {exc}") from exc
    return text.rstrip("\n").rstrip("\r")


def parse_context(line: str) -> dict[str, object] | None:
    """Return the context object if ``line`` is one, else ``None``."""
    stripped = line.strip()
    if not stripped.startswith("{"):
        return None
    try:
        payload = json.loads(stripped)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    if "format" not in payload and "hotkey" not in payload:
        return None
    return payload


def build_items(format_name: str, lines: list[str]) -> tuple[Item, ...]:
    if format_name == "text":
        return text_items(lines, provider=DMENU_PROVIDER)
    items: list[Item] = []
    for line in lines:
        record = parse_record(line)
        if record is None:
            continue
        items.append(item_from_record(record, index=len(items), provider=DMENU_PROVIDER))
    return tuple(items)


def read_request(stream: BinaryIO) -> SelectionRequest | HotkeyRequest:
    """Read one request from a binary line stream.

    Raises ``IpcProtocolError`` for undecodable input, an invalid context
    line, or a request without usable items.
    """
    first_raw = stream.readline()
    if not first_raw:
        raise IpcProtocolError("client sent no items")
    first = _decode(first_raw)

    format_name = "text"
    lines: list[str] = []
    context = parse_context(first)
    if context is None:
        if first == END_MARKER:
            raise IpcProtocolError("client sent no items")
        lines.append(first)
    else:
        hotkey = context.get("hotkey")
        if hotkey is not None:
            if not isinstance(hotkey, str) or not hotkey.strip():
                raise IpcProtocolError("hotkey must be a non-empty string")
            return HotkeyRequest(binding=hotkey.strip())
        raw_format = context.get("format")
        if not isinstance(raw_format, str) or raw_format not in FORMATS:
            raise IpcProtocolError(f"unknown format {raw_format!r}, expected text or jsonl")
        format_name = raw_format

    held_open = False
    while True:
        raw = stream.readline()
        if not raw:
            break
        line = _decode(raw)
        if line == END_MARKER:
            held_open = True
            break
        lines.append(line)

    items = build_items(format_name, [line for line in lines if line])
    if not items:
        raise IpcProtocolError("client sent no usable items")
    return SelectionRequest(format=format_name, items=items, held_open=held_open)


def encode_response(request: SelectionRequest, selected: Item | None) -> bytes:
    """Encode the single reply line for a finished session."""
    if selected is None:
        text = CANCEL_SENTINEL
    elif request.format == "jsonl":
        text = selected.get_field("data")
    else:
        text = selected.label
    return (text.replace("\r", " ").replace("\n", " ") + "\n").encode("utf-8")


def encode_request(items: list[str], format_name: str = "text", *, hold_open: bool = False) -> bytes:
    """Encode a client request; the inverse of ``read_request``."""
    if format_name not in FORMATS:
        raise ValueError(f"unknown format {format_name!r}")
    lines = [json.dumps({"format": format_name})]
    lines.extend(item for item in items if item)
    if hold_open:
        lines.append(END_MARKER)
    return ("\n".join(lines) + "\n").encode("utf-8")
