"""Launcher items and the per-line record format emitted by source commands.

A source prints one JSON object per line (``title`` plus optional
``subtitle``, ``icon_path`` and ``data``). Lines that are not such an object
become plain items whose label is the raw line and whose payload is empty.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Item:
    """One selectable launcher entry."""

    label: str
    index: int = 0
    provider: str = ""
    subtitle: str | None = None
    icon: str | None = None
    data: object = None

    def with_index(self, index: int) -> Item:
        return replace(self, index=index)

    def get_field(self, path: str) -> str:
        """Resolve a dotted field path against this item.

        ``title``/``label``, ``subtitle`` and ``icon_path`` address the fixed
        fields; ``data`` and ``data.a.b`` walk the payload. A payload-less item
        and any unknown top-level name resolve to the label; a missing nested
        key resolves to an empty string.
        """
        if path in ("title", "label"):
            return self.label
        if path == "subtitle":
            return self.subtitle or ""
        if path == "icon_path":
            return self.icon or ""
        if path != "data" and not path.startswith("data."):
            return self.label
        if self.data is None:
            return self.label
        if path == "data":
            return value_to_string(self.data)

        current = self.data
        for key in path[len("data."):].split("."):
            if isinstance(current, dict) and key in current:
                current = current[key]
            elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
                current = current[int(key)]
            else:
                return ""
        return value_to_string(current)

    def to_record(self) -> dict[str, object]:
        """Serialize back to the per-line record shape."""
        record: dict[str, object] = {"title": self.label}
        if self.subtitle is not None:
            record["subtitle"] = self.subtitle
        if self.icon is not None:
            record["icon_path"] = self.icon
        if self.data is not None:
            record["data"] = self.data
        return record


def value_to_string(value: object) -> str:
    """Render a payload value as a plain command-line argument."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return json.dumps(value)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def parse_record(line: str) -> dict[str, object] | None:
    """Parse a structured record line, returning ``None`` for anything else."""
    stripped = line.strip()
    if not stripped.startswith("{"):
        return None
    try:
        payload = json.loads(stripped)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    title = payload.get("title")
    if not isinstance(title, str):
        return None
    return payload


def item_from_record(record: dict[str, object], *, index: int = 0, provider: str = "") -> Item:
    subtitle = record.get("subtitle")
    icon = record.get("icon_path")
    return Item(
        label=str(record["title"]),
        index=index,
        provider=provider,
        subtitle=subtitle if isinstance(subtitle, str) else None,
        icon=icon if isinstance(icon, str) else None,
        data=record.get("data"),
    )


def parse_item_line(line: str, *, index: int = 0, provider: str = "") -> Item | None:
    """Turn one output line into an item, or ``None`` for a blank line."""
    text = line.rstrip("\r\n")
    if not text.strip():
        return None
    record = parse_record(text)
    if record is not None:
        return item_from_record(record, index=index, provider=provider)
    return Item(label=text, index=index, provider=provider)


def parse_item_lines(lines: Iterable[str], *, provider: str = "") -> tuple[Item, ...]:
    """Parse source output lines into an indexed, immutable item set."""
    items: list[Item] = []
    for line in lines:
        item = parse_item_line(line, index=len(items), provider=provider)
        if item is not None:
            items.append(item)
    return tuple(items)


def text_items(labels: Iterable[str], *, provider: str = "") -> tuple[Item, ...]:
    """Build plain items from labels without attempting structured parsing."""
    items: list[Item] = []
    for label in labels:
        if not label:
            continue
        items.append(Item(label=label, index=len(items), provider=provider))
    return tuple(items)
