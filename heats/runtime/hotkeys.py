"""Hotkey binding parsing and the hotkey event pump.

OS-level registration is someone else's job: the daemon consumes an opaque
stream of binding strings (for example forwarded by a hotkey daemon through
``heats --hotkey``) and maps each one to the mode it toggles.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from ..config import ModeConfig

logger = logging.getLogger(__name__)

MODIFIER_ALIASES = {
    "cmd": "super",
    "command": "super",
    "super": "super",
    "meta": "super",
    "win": "super",
    "ctrl": "ctrl",
    "control": "ctrl",
    "alt": "alt",
    "option": "alt",
    "opt": "alt",
    "shift": "shift",
}
KEY_ALIASES = {
    ";": "semicolon",
    "'": "quote",
    " ": "space",
    "return": "enter",
    "esc": "escape",
}
MODIFIER_ORDER = ("ctrl", "alt", "shift", "super")


@dataclass(frozen=True)
class HotkeyBinding:
    modifiers: frozenset[str]
    key: str

    def __str__(self) -> str:
        mods = [mod for mod in MODIFIER_ORDER if mod in self.modifiers]
        return "+".join([*mods, self.key])


def parse_hotkey(text: str) -> HotkeyBinding:
    """Parse ``"Cmd+Semicolon"``-style strings; the last part is the key.

    Raises ``ValueError`` for an empty key or an unknown modifier.
    """
    parts = text.split("+")
    key_part = parts[-1]
    # A literal "+" key shows up as a trailing empty part.
    if not key_part and len(parts) >= 2 and text.endswith("++"):
        key_part = "+"
        parts = parts[:-1]
    key = key_part.strip().lower() if key_part.strip() else key_part
    if not key:
        raise ValueError(f"hotkey {text!r} has no key")
    key = KEY_ALIASES.get(key, key)

    modifiers: set[str] = set()
    for part in parts[:-1]:
        name = part.strip().lower()
        if not name:
            continue
        if name not in MODIFIER_ALIASES:
            raise ValueError(f"unknown modifier {part!r} in hotkey {text!r}")
        modifiers.add(MODIFIER_ALIASES[name])
    return HotkeyBinding(modifiers=frozenset(modifiers), key=key)


class HotkeyRouter:
    """Maps incoming bindings (or bare mode names) to configured modes."""

    def __init__(self, modes: Sequence[ModeConfig]) -> None:
        self._by_binding: dict[HotkeyBinding, str] = {}
        self._mode_names = {mode.name for mode in modes}
        for mode in modes:
            try:
                binding = parse_hotkey(mode.hotkey)
            except ValueError as exc:
                logger.warning("Mode %r has an invalid hotkey: %s", mode.name, exc)
                continue
            if binding in self._by_binding:
                logger.warning(
                    "Hotkey %s for mode %r is already bound to %r",
                    binding,
                    mode.name,
                    self._by_binding[binding],
                )
                continue
            self._by_binding[binding] = mode.name
            logger.info("Registered hotkey '%s' for mode '%s'", mode.hotkey, mode.name)

    def resolve(self, text: str) -> str | None:
        if text in self._mode_names:
            return text
        try:
            binding = parse_hotkey(text)
        except ValueError:
            return None
        return self._by_binding.get(binding)


def pump_hotkeys(
    stream: Iterable[str],
    router: HotkeyRouter,
    on_mode: Callable[[str], None],
) -> threading.Thread:
    """Forward a blocking binding stream to ``on_mode`` on a daemon thread."""

    def worker() -> None:
        for binding in stream:
            mode = router.resolve(binding)
            if mode is None:
                logger.warning("No mode bound to hotkey %r", binding)
                continue
            on_mode(mode)

    thread = threading.Thread(target=worker, name="heats-hotkeys", daemon=True)
    thread.start()
    return thread
