"""Tests for the visibility state machine and display resolution."""

from __future__ import annotations

import unittest

from heats.config import WindowConfig
from heats.runtime import Hidden, LoggingWindow, Visible, VisibilityStateMachine


class RecordingWindow(LoggingWindow):
    def __init__(self, displays=("Built-in Retina", "DELL U2720Q"), focused: str | None = "DELL U2720Q") -> None:
        super().__init__(displays)
        self.focused = focused
        self.calls: list[tuple[str, str | None]] = []

    def show(self, display_id: str | None) -> None:
        super().show(display_id)
        self.calls.append(("show", display_id))

    def hide(self) -> None:
        super().hide()
        self.calls.append(("hide", None))

    def resolve_focused_display(self) -> str | None:
        return self.focused


class VisibilityStateMachineTests(unittest.TestCase):
    def test_show_and_hide_round_trip(self) -> None:
        window = RecordingWindow()
        machine = VisibilityStateMachine(window, WindowConfig())

        self.assertEqual(machine.state, Hidden())
        self.assertTrue(machine.show("launcher"))
        self.assertEqual(machine.state, Visible(mode="launcher", display="DELL U2720Q"))
        self.assertTrue(machine.hide())
        self.assertEqual(machine.state, Hidden())
        self.assertEqual(window.calls, [("show", "DELL U2720Q"), ("hide", None)])

    def test_reentering_current_state_is_a_no_op(self) -> None:
        window = RecordingWindow()
        machine = VisibilityStateMachine(window, WindowConfig())

        self.assertFalse(machine.hide())
        machine.show("launcher", session_id=4)
        self.assertFalse(machine.show("other"))
        self.assertEqual(machine.state, Visible(mode="launcher", display="DELL U2720Q", session_id=4))
        self.assertEqual(window.calls, [("show", "DELL U2720Q")])

    def test_normal_mode_follows_focus_at_each_show(self) -> None:
        window = RecordingWindow()
        machine = VisibilityStateMachine(window, WindowConfig(mode="normal"))
        machine.show("launcher")
        machine.hide()
        window.focused = "Built-in Retina"
        machine.show("launcher")
        self.assertEqual(window.calls[-1], ("show", "Built-in Retina"))

    def test_fixed_mode_resolves_configured_display_by_name(self) -> None:
        window = RecordingWindow(focused="Built-in Retina")
        machine = VisibilityStateMachine(window, WindowConfig(mode="fixed", display="dell"))
        machine.show("launcher")
        self.assertEqual(window.shown_on, "DELL U2720Q")

    def test_fixed_mode_falls_back_to_primary_display(self) -> None:
        window = RecordingWindow(focused="DELL U2720Q")
        machine = VisibilityStateMachine(window, WindowConfig(mode="fixed", display="LG UltraFine"))
        with self.assertLogs("heats.runtime.visibility", level="WARNING") as logs:
            machine.show("launcher")
        self.assertEqual(window.shown_on, "Built-in Retina")
        self.assertIn("LG UltraFine", logs.output[0])
