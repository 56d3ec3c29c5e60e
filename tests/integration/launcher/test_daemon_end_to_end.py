"""End-to-end daemon scenarios over a real socket and real source processes."""

from __future__ import annotations

import socket
import sys
import tempfile
import threading
import time
import unittest
from pathlib import Path

from heats.cli import Daemon, build_daemon
from heats.config import Config, ModeConfig, ProviderConfig, WindowConfig
from heats.ipc import send_and_receive, send_hotkey
from heats.ipc.protocol import encode_request
from heats.runtime import EscapePressed, LoggingWindow, QueryChanged, SelectionConfirmed


def _wait_for(predicate, timeout_seconds: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class DaemonEndToEndTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        self.path = root / "heats.sock"
        broken = root / "broken.py"
        broken.write_text("import sys\nsys.exit(1)\n", encoding="utf-8")
        config = Config(
            window=WindowConfig(),
            modes=(
                ModeConfig(name="launcher", hotkey="Cmd+Semicolon", providers=("words",)),
                ModeConfig(name="broken", hotkey="Alt+B", providers=("broken",)),
            ),
            providers={
                "words": ProviderConfig(
                    name="words",
                    source=(sys.executable, "-c", "print('alpha'); print('bravo')"),
                    timeout=10.0,
                ),
                "broken": ProviderConfig(name="broken", source=(sys.executable, str(broken)), timeout=10.0),
            },
        )
        self.window = LoggingWindow(["main"])
        self.daemon: Daemon = build_daemon(config, self.path, self.window)
        self.daemon.server.start()
        self.loop = threading.Thread(target=self.daemon.dispatcher.run, daemon=True)
        self.loop.start()

    def tearDown(self) -> None:
        self.daemon.dispatcher.stop()
        self.loop.join(timeout=5.0)
        self.daemon.server.stop()
        self._tmp.cleanup()

    @property
    def state(self):
        return self.daemon.dispatcher.state

    def _request_in_background(self, items: list[str]) -> tuple[threading.Thread, list]:
        replies: list = []

        def client() -> None:
            replies.append(send_and_receive(items, path=self.path))

        thread = threading.Thread(target=client)
        thread.start()
        return thread, replies

    def test_query_and_confirm_returns_alpha(self) -> None:
        thread, replies = self._request_in_background(["alpha", "bravo", "charlie"])
        self.assertTrue(_wait_for(lambda: self.state.session is not None))

        self.daemon.dispatcher.post(QueryChanged("al"))
        self.assertTrue(_wait_for(lambda: [item.label for item in self.state.entries()] == ["alpha", "charlie"]))
        self.daemon.dispatcher.post(SelectionConfirmed())

        thread.join(timeout=5.0)
        self.assertEqual(replies, ["alpha"])
        self.assertTrue(_wait_for(lambda: not self.window.visible))

    def test_escape_returns_cancel_sentinel(self) -> None:
        thread, replies = self._request_in_background(["alpha"])
        self.assertTrue(_wait_for(lambda: self.state.session is not None))
        self.daemon.dispatcher.post(EscapePressed())
        thread.join(timeout=5.0)
        self.assertEqual(replies, [None])

    def test_second_client_waits_for_the_first(self) -> None:
        first_thread, first_replies = self._request_in_background(["one"])
        self.assertTrue(_wait_for(lambda: self.state.session is not None))
        first_session = self.state.session
        second_thread, second_replies = self._request_in_background(["two"])
        time.sleep(0.2)
        self.assertIs(self.state.session, first_session)
        self.assertEqual(second_replies, [])

        self.daemon.dispatcher.post(SelectionConfirmed())
        first_thread.join(timeout=5.0)
        self.assertTrue(_wait_for(lambda: self.state.session is not None and self.state.session is not first_session))
        self.daemon.dispatcher.post(SelectionConfirmed())
        second_thread.join(timeout=5.0)

        self.assertEqual(first_replies, ["one"])
        self.assertEqual(second_replies, ["two"])

    def test_disconnecting_held_open_client_cancels_session(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.connect(str(self.path))
        sock.sendall(encode_request(["alpha"], hold_open=True))
        self.assertTrue(_wait_for(lambda: self.state.session is not None))
        session = self.state.session
        sock.close()
        self.assertTrue(_wait_for(lambda: self.state.session is None))
        self.assertTrue(session.done)
        self.assertIsNone(session.selected)
        self.assertFalse(self.window.visible)

    def test_hotkey_control_line_toggles_launcher_with_provider_items(self) -> None:
        self.assertTrue(send_hotkey("super+semicolon", self.path))
        self.assertTrue(_wait_for(lambda: [item.label for item in self.state.entries()] == ["alpha", "bravo"]))
        self.assertTrue(self.window.visible)

        self.assertTrue(send_hotkey("launcher", self.path))
        self.assertTrue(_wait_for(lambda: not self.window.visible))

    def test_failing_provider_shows_empty_list(self) -> None:
        self.assertTrue(send_hotkey("Alt+B", self.path))
        self.assertTrue(_wait_for(lambda: self.window.visible and not self.state.loading and bool(self.state.errors)))
        self.assertEqual(self.state.entries(), [])
        self.assertIn("exit status 1", self.state.errors[0])
