"""Unix socket server for headless selection requests.

Every connection is served on its own thread and becomes one ``IpcSession``.
The server never decides what is shown: sessions are handed to the
dispatcher through ``on_session`` and the connection thread blocks until the
dispatcher resolves the session with a selection or a cancellation.
"""

from __future__ import annotations

import errno
import itertools
import logging
import os
import select
import socket
import threading
from collections.abc import Callable
from pathlib import Path

from ..errors import IpcEndpointInUse, IpcProtocolError
from ..items import Item
from .protocol import HOTKEY_ACK, HotkeyRequest, SelectionRequest, encode_response, read_request

logger = logging.getLogger(__name__)

ACCEPT_POLL_SECONDS = 0.1
PROBE_TIMEOUT_SECONDS = 0.5
LISTEN_BACKLOG = 16


class IpcSession:
    """One pending selection request.

    The first call to ``resolve`` or ``cancel`` wins; later calls are ignored.
    """

    def __init__(self, request: SelectionRequest, session_id: int) -> None:
        self.request = request
        self.id = session_id
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._selected: Item | None = None

    def __repr__(self) -> str:
        return f"IpcSession(id={self.id}, items={len(self.request.items)})"

    @property
    def items(self) -> tuple[Item, ...]:
        return self.request.items

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def selected(self) -> Item | None:
        return self._selected

    def resolve(self, item: Item | None) -> bool:
        with self._lock:
            if self._done.is_set():
                return False
            self._selected = item
            self._done.set()
        return True

    def cancel(self) -> bool:
        return self.resolve(None)

    def wait(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)


def prepare_endpoint(path: Path) -> None:
    """Make ``path`` bindable, removing a stale socket left by a dead daemon.

    Raises ``IpcEndpointInUse`` when a live process still accepts connections
    on it.
    """
    if not path.exists() and not path.is_symlink():
        return
    probe = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    probe.settimeout(PROBE_TIMEOUT_SECONDS)
    try:
        probe.connect(str(path))
    except OSError as exc:
        logger.info("Removing stale IPC socket %s (%s)", path, exc.strerror or exc)
        path.unlink(missing_ok=True)
        return
    finally:
        probe.close()
    raise IpcEndpointInUse(f"another daemon is listening on {path}")


def peer_closed(conn: socket.socket) -> bool:
    """Return whether the client has closed its end of ``conn``."""
    try:
        readable, _, _ = select.select([conn], [], [], 0)
        if not readable:
            return False
        return conn.recv(1, socket.MSG_PEEK) == b""
    except OSError:
        return True


class IpcServer:
    """Accept loop plus one handler thread per client connection."""

    def __init__(
        self,
        path: Path,
        *,
        on_session: Callable[[IpcSession], None],
        on_hotkey: Callable[[str], None] | None = None,
        on_client_gone: Callable[[IpcSession], None] | None = None,
        poll_seconds: float = ACCEPT_POLL_SECONDS,
    ) -> None:
        self.path = path
        self._on_session = on_session
        self._on_hotkey = on_hotkey
        self._on_client_gone = on_client_gone
        self._poll_seconds = poll_seconds
        self._listener: socket.socket | None = None
        self._stop = threading.Event()
        self._accept_thread: threading.Thread | None = None
        self._session_ids = itertools.count(1)
        self._lock = threading.Lock()
        self._open_sessions: set[IpcSession] = set()

    @property
    def running(self) -> bool:
        return self._listener is not None and not self._stop.is_set()

    def start(self) -> None:
        """Bind the endpoint and start accepting connections."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        prepare_endpoint(self.path)
        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            listener.bind(str(self.path))
        except OSError as exc:
            listener.close()
            if exc.errno == errno.EADDRINUSE:
                raise IpcEndpointInUse(f"{self.path} is already bound") from exc
            raise
        os.chmod(self.path, 0o600)
        listener.listen(LISTEN_BACKLOG)
        listener.settimeout(self._poll_seconds)
        self._listener = listener
        self._stop.clear()
        self._accept_thread = threading.Thread(target=self._accept_loop, name="heats-ipc-accept", daemon=True)
        self._accept_thread.start()
        logger.info("IPC listening on %s", self.path)

    def stop(self) -> None:
        """Stop accepting, cancel open sessions and remove the socket file."""
        self._stop.set()
        if self._accept_thread is not None:
            self._accept_thread.join(timeout=2.0)
            self._accept_thread = None
        if self._listener is not None:
            self._listener.close()
            self._listener = None
        with self._lock:
            sessions = list(self._open_sessions)
        for session in sessions:
            session.cancel()
        self.path.unlink(missing_ok=True)
        logger.info("IPC server stopped")

    def _accept_loop(self) -> None:
        listener = self._listener
        if listener is None:
            return
        while not self._stop.is_set():
            try:
                conn, _addr = listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._stop.is_set():
                    break
                logger.error("IPC accept error: %s", exc)
                continue
            conn.settimeout(None)
            handler = threading.Thread(target=self._handle, args=(conn,), name="heats-ipc-session", daemon=True)
            handler.start()

    def _reply(self, conn: socket.socket, payload: bytes) -> None:
        try:
            conn.sendall(payload)
            conn.shutdown(socket.SHUT_WR)
        except OSError as exc:
            logger.debug("IPC write failed: %s", exc)

    def _handle(self, conn: socket.socket) -> None:
        with conn:
            try:
                with conn.makefile("rb") as reader:
                    request = read_request(reader)
            except IpcProtocolError as exc:
                logger.warning("Rejecting IPC request: %s", exc)
                self._reply(conn, b"\n")
                return
            except OSError as exc:
                logger.error("IPC read error: %s", exc)
                return

            if isinstance(request, HotkeyRequest):
                if self._on_hotkey is not None:
                    self._on_hotkey(request.binding)
                self._reply(conn, (HOTKEY_ACK + "\n").encode("utf-8"))
                return

            session = IpcSession(request, next(self._session_ids))
            logger.info("IPC received %d items (format: %s)", len(request.items), request.format)
            with self._lock:
                self._open_sessions.add(session)
            try:
                self._on_session(session)
                self._await(conn, session)
                self._reply(conn, encode_response(request, session.selected))
            finally:
                with self._lock:
                    self._open_sessions.discard(session)

    def _await(self, conn: socket.socket, session: IpcSession) -> None:
        gone_reported = False
        while not session.wait(self._poll_seconds):
            if self._stop.is_set():
                session.cancel()
                return
            if session.request.held_open and not gone_reported and peer_closed(conn):
                logger.debug("IPC client for %r disconnected", session)
                gone_reported = True
                if self._on_client_gone is not None:
                    self._on_client_gone(session)
                else:
                    session.cancel()
