"""Event loop that owns launcher state.

Every state change happens on the thread running ``Dispatcher.run`` (or
``drain_events``). Worker threads only ever ``post`` events, so handlers
never need locks of their own.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from collections.abc import Callable

from ..config import Config, EvaluatorConfig, ProviderConfig
from ..errors import ActionSpawnFailed
from ..ipc.protocol import DMENU_PROVIDER
from ..ipc.server import IpcSession
from ..items import Item
from ..matching import MatchEngine
from ..providers import EvaluatorRequest, EvaluatorScheduler, ProviderRunner, capture_lines
from .events import (
    EscapePressed,
    EvaluatorResults,
    Event,
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
from .state import LauncherState
from .visibility import VisibilityStateMachine

logger = logging.getLogger(__name__)

EVAL_PREFIX = "eval:"


def _run_on_thread(work: Callable[[], None]) -> None:
    threading.Thread(target=work, name="heats-show-load", daemon=True).start()


class Dispatcher:
    """Routes hotkey, keystroke, selection and IPC events to their handlers.

    Provider and IPC failures never escape a handler: they surface as empty
    item sets, ``state.errors`` messages or a cancelled session.
    """

    def __init__(
        self,
        config: Config,
        runner: ProviderRunner,
        visibility: VisibilityStateMachine,
        *,
        engine: MatchEngine | None = None,
        run_in_background: Callable[[Callable[[], None]], None] = _run_on_thread,
        evaluator_capture: Callable[..., list[str]] = capture_lines,
        result_limit: int | None = None,
        on_update: Callable[[LauncherState], None] | None = None,
    ) -> None:
        self.config = config
        self.runner = runner
        self.visibility = visibility
        self.engine = engine if engine is not None else MatchEngine()
        self.state = LauncherState()
        self._run_in_background = run_in_background
        self._result_limit = result_limit
        self._on_update = on_update
        self._events: queue.Queue[Event] = queue.Queue()
        self._pending_sessions: deque[IpcSession] = deque()
        self._stopped = threading.Event()
        self._evaluators = EvaluatorScheduler(self._post_evaluator_results, capture=evaluator_capture)

    # Event plumbing ---------------------------------------------------------

    def post(self, event: Event) -> None:
        """Queue an event; safe to call from any thread."""
        self._events.put(event)

    def stop(self) -> None:
        self.post(Shutdown())

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def run(self) -> None:
        """Process events until ``stop`` is called."""
        while not self._stopped.is_set():
            event = self._events.get()
            self.handle(event)

    def drain_events(self) -> int:
        """Process every queued event without blocking; returns how many."""
        handled = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return handled
            self.handle(event)
            handled += 1

    def handle(self, event: Event) -> None:
        try:
            self._dispatch(event)
        except Exception:
            logger.exception("Error handling %s", type(event).__name__)
        if self._on_update is not None:
            self._on_update(self.state)

    def _dispatch(self, event: Event) -> None:
        if isinstance(event, HotkeyPressed):
            self._on_hotkey(event.mode)
        elif isinstance(event, QueryChanged):
            self._on_query(event.text)
        elif isinstance(event, SelectionMoved):
            self._on_move(event.delta)
        elif isinstance(event, SelectionConfirmed):
            self._on_confirm(event.index)
        elif isinstance(event, (EscapePressed, WindowClosed)):
            self._hide()
        elif isinstance(event, IpcSessionRequested):
            self._on_session_requested(event.session)
        elif isinstance(event, IpcClientGone):
            self._on_client_gone(event.session)
        elif isinstance(event, ItemsLoaded):
            self._on_items_loaded(event)
        elif isinstance(event, EvaluatorResults):
            self._on_evaluator_results(event)
        elif isinstance(event, Shutdown):
            self._on_shutdown()
        else:
            logger.warning("Ignoring unknown event %r", event)

    # Show / hide ------------------------------------------------------------

    def _show(self, mode_name: str, session: IpcSession | None = None) -> None:
        state = self.state
        state.generation += 1
        state.active_mode = mode_name
        state.session = session
        state.query = ""
        state.selected = 0
        state.eval_items = ()
        state.errors = []
        self.visibility.show(mode_name, session_id=session.id if session is not None else None)

        if session is not None:
            state.loading = False
            self.engine.set_items(session.items)
            self._refresh_results()
            return

        mode = self.config.mode(mode_name)
        providers = self.config.mode_providers(mode) if mode is not None else []
        cached: list[Item] = []
        missing = False
        for provider in providers:
            items = self.runner.cached(provider)
            if items is None:
                missing = True
            else:
                cached.extend(items)
        self.engine.set_items(cached)
        self._refresh_results()
        state.loading = missing
        if missing:
            self._load_in_background(state.generation, providers)

    def _load_in_background(self, generation: int, providers: list[ProviderConfig]) -> None:
        def work() -> None:
            outcome = self.runner.load_many(providers)
            self.post(ItemsLoaded(generation=generation, items=outcome.items, failures=outcome.failures))

        self._run_in_background(work)

    def _hide(self) -> None:
        state = self.state
        session = state.session
        hidden = self.visibility.hide()
        if session is not None and session.cancel():
            logger.info("IPC session %d cancelled", session.id)
        if hidden or session is not None:
            state.generation += 1
        state.active_mode = None
        state.session = None
        state.query = ""
        state.selected = 0
        state.results = []
        state.eval_items = ()
        state.loading = False
        self.engine.clear()
        self._start_next_session()

    def _start_next_session(self) -> None:
        while self._pending_sessions:
            session = self._pending_sessions.popleft()
            if session.done:
                continue
            logger.debug("Starting queued %r", session)
            self._show(DMENU_PROVIDER, session=session)
            return

    # Handlers ---------------------------------------------------------------

    def _on_hotkey(self, mode_name: str) -> None:
        if self.visibility.is_visible:
            self._hide()
            return
        if self.config.mode(mode_name) is None:
            logger.warning("Hotkey for unknown mode %r", mode_name)
            return
        self._show(mode_name)

    def _refresh_results(self) -> None:
        self.state.results = self.engine.query(self.state.query, limit=self._result_limit)
        self.state.clamp_selection()

    def _mode_evaluators(self) -> list[EvaluatorConfig]:
        if self.state.session is not None or self.state.active_mode is None:
            return []
        mode = self.config.mode(self.state.active_mode)
        return self.config.mode_evaluators(mode) if mode is not None else []

    def _on_query(self, text: str) -> None:
        if not self.visibility.is_visible:
            return
        state = self.state
        state.query = text
        state.selected = 0
        state.eval_items = ()
        self._refresh_results()
        evaluators = self._mode_evaluators()
        if evaluators and text.strip():
            self._evaluators.schedule(state.generation, text, evaluators)

    def _post_evaluator_results(self, request: EvaluatorRequest, items: tuple[Item, ...]) -> None:
        self.post(EvaluatorResults(generation=request.generation, query=request.query, items=items))

    def _on_evaluator_results(self, event: EvaluatorResults) -> None:
        if event.generation != self.state.generation or event.query != self.state.query:
            logger.debug("Dropping stale evaluator results for %r", event.query)
            return
        self.state.eval_items = event.items
        self.state.clamp_selection()

    def _on_items_loaded(self, event: ItemsLoaded) -> None:
        state = self.state
        if event.generation != state.generation or state.session is not None:
            logger.debug("Dropping items from generation %d", event.generation)
            return
        self.engine.set_items(event.items)
        state.errors = [str(failure) for failure in event.failures]
        state.loading = False
        self._refresh_results()

    def _on_move(self, delta: int) -> None:
        state = self.state
        count = len(state.eval_items) + len(state.results)
        if count == 0:
            return
        state.selected = max(0, min(count - 1, state.selected + delta))

    def _action_target(self, item: Item) -> ProviderConfig | EvaluatorConfig | None:
        if item.provider.startswith(EVAL_PREFIX):
            return self.config.evaluators.get(item.provider[len(EVAL_PREFIX):])
        return self.config.providers.get(item.provider)

    def _on_confirm(self, index: int | None) -> None:
        if not self.visibility.is_visible:
            return
        state = self.state
        entries = state.entries()
        position = state.selected if index is None else index
        if not 0 <= position < len(entries):
            logger.debug("Nothing to confirm at position %d", position)
            return
        item = entries[position]

        session = state.session
        if session is not None:
            session.resolve(item)
            logger.info("IPC session %d selected %r", session.id, item.label)
            self._hide()
            return

        target = self._action_target(item)
        self._hide()
        if target is None or not target.action:
            logger.info("No action configured for %r", item.label)
            return
        try:
            self.runner.run_action(target, item)
        except ActionSpawnFailed as exc:
            logger.error("%s", exc)

    def _on_session_requested(self, session: IpcSession) -> None:
        if session.done:
            return
        self._pending_sessions.append(session)
        if self.state.session is not None:
            logger.debug("Queued %r behind IPC session %d", session, self.state.session.id)
            return
        if self.visibility.is_visible:
            # A direct launcher session gives way to the IPC client.
            self._hide()
        else:
            self._start_next_session()

    def _on_client_gone(self, session: IpcSession) -> None:
        if self.state.session is session:
            self._hide()
            return
        try:
            self._pending_sessions.remove(session)
        except ValueError:
            pass
        session.cancel()

    def _on_shutdown(self) -> None:
        for session in self._pending_sessions:
            session.cancel()
        self._pending_sessions.clear()
        self._hide()
        self._stopped.set()
