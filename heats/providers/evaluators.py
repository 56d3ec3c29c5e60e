"""Query-driven evaluators and their background scheduler.

An evaluator is a source command re-run for each query (for example a
calculator). Queries arrive far faster than commands finish, so the
scheduler keeps at most one worker and collapses pending requests to the
newest query.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from ..config import EvaluatorConfig
from ..errors import ProviderLoadFailed
from ..items import Item, item_from_record, parse_record
from .process import capture_lines

logger = logging.getLogger(__name__)


def run_evaluator(
    evaluator: EvaluatorConfig,
    query: str,
    capture: Callable[..., list[str]] = capture_lines,
) -> tuple[Item, ...]:
    """Run one evaluator for ``query`` and parse its structured output.

    Only structured records are accepted from evaluators; other lines are
    ignored. Raises ``ProviderLoadFailed``.
    """
    argv = list(evaluator.source)
    input_text: str | None = None
    if evaluator.input == "arg":
        argv.append(query)
    else:
        input_text = query + "\n"
    lines = capture(evaluator.name, argv, timeout=evaluator.timeout, input_text=input_text)
    items: list[Item] = []
    for line in lines:
        record = parse_record(line)
        if record is None:
            continue
        items.append(item_from_record(record, index=len(items), provider=f"eval:{evaluator.name}"))
    return tuple(items)


def run_evaluators(
    evaluators: Sequence[EvaluatorConfig],
    query: str,
    capture: Callable[..., list[str]] = capture_lines,
) -> tuple[Item, ...]:
    """Run evaluators concurrently; failed evaluators contribute nothing."""
    if not evaluators or not query:
        return ()

    def run_one(evaluator: EvaluatorConfig) -> tuple[Item, ...]:
        try:
            return run_evaluator(evaluator, query, capture)
        except ProviderLoadFailed as exc:
            logger.debug("%s", exc)
            return ()

    with ThreadPoolExecutor(max_workers=len(evaluators), thread_name_prefix="heats-eval") as pool:
        results = list(pool.map(run_one, evaluators))
    merged: list[Item] = []
    for items in results:
        merged.extend(items)
    return tuple(merged)


@dataclass(frozen=True)
class EvaluatorRequest:
    """One evaluator job tagged with the show generation that asked for it."""

    request_id: int
    generation: int
    query: str
    evaluators: tuple[EvaluatorConfig, ...]


class EvaluatorScheduler:
    """Single-threaded latest-request-wins evaluator runner.

    ``on_result`` is called from the worker thread with the request and the
    items it produced.
    """

    def __init__(
        self,
        on_result: Callable[[EvaluatorRequest, tuple[Item, ...]], None],
        capture: Callable[..., list[str]] = capture_lines,
    ) -> None:
        self._on_result = on_result
        self._capture = capture
        self._lock = threading.Lock()
        self._pending: EvaluatorRequest | None = None
        self._running = False
        self._next_request_id = 1

    def _worker(self) -> None:
        while True:
            with self._lock:
                request = self._pending
                self._pending = None
                if request is None:
                    self._running = False
                    return

            items = run_evaluators(request.evaluators, request.query, self._capture)
            self._on_result(request, items)

    def schedule(self, generation: int, query: str, evaluators: Sequence[EvaluatorConfig]) -> int:
        """Queue or replace pending evaluator work and return its request id."""
        with self._lock:
            request_id = self._next_request_id
            self._next_request_id += 1
            self._pending = EvaluatorRequest(
                request_id=request_id,
                generation=generation,
                query=query,
                evaluators=tuple(evaluators),
            )
            if self._running:
                return request_id
            self._running = True

        worker = threading.Thread(target=self._worker, name="heats-evaluator", daemon=True)
        worker.start()
        return request_id
