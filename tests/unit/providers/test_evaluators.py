"""Tests for query-driven evaluators and their latest-wins scheduler."""

from __future__ import annotations

import sys
import threading
import time
import unittest

from heats.config import EvaluatorConfig
from heats.errors import ProviderLoadFailed
from heats.items import Item
from heats.providers import EvaluatorRequest, EvaluatorScheduler, run_evaluator, run_evaluators


def _echo_evaluator(name: str = "echo", input_mode: str = "stdin") -> EvaluatorConfig:
    code = (
        "import json, sys\n"
        "query = sys.argv[1] if len(sys.argv) > 1 else sys.stdin.readline().strip()\n"
        "print(json.dumps({'title': '= ' + query, 'data': query}))\n"
        "print('not a record')\n"
    )
    return EvaluatorConfig(name=name, source=(sys.executable, "-c", code), input=input_mode, timeout=10.0)


def _wait_for(predicate, timeout_seconds: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class RunEvaluatorTests(unittest.TestCase):
    def test_stdin_input_keeps_only_structured_records(self) -> None:
        items = run_evaluator(_echo_evaluator(), "2+2")
        self.assertEqual([item.label for item in items], ["= 2+2"])
        self.assertEqual(items[0].provider, "eval:echo")
        self.assertEqual(items[0].get_field("data"), "2+2")

    def test_arg_input_appends_query(self) -> None:
        items = run_evaluator(_echo_evaluator(input_mode="arg"), "hello")
        self.assertEqual([item.label for item in items], ["= hello"])

    def test_failure_raises_for_single_evaluator(self) -> None:
        broken = EvaluatorConfig(name="broken", source=(sys.executable, "-c", "raise SystemExit(3)"))
        with self.assertRaises(ProviderLoadFailed):
            run_evaluator(broken, "x")

    def test_run_evaluators_skips_failures_and_empty_query(self) -> None:
        broken = EvaluatorConfig(name="broken", source=(sys.executable, "-c", "raise SystemExit(3)"))
        items = run_evaluators([broken, _echo_evaluator()], "1")
        self.assertEqual([item.label for item in items], ["= 1"])
        self.assertEqual(run_evaluators([_echo_evaluator()], ""), ())


class EvaluatorSchedulerTests(unittest.TestCase):
    def test_schedule_delivers_result_with_generation(self) -> None:
        results: list[tuple[EvaluatorRequest, tuple[Item, ...]]] = []
        scheduler = EvaluatorScheduler(lambda request, items: results.append((request, items)))

        scheduler.schedule(3, "7", [_echo_evaluator()])

        self.assertTrue(_wait_for(lambda: len(results) == 1))
        request, items = results[0]
        self.assertEqual(request.generation, 3)
        self.assertEqual(request.query, "7")
        self.assertEqual([item.label for item in items], ["= 7"])

    def test_pending_requests_collapse_to_latest(self) -> None:
        started = threading.Event()
        release = threading.Event()
        seen_queries: list[str] = []

        def capture(name, argv, *, timeout, input_text=None):
            query = (input_text or "").strip()
            seen_queries.append(query)
            if query == "a":
                started.set()
                release.wait(5.0)
            return ['{"title": "%s"}' % query]

        delivered: list[str] = []
        scheduler = EvaluatorScheduler(lambda request, _items: delivered.append(request.query), capture=capture)
        evaluator = EvaluatorConfig(name="calc", source=("calc",))

        scheduler.schedule(1, "a", [evaluator])
        self.assertTrue(started.wait(5.0))
        scheduler.schedule(1, "ab", [evaluator])
        scheduler.schedule(1, "abc", [evaluator])
        release.set()

        self.assertTrue(_wait_for(lambda: delivered == ["a", "abc"]))
        self.assertEqual(seen_queries, ["a", "abc"])
