"""Provider orchestration: source loading, caching, evaluators and actions."""

from __future__ import annotations

from .evaluators import EvaluatorRequest, EvaluatorScheduler, run_evaluator, run_evaluators
from .process import capture_lines, resolve_command, spawn_detached
from .runner import CacheEntry, LoadOutcome, ProviderRunner, build_action_command

__all__ = [
    "CacheEntry",
    "EvaluatorRequest",
    "EvaluatorScheduler",
    "LoadOutcome",
    "ProviderRunner",
    "build_action_command",
    "capture_lines",
    "resolve_command",
    "run_evaluator",
    "run_evaluators",
    "spawn_detached",
]
