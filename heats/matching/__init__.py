"""Fuzzy ranking of launcher items."""

from __future__ import annotations

from .fuzzy import MatchEngine, MatchResult, fold_label, fuzzy_match, fuzzy_score, rank_items, score_positions

__all__ = [
    "MatchEngine",
    "MatchResult",
    "fold_label",
    "fuzzy_match",
    "fuzzy_score",
    "rank_items",
    "score_positions",
]
