"""Fuzzy subsequence scoring and the ranked match engine.

A query matches a label when every query character appears in the label in
order, compared case-insensitively. Scores reward consecutive runs and hits on
word boundaries (start of label, after ``/_-. ``, camelCase humps) and
penalize gaps and long labels. Ranking is a full pass over the current item
snapshot per query, sorted by descending score with ties kept in load order.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..items import Item

BOUNDARY_CHARS = "/_-. "
MAX_SUBSTRING_ALIGNMENTS = 8


def fold_char(char: str) -> str:
    """Case-fold one character while keeping a one-to-one position mapping."""
    folded = char.casefold()
    if len(folded) == 1:
        return folded
    lowered = char.lower()
    return lowered if len(lowered) == 1 else char


def fold_label(label: str) -> tuple[str, ...]:
    return tuple(fold_char(char) for char in label)


def _is_boundary(label: str, idx: int) -> bool:
    if idx == 0:
        return True
    prev = label[idx - 1]
    if prev in BOUNDARY_CHARS:
        return True
    return prev.islower() and label[idx].isupper()


def _greedy_positions(folded: Sequence[str], needles: Sequence[str], start: int = 0) -> tuple[int, ...] | None:
    positions: list[int] = []
    idx = start
    size = len(folded)
    for needle in needles:
        while idx < size and folded[idx] != needle:
            idx += 1
        if idx >= size:
            return None
        positions.append(idx)
        idx += 1
    return tuple(positions)


def _substring_starts(folded: Sequence[str], needles: Sequence[str]) -> list[int]:
    width = len(needles)
    starts: list[int] = []
    for idx in range(len(folded) - width + 1):
        if tuple(folded[idx : idx + width]) == tuple(needles):
            starts.append(idx)
            if len(starts) >= MAX_SUBSTRING_ALIGNMENTS:
                break
    return starts


def score_positions(label: str, positions: Sequence[int]) -> int:
    """Score one alignment of query characters onto ``label``."""
    score = 0
    prev_idx = -1
    run = 0
    for idx in positions:
        score += 40
        if idx == prev_idx + 1:
            run += 1
            score += 20 + min(16, run * 4)
        else:
            gap = idx - prev_idx - 1
            run = 0
            score -= min(40, gap * 2)
        if _is_boundary(label, idx):
            score += 35
        prev_idx = idx

    score -= len(label) // 5
    return max(0, score)


def fuzzy_match(query: str, label: str, folded: Sequence[str] | None = None) -> tuple[int, tuple[int, ...]] | None:
    """Return ``(score, positions)`` for the best alignment, or ``None``.

    Alignments tried: greedy leftmost, greedy from each boundary that starts
    with the first query character, and each contiguous substring occurrence.
    The first best-scoring alignment wins, so results are deterministic.
    """
    if not query:
        return 0, ()
    if folded is None:
        folded = fold_label(label)
    needles = fold_label(query)

    first = _greedy_positions(folded, needles)
    if first is None:
        return None

    candidates: list[tuple[int, ...]] = [first]
    for idx, char in enumerate(folded):
        if char == needles[0] and idx > first[0] and _is_boundary(label, idx):
            aligned = _greedy_positions(folded, needles, idx)
            if aligned is not None:
                candidates.append(aligned)
    for start in _substring_starts(folded, needles):
        candidates.append(tuple(range(start, start + len(needles))))

    best_score = -1
    best_positions = first
    for positions in candidates:
        score = score_positions(label, positions)
        if score > best_score:
            best_score = score
            best_positions = positions
    return best_score, best_positions


def fuzzy_score(query: str, label: str) -> int | None:
    matched = fuzzy_match(query, label)
    return None if matched is None else matched[0]


@dataclass(frozen=True)
class MatchResult:
    """A ranked item with its score and matched label positions."""

    item: Item
    score: int
    positions: tuple[int, ...]
    # Position of the item within the loaded item set.
    index: int


def rank_items(
    query: str,
    items: Sequence[Item],
    folded: Sequence[Sequence[str]] | None = None,
    limit: int | None = None,
) -> list[MatchResult]:
    """Rank ``items`` against ``query``; ties keep their original order."""
    if folded is None:
        folded = [fold_label(item.label) for item in items]
    if not query:
        ranked = [MatchResult(item=item, score=0, positions=(), index=idx) for idx, item in enumerate(items)]
    else:
        ranked = []
        for idx, item in enumerate(items):
            matched = fuzzy_match(query, item.label, folded[idx])
            if matched is None:
                continue
            score, positions = matched
            ranked.append(MatchResult(item=item, score=score, positions=positions, index=idx))
        ranked.sort(key=lambda result: (-result.score, result.index))
    if limit is not None:
        return ranked[: max(0, limit)]
    return ranked


class MatchEngine:
    """Holds the working item set and answers ranked queries against it.

    ``set_items`` swaps an immutable snapshot under a lock; ``query`` takes
    the snapshot once, so a query racing a swap sees either the old set or
    the new one end to end.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: tuple[Item, ...] = ()
        self._folded: tuple[tuple[str, ...], ...] = ()
        self._query = ""
        self._results: list[MatchResult] = []

    @property
    def items(self) -> tuple[Item, ...]:
        with self._lock:
            return self._items

    @property
    def last_query(self) -> str:
        with self._lock:
            return self._query

    @property
    def results(self) -> list[MatchResult]:
        """Most recent ranked result for the current item set."""
        with self._lock:
            return list(self._results)

    def set_items(self, items: Iterable[Item]) -> None:
        snapshot = tuple(items)
        folded = tuple(fold_label(item.label) for item in snapshot)
        with self._lock:
            self._items = snapshot
            self._folded = folded
            self._query = ""
            self._results = [
                MatchResult(item=item, score=0, positions=(), index=idx) for idx, item in enumerate(snapshot)
            ]

    def query(self, text: str, limit: int | None = None) -> list[MatchResult]:
        with self._lock:
            items = self._items
            folded = self._folded
        ranked = rank_items(text, items, folded, limit=limit)
        with self._lock:
            if self._items is items:
                self._query = text
                self._results = ranked
        return list(ranked)

    def clear(self) -> None:
        with self._lock:
            self._items = ()
            self._folded = ()
            self._query = ""
            self._results = []
