"""Tests for fuzzy scoring and ranked matching."""

from __future__ import annotations

import random
import string
import threading
import unittest

from heats.items import Item, text_items
from heats.matching import MatchEngine, fold_label, fuzzy_match, fuzzy_score, rank_items, score_positions

LABELS = [
    "Firefox",
    "Finder",
    "System Settings",
    "Visual Studio Code",
    "iTerm",
    "Activity Monitor",
    "Calculator",
    "calendar-sync",
    "photo_booth",
    "Preview.app",
    "ÄRGER Käse",
]


def _is_subsequence(query: str, label: str, positions: tuple[int, ...]) -> bool:
    folded = fold_label(label)
    needles = fold_label(query)
    if len(positions) != len(needles):
        return False
    if list(positions) != sorted(set(positions)):
        return False
    return all(folded[pos] == needle for pos, needle in zip(positions, needles))


class FuzzyScoreTests(unittest.TestCase):
    def test_non_subsequence_does_not_match(self) -> None:
        self.assertIsNone(fuzzy_match("xyz", "Firefox"))
        self.assertIsNone(fuzzy_score("ff", "Finder"))

    def test_match_is_case_insensitive(self) -> None:
        matched = fuzzy_match("FIRE", "firefox")
        assert matched is not None
        self.assertEqual(matched[1], (0, 1, 2, 3))

    def test_empty_query_matches_with_zero_score(self) -> None:
        self.assertEqual(fuzzy_match("", "anything"), (0, ()))

    def test_consecutive_run_beats_scattered_hits(self) -> None:
        contiguous = fuzzy_score("cal", "Calculator")
        scattered = fuzzy_score("cal", "cxaxl")
        assert contiguous is not None and scattered is not None
        self.assertGreater(contiguous, scattered)

    def test_word_boundary_alignment_is_preferred(self) -> None:
        matched = fuzzy_match("sc", "Visual Studio Code")
        assert matched is not None
        _score, positions = matched
        # "S" of Studio and "C" of Code, not the "s" inside "Visual".
        self.assertEqual(positions, (7, 14))

    def test_camel_hump_counts_as_boundary(self) -> None:
        hump = score_positions("iTerm", (1,))
        inner = score_positions("iterm", (1,))
        self.assertGreater(hump, inner)

    def test_scores_are_never_negative(self) -> None:
        label = "a" + "-" * 200 + "b"
        score = fuzzy_score("ab", label)
        assert score is not None
        self.assertGreaterEqual(score, 0)


class RankingTests(unittest.TestCase):
    def test_every_result_contains_query_as_subsequence(self) -> None:
        rng = random.Random(7)
        items = text_items(LABELS)
        queries = ["", "f", "fi", "set", "sc", "cal", "ä", "ke", "ppa", "zz"]
        queries.extend("".join(rng.choice(string.ascii_lowercase) for _ in range(rng.randint(1, 3))) for _ in range(40))
        for query in queries:
            for result in rank_items(query, items):
                self.assertTrue(
                    _is_subsequence(query, result.item.label, result.positions),
                    f"{query!r} vs {result.item.label!r} at {result.positions}",
                )

    def test_ranking_is_deterministic(self) -> None:
        items = text_items(LABELS * 3)
        first = rank_items("a", items)
        for _ in range(5):
            self.assertEqual(rank_items("a", items), first)

    def test_empty_query_returns_all_items_in_order(self) -> None:
        items = text_items(LABELS)
        results = rank_items("", items)
        self.assertEqual([result.item.label for result in results], LABELS)
        self.assertTrue(all(result.score == 0 for result in results))

    def test_ties_keep_original_order(self) -> None:
        items = text_items(["ab one", "ab two", "ab three"])
        results = rank_items("ab", items)
        self.assertEqual([result.index for result in results], [0, 1, 2])

    def test_alpha_ranks_first_for_al(self) -> None:
        results = rank_items("al", text_items(["alpha", "bravo", "charlie"]))
        self.assertEqual([result.item.label for result in results], ["alpha", "charlie"])

    def test_limit_truncates(self) -> None:
        self.assertEqual(len(rank_items("", text_items(LABELS), limit=3)), 3)
        self.assertEqual(rank_items("", text_items(LABELS), limit=-1), [])


class MatchEngineTests(unittest.TestCase):
    def test_set_items_resets_results_to_load_order(self) -> None:
        engine = MatchEngine()
        engine.set_items(text_items(["one", "two"]))
        self.assertEqual([result.item.label for result in engine.results], ["one", "two"])
        engine.query("tw")
        self.assertEqual(engine.last_query, "tw")
        self.assertEqual([result.item.label for result in engine.results], ["two"])

        engine.set_items(text_items(["three"]))
        self.assertEqual(engine.last_query, "")
        self.assertEqual([result.item.label for result in engine.results], ["three"])

    def test_clear_empties_engine(self) -> None:
        engine = MatchEngine()
        engine.set_items([Item(label="x")])
        engine.clear()
        self.assertEqual(engine.items, ())
        self.assertEqual(engine.query("x"), [])

    def test_query_racing_set_items_sees_one_snapshot(self) -> None:
        engine = MatchEngine()
        old = text_items([f"old {idx}" for idx in range(300)])
        new = text_items([f"new {idx}" for idx in range(300)])
        engine.set_items(old)
        errors: list[str] = []
        stop = threading.Event()

        def reader() -> None:
            while not stop.is_set():
                labels = {result.item.label.split()[0] for result in engine.query("")}
                if len(labels) > 1:
                    errors.append("mixed snapshot")

        thread = threading.Thread(target=reader)
        thread.start()
        for _ in range(50):
            engine.set_items(new)
            engine.set_items(old)
        stop.set()
        thread.join()
        self.assertEqual(errors, [])
