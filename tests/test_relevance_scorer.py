# tests/test_relevance_scorer.py

"""Tests for RelevanceScorer batching, retries, and CRS ordering."""

import threading
import unittest
from collections.abc import Callable
from typing import Any

from src.config.settings import PipelineConfig
from src.models.product import RawProduct, ScoredProduct
from src.services.errors import BatchScoreUnavailable, RateLimited
from src.services.relevance_scorer import (
    RelevanceScorer,
    composite_score,
    merge_unscored,
    price_score,
)

ScoreFunc = Callable[[str, list[dict[str, Any]]], list[dict[str, Any]]]


def _p(index: int, price: int = 1000, title: str = "") -> RawProduct:
    """Create a RawProduct with a unique id."""
    return RawProduct(
        id=f"p{index}",
        title=title or f"Laptop {index}",
        store="test",
        price=price,
        link=f"https://store.example/{index}",
    )


class _FakeModel:
    """Relevance model that delegates to a per-test function."""

    def __init__(self, handler: ScoreFunc) -> None:
        self.handler = handler
        self.calls: list[list[dict[str, Any]]] = []

    def score(
        self, query: str, items: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        self.calls.append(items)
        return self.handler(query, items)


class _SleepRecorder:
    """Async sleep replacement that returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _scorer(
    handler: ScoreFunc | None,
    **overrides: Any,
) -> tuple[RelevanceScorer, _FakeModel | None, _SleepRecorder]:
    config = PipelineConfig(gemini_api_key="k", **overrides)
    model = _FakeModel(handler) if handler else None
    sleep = _SleepRecorder()
    return RelevanceScorer(config, model, sleep=sleep), model, sleep


def _uniform(r_score: float, penalty: float = 0.0) -> ScoreFunc:
    def handler(
        query: str, items: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        return [
            {"id": i["id"], "R_Score": r_score,
             "Irrelevance_Penalty": penalty}
            for i in items
        ]
    return handler


class TestScoringFormulas(unittest.TestCase):
    """price_score() and composite_score()."""

    def test_price_score_low_price_band(self) -> None:
        """Below the threshold the reference is twice the price."""
        self.assertAlmostEqual(price_score(1000), 0.5)

    def test_price_score_high_price_band(self) -> None:
        """Above the threshold the reference is 15% over the price."""
        self.assertAlmostEqual(price_score(20000), 1 - 1 / 1.15)

    def test_price_score_unpriced(self) -> None:
        """Unknown prices score zero."""
        self.assertEqual(price_score(0), 0.0)

    def test_composite_weights(self) -> None:
        """CRS = 5R + 2P - 8 * penalty."""
        self.assertAlmostEqual(composite_score(0.8, 0.5, 0.0), 5.0)
        self.assertAlmostEqual(composite_score(1.0, 1.0, 0.1), 6.2)

    def test_composite_floored_at_zero(self) -> None:
        """A heavy penalty never drives CRS negative."""
        self.assertEqual(composite_score(0.2, 0.1, 0.9), 0.0)

    def test_composite_monotonic(self) -> None:
        """Non-decreasing in R and P, non-increasing in the penalty."""
        steps = [i / 10 for i in range(11)]
        for low, high in zip(steps, steps[1:]):
            with self.subTest(low=low, high=high):
                self.assertLessEqual(
                    composite_score(low, 0.3, 0.1),
                    composite_score(high, 0.3, 0.1),
                )
                self.assertLessEqual(
                    composite_score(0.6, low, 0.1),
                    composite_score(0.6, high, 0.1),
                )
                self.assertGreaterEqual(
                    composite_score(0.6, 0.3, low),
                    composite_score(0.6, 0.3, high),
                )


class TestMergeUnscored(unittest.TestCase):
    """merge_unscored() re-attaches unsampled items."""

    def test_ranked_first_then_rest_in_order(self) -> None:
        """Unsampled items follow the ranked ones in merged order."""
        items = [_p(0), _p(1), _p(2), _p(3)]
        merged = merge_unscored([items[2], items[0]], items)
        self.assertEqual(
            [p.id for p in merged], ["p2", "p0", "p1", "p3"]
        )


class TestRelevanceScorer(unittest.IsolatedAsyncioTestCase):
    """RelevanceScorer.rank() outcomes."""

    async def test_no_model_returns_candidates(self) -> None:
        """Without a model, candidates pass through and ranking failed."""
        scorer, _, _ = _scorer(None)
        candidates = [_p(0), _p(1)]

        outcome = await scorer.rank("laptop", candidates)

        self.assertTrue(outcome.all_scores_failed)
        self.assertEqual(outcome.ranked_products, candidates)

    async def test_empty_candidates(self) -> None:
        """Nothing to score is reported as a failed ranking."""
        scorer, model, _ = _scorer(_uniform(1.0))

        outcome = await scorer.rank("laptop", [])

        self.assertTrue(outcome.all_scores_failed)
        self.assertEqual(outcome.ranked_products, [])
        assert model is not None
        self.assertEqual(model.calls, [])

    async def test_sorted_by_crs_descending(self) -> None:
        """Higher relevance outranks a cheaper, less relevant item."""
        relevance = {"p0": 0.2, "p1": 0.95, "p2": 0.6}

        def handler(
            query: str, items: list[dict[str, Any]],
        ) -> list[dict[str, Any]]:
            return [
                {"id": i["id"], "R_Score": relevance[i["id"]],
                 "Irrelevance_Penalty": 0.0}
                for i in items
            ]

        scorer, _, _ = _scorer(handler)
        outcome = await scorer.rank(
            "laptop", [_p(0, 500), _p(1, 50000), _p(2, 30000)]
        )

        ranked = outcome.ranked_products
        self.assertFalse(outcome.all_scores_failed)
        self.assertEqual([p.id for p in ranked], ["p1", "p2", "p0"])
        crs = [p.crs for p in ranked if isinstance(p, ScoredProduct)]
        self.assertEqual(crs, sorted(crs, reverse=True))

    async def test_penalty_sinks_accessories(self) -> None:
        """The accessory penalty outweighs relevance and price."""
        def handler(
            query: str, items: list[dict[str, Any]],
        ) -> list[dict[str, Any]]:
            return [
                {"id": i["id"], "R_Score": 0.9,
                 "Irrelevance_Penalty": 0.9 if i["is_accessory"] else 0.0}
                for i in items
            ]

        scorer, model, _ = _scorer(handler)
        outcome = await scorer.rank(
            "iphone",
            [_p(0, 499, "iPhone Charger"), _p(1, 69900, "iPhone 15")],
        )

        self.assertEqual(outcome.ranked_products[0].id, "p1")
        assert model is not None
        self.assertTrue(model.calls[0][0]["is_accessory"])

    async def test_partial_batch_gets_neutral_defaults(self) -> None:
        """Ten scored of twenty-five; the rest get R=0.5 and no penalty."""
        def handler(
            query: str, items: list[dict[str, Any]],
        ) -> list[dict[str, Any]]:
            return [
                {"id": i["id"], "R_Score": 1.0, "Irrelevance_Penalty": 0.0}
                for i in items[:10]
            ]

        scorer, _, _ = _scorer(handler)
        candidates = [_p(i, 1000) for i in range(25)]
        outcome = await scorer.rank("laptop", candidates)

        self.assertFalse(outcome.all_scores_failed)
        self.assertEqual(outcome.scored_count, 10)
        self.assertEqual(len(outcome.ranked_products), 25)
        scored = [
            p for p in outcome.ranked_products
            if isinstance(p, ScoredProduct)
        ]
        self.assertEqual(len(scored), 25)
        self.assertTrue(all(p.r_score == 1.0 for p in scored[:10]))
        self.assertTrue(all(p.r_score == 0.5 for p in scored[10:]))
        self.assertTrue(
            all(p.irrelevance_penalty == 0.0 for p in scored[10:])
        )

    async def test_all_batches_failing(self) -> None:
        """Every batch failing marks the ranking as failed."""
        def handler(
            query: str, items: list[dict[str, Any]],
        ) -> list[dict[str, Any]]:
            raise BatchScoreUnavailable("bad payload")

        scorer, model, _ = _scorer(handler, batch_size=2)
        outcome = await scorer.rank("laptop", [_p(i) for i in range(5)])

        self.assertTrue(outcome.all_scores_failed)
        self.assertEqual(outcome.scored_count, 0)
        assert model is not None
        self.assertEqual(len(model.calls), 3)

    async def test_one_failed_batch_does_not_stop_others(self) -> None:
        """Later batches still run after a failure."""
        def handler(
            query: str, items: list[dict[str, Any]],
        ) -> list[dict[str, Any]]:
            if items[0]["id"] == "p0":
                raise BatchScoreUnavailable("first batch broken")
            return _uniform(0.9)(query, items)

        scorer, _, _ = _scorer(handler, batch_size=2)
        outcome = await scorer.rank("laptop", [_p(i) for i in range(4)])

        self.assertFalse(outcome.all_scores_failed)
        self.assertEqual(outcome.scored_count, 2)
        self.assertEqual(
            {p.id for p in outcome.ranked_products[:2]}, {"p2", "p3"}
        )

    async def test_rate_limit_retried_with_backoff(self) -> None:
        """429s are retried after 2s then 4s."""
        attempts: list[int] = []

        def handler(
            query: str, items: list[dict[str, Any]],
        ) -> list[dict[str, Any]]:
            attempts.append(1)
            if len(attempts) < 3:
                raise RateLimited("429")
            return _uniform(0.7)(query, items)

        scorer, _, sleep = _scorer(handler)
        outcome = await scorer.rank("laptop", [_p(0)])

        self.assertFalse(outcome.all_scores_failed)
        self.assertEqual(sleep.delays, [2.0, 4.0])

    async def test_rate_limit_gives_up_after_max_retries(self) -> None:
        """A persistently limited batch fails after max_retries."""
        def handler(
            query: str, items: list[dict[str, Any]],
        ) -> list[dict[str, Any]]:
            raise RateLimited("429")

        scorer, model, sleep = _scorer(handler, max_retries=2)
        outcome = await scorer.rank("laptop", [_p(0)])

        self.assertTrue(outcome.all_scores_failed)
        assert model is not None
        self.assertEqual(len(model.calls), 3)
        self.assertEqual(sleep.delays, [2.0, 4.0])

    async def test_batches_are_paced(self) -> None:
        """A pacing sleep separates consecutive successful batches."""
        scorer, _, sleep = _scorer(_uniform(0.5), batch_size=1)
        await scorer.rank("laptop", [_p(0), _p(1)])

        self.assertEqual(len(sleep.delays), 1)
        self.assertLessEqual(sleep.delays[0], 0.5)

    async def test_slow_model_times_out(self) -> None:
        """A batch that misses the deadline is left unscored."""
        release = threading.Event()
        self.addCleanup(release.set)

        def handler(
            query: str, items: list[dict[str, Any]],
        ) -> list[dict[str, Any]]:
            release.wait(5)
            return _uniform(1.0)(query, items)

        scorer, _, _ = _scorer(handler, model_timeout=0.05)
        outcome = await scorer.rank("laptop", [_p(0)])

        self.assertTrue(outcome.all_scores_failed)

    async def test_malformed_entries_ignored(self) -> None:
        """Unknown ids are skipped and out-of-range values clamped."""
        def handler(
            query: str, items: list[dict[str, Any]],
        ) -> list[dict[str, Any]]:
            return [
                {"id": "ghost", "R_Score": 1.0},
                {"id": "p0", "R_Score": 7, "Irrelevance_Penalty": "n/a"},
                {"id": "p1", "R_Score": True, "Irrelevance_Penalty": -1},
            ]

        scorer, _, _ = _scorer(handler)
        outcome = await scorer.rank("laptop", [_p(0), _p(1)])
        by_id = {
            p.id: p for p in outcome.ranked_products
            if isinstance(p, ScoredProduct)
        }

        self.assertEqual(outcome.scored_count, 2)
        self.assertEqual(by_id["p0"].r_score, 1.0)
        self.assertEqual(by_id["p0"].irrelevance_penalty, 0.0)
        self.assertEqual(by_id["p1"].r_score, 0.5)
        self.assertEqual(by_id["p1"].irrelevance_penalty, 0.0)

    async def test_non_list_reply_is_failed_batch(self) -> None:
        """A reply that is not a list leaves the batch unscored."""
        for reply in (None, "junk", {"id": "p0", "R_Score": 0.9}):
            with self.subTest(reply=reply):
                def handler(
                    query: str, items: list[dict[str, Any]],
                ) -> Any:
                    return reply

                scorer, _, _ = _scorer(handler)
                outcome = await scorer.rank("laptop", [_p(0), _p(1)])

                self.assertTrue(outcome.all_scores_failed)
                self.assertEqual(outcome.scored_count, 0)
                self.assertEqual(len(outcome.ranked_products), 2)

    async def test_non_object_entries_skipped(self) -> None:
        """Strings, numbers and nulls inside the list are ignored."""
        def handler(query: str, items: list[dict[str, Any]]) -> Any:
            return ["junk", None, 3, {"id": "p1", "R_Score": 0.9}]

        scorer, _, _ = _scorer(handler)
        outcome = await scorer.rank("laptop", [_p(0), _p(1)])

        self.assertFalse(outcome.all_scores_failed)
        self.assertEqual(outcome.scored_count, 1)
        self.assertEqual(outcome.ranked_products[0].id, "p1")

    async def test_junk_batch_keeps_other_batch_scores(self) -> None:
        """One unreadable batch does not discard scores from the next."""
        def handler(query: str, items: list[dict[str, Any]]) -> Any:
            if items[0]["id"] == "p0":
                return ["junk"]
            return _uniform(0.9)(query, items)

        scorer, _, _ = _scorer(handler, batch_size=2)
        outcome = await scorer.rank("laptop", [_p(i) for i in range(4)])

        self.assertFalse(outcome.all_scores_failed)
        self.assertEqual(outcome.scored_count, 2)
        self.assertEqual(
            {p.id for p in outcome.ranked_products[:2]}, {"p2", "p3"}
        )

    async def test_inputs_not_mutated(self) -> None:
        """Scoring builds new products; candidates stay RawProduct."""
        candidates = [_p(0), _p(1)]
        scorer, _, _ = _scorer(_uniform(0.8))
        await scorer.rank("laptop", candidates)

        self.assertTrue(
            all(type(p) is RawProduct for p in candidates)
        )


if __name__ == "__main__":
    unittest.main()
