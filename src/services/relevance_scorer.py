# src/services/relevance_scorer.py

"""Batch relevance scoring and composite ranking of candidate products."""

import asyncio
import dataclasses
import logging
from typing import Any, Protocol

from src.config.settings import PipelineConfig, Settings
from src.filters.query_classifier import QueryClassifier
from src.models.aggregation_result import RankingOutcome
from src.models.product import RawProduct, ScoredProduct
from src.services.errors import BatchScoreUnavailable, RateLimited
from src.services.rate_pacer import RatePacer, SleepFunc
from src.services.worker_thread import run_detached

logger = logging.getLogger("shopmate.ranking")

_RAW_FIELDS = [f.name for f in dataclasses.fields(RawProduct)]


class RelevanceModel(Protocol):
    """External model scoring products against a query."""

    def score(
        self,
        query: str,
        items: list[dict[str, Any]],
    ) -> list[dict[str, Any]]: ...


def price_score(price: int) -> float:
    """Price competitiveness against an inferred reference price."""
    if price <= 0:
        return 0.0
    if price > Settings.HIGH_PRICE_THRESHOLD:
        reference = price * Settings.HIGH_PRICE_REFERENCE_FACTOR
    else:
        reference = price * Settings.LOW_PRICE_REFERENCE_FACTOR
    return min(1.0, max(0.0, 1 - price / reference))


def composite_score(
    r_score: float,
    p_score: float,
    irrelevance_penalty: float,
) -> float:
    """CRS = 5*R + 2*P - 8*penalty, floored at zero."""
    crs = (
        Settings.WEIGHT_RELEVANCE * r_score
        + Settings.WEIGHT_PRICE * p_score
        - Settings.WEIGHT_IRRELEVANCE * irrelevance_penalty
    )
    return max(0.0, crs)


def _unit_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return min(1.0, max(0.0, number))


def _parse_scores(
    entries: Any,
    wanted_ids: set[str],
) -> dict[str, tuple[float | None, float | None]]:
    """Map candidate id to ``(R_Score, Irrelevance_Penalty)``.

    Entries for unknown ids and non-object entries are ignored; a missing
    or non-numeric field is returned as ``None`` so the caller applies the
    neutral default.

    Raises:
        BatchScoreUnavailable: ``entries`` is not a list.
    """
    if not isinstance(entries, list):
        raise BatchScoreUnavailable(
            f"expected a list of scores, got {type(entries).__name__}"
        )
    parsed: dict[str, tuple[float | None, float | None]] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        entry_id = str(entry.get("id", ""))
        if entry_id not in wanted_ids:
            continue
        parsed[entry_id] = (
            _unit_float(entry.get("R_Score")),
            _unit_float(entry.get("Irrelevance_Penalty")),
        )
    return parsed


def to_scored(
    product: RawProduct,
    r_score: float,
    irrelevance_penalty: float,
) -> ScoredProduct:
    """Build a new ScoredProduct; the input product is left untouched."""
    p_score = price_score(product.price)
    base = {name: getattr(product, name) for name in _RAW_FIELDS}
    return ScoredProduct(
        **base,
        r_score=r_score,
        p_score=p_score,
        irrelevance_penalty=irrelevance_penalty,
        crs=composite_score(r_score, p_score, irrelevance_penalty),
    )


def merge_unscored(
    ranked: list[RawProduct],
    all_items: list[RawProduct],
) -> list[RawProduct]:
    """Ranked items first, then everything that was not sampled, in order."""
    ranked_keys = {p.key for p in ranked}
    rest = [p for p in all_items if p.key not in ranked_keys]
    if rest:
        logger.info(
            "Ranked %d products, %d unsampled kept at end",
            len(ranked),
            len(rest),
        )
    return [*ranked, *rest]


class RelevanceScorer:
    """Score candidates in sequential batches and order them by CRS.

    Batches go to the model one at a time, paced by a :class:`RatePacer`.
    A rate-limited batch is retried with exponential backoff; any other
    failure leaves that batch unscored, and its members fall back to a
    neutral relevance score.
    """

    def __init__(
        self,
        config: PipelineConfig,
        model: RelevanceModel | None = None,
        pacer: RatePacer | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.config = config
        self.model = model
        self._sleep = sleep
        self.pacer = pacer or RatePacer(config.batch_pacing, sleep=sleep)

    async def rank(
        self,
        query: str,
        candidates: list[RawProduct],
    ) -> RankingOutcome:
        """Score and order ``candidates``; never raises."""
        model = self.model
        if model is None or not candidates:
            logger.warning(
                "Relevance model not configured or no candidates, "
                "skipping AI ranking"
            )
            return RankingOutcome(
                ranked_products=list(candidates),
                all_scores_failed=True,
            )

        ids = [p.id or str(i) for i, p in enumerate(candidates)]
        size = max(1, self.config.batch_size)
        total_batches = (len(candidates) + size - 1) // size
        scores: dict[str, tuple[float | None, float | None]] = {}

        logger.info(
            "Scoring %d products in %d batch(es)",
            len(candidates),
            total_batches,
        )

        for number, start in enumerate(range(0, len(candidates), size), 1):
            batch = candidates[start:start + size]
            batch_ids = ids[start:start + size]
            items = [
                {
                    "id": pid,
                    "title": p.title,
                    "is_accessory": QueryClassifier.looks_like_accessory(
                        p.title
                    ),
                }
                for pid, p in zip(batch_ids, batch)
            ]

            await self.pacer.acquire()
            try:
                entries = await self._score_with_retry(model, query, items)
                batch_scores = _parse_scores(entries, set(batch_ids))
            except Exception as exc:
                logger.error(
                    "Batch %d/%d failed: %s",
                    number,
                    total_batches,
                    exc,
                    exc_info=not isinstance(
                        exc, (BatchScoreUnavailable, RateLimited)
                    ),
                )
                continue

            self.pacer.mark_success()
            scores.update(batch_scores)

        ranked: list[ScoredProduct] = []
        for pid, product in zip(ids, candidates):
            r_score, penalty = scores.get(pid, (None, None))
            ranked.append(
                to_scored(
                    product,
                    Settings.NEUTRAL_R_SCORE if r_score is None else r_score,
                    0.0 if penalty is None else penalty,
                )
            )
        ranked.sort(key=lambda p: -p.crs)

        logger.info(
            "Ranking complete. Scored %d/%d products via AI",
            len(scores),
            len(candidates),
        )
        return RankingOutcome(
            ranked_products=list[RawProduct](ranked),
            all_scores_failed=not scores,
            scored_count=len(scores),
        )

    async def _score_with_retry(
        self,
        model: RelevanceModel,
        query: str,
        items: list[dict[str, Any]],
    ) -> Any:
        """Call the model, backing off and retrying only on rate limits."""
        attempt = 0
        while True:
            try:
                return await asyncio.wait_for(
                    run_detached(model.score, query, items),
                    timeout=self.config.model_timeout,
                )
            except asyncio.TimeoutError:
                raise BatchScoreUnavailable(
                    f"model call timed out after {self.config.model_timeout}s"
                ) from None
            except RateLimited:
                attempt += 1
                if attempt > self.config.max_retries:
                    raise
                delay = self.config.initial_backoff * 2 ** (attempt - 1)
                logger.warning(
                    "Rate limited (429). Retrying in %.1fs "
                    "(attempt %d/%d)",
                    delay,
                    attempt,
                    self.config.max_retries,
                )
                await self._sleep(delay)
