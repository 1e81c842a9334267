# src/services/search_orchestrator.py

"""Orchestrates gather, merge, ranking, and summary for one query."""

import logging
import time
from collections.abc import Callable

from src.config.settings import PipelineConfig, Settings
from src.filters.merger import ProductMerger
from src.models.aggregation_result import AggregationResult
from src.models.product import RawProduct, ScoredProduct
from src.services.advisor import (
    RANKING_UNAVAILABLE_NOTE,
    AdvisorSummarizer,
)
from src.services.candidate_preparer import CandidatePreparer
from src.services.gemini_models import (
    GeminiRelevanceModel,
    GeminiSummaryModel,
)
from src.services.relevance_scorer import RelevanceScorer, merge_unscored
from src.services.result_assembler import ResultAssembler
from src.services.source_coordinator import SourceCoordinator

logger = logging.getLogger("shopmate.orchestrator")


def emergency_summary(products: list[RawProduct]) -> str:
    """One-line summary for when ranking or the advisor blew up."""
    if not products:
        return "No products available to analyze."
    top = products[0]
    summary = (
        f"Found {len(products)} products! Best deal: "
        f"₹{top.price:,} from {top.store}."
    )
    if top.discount > 0:
        summary += f" ({top.discount}% off!)"
    return summary


class SearchOrchestrator:
    """Run the full search pipeline; :meth:`search` never raises."""

    def __init__(
        self,
        config: PipelineConfig,
        coordinator: SourceCoordinator | None = None,
        scorer: RelevanceScorer | None = None,
        advisor: AdvisorSummarizer | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.coordinator = coordinator or SourceCoordinator(config)
        if scorer is None:
            relevance_model = (
                GeminiRelevanceModel.from_key(
                    config.gemini_api_key, config.model_timeout
                )
                if config.gemini_configured
                else None
            )
            scorer = RelevanceScorer(config, relevance_model)
        self.scorer = scorer
        if advisor is None:
            summary_model = (
                GeminiSummaryModel.from_key(
                    config.gemini_api_key, config.model_timeout
                )
                if config.gemini_configured
                else None
            )
            advisor = AdvisorSummarizer(summary_model, config.model_timeout)
        self.advisor = advisor
        self.assembler = ResultAssembler(config)
        self._clock = clock

    def _elapsed_ms(self, start: float) -> int:
        return int((self._clock() - start) * 1000)

    async def search(self, query: str) -> AggregationResult:
        """Aggregate, rank, and summarise products for ``query``."""
        logger.info("Aggregating products for '%s'", query)
        start = self._clock()

        raw_items, reports = await self.coordinator.gather(query)
        merged = ProductMerger.merge(raw_items)
        items = merged.products
        logger.info(
            "Found %d products in %dms",
            len(items),
            self._elapsed_ms(start),
        )

        if not items:
            return self.assembler.assemble(
                [], reports, "", self._elapsed_ms(start), False, merged
            )

        ranking_ok = False
        try:
            candidates = CandidatePreparer.prepare(query, items)
            outcome = await self.scorer.rank(query, candidates)

            if outcome.ranked_products and not outcome.all_scores_failed:
                final = merge_unscored(outcome.ranked_products, items)
                ranking_ok = True
                note = ""
                self._log_top(final)
            else:
                logger.warning(
                    "AI ranking failed, falling back to filtered price sort"
                )
                final = CandidatePreparer.fallback_order(query, items)
                note = RANKING_UNAVAILABLE_NOTE

            summary = await self.advisor.summarize(
                final[: Settings.SUMMARY_TOP_N], note
            )
        except Exception as exc:
            logger.error(
                "Ranking/summary error for '%s': %s",
                query,
                exc,
                exc_info=True,
            )
            ranking_ok = False
            final = CandidatePreparer.fallback_order(query, items)
            summary = emergency_summary(final)

        return self.assembler.assemble(
            final,
            reports,
            summary,
            self._elapsed_ms(start),
            ranking_ok,
            merged,
        )

    @staticmethod
    def _log_top(products: list[RawProduct]) -> None:
        for rank, product in enumerate(products[:3], start=1):
            crs = (
                f"{product.crs:.2f}"
                if isinstance(product, ScoredProduct)
                else "N/A"
            )
            logger.info(
                "Top %d: %s - ₹%d (CRS: %s)",
                rank,
                product.title[:60],
                product.price,
                crs,
            )
