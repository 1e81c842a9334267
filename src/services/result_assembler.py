# src/services/result_assembler.py

"""Build the final AggregationResult envelope."""

import logging

from src.config.settings import PipelineConfig
from src.models.aggregation_result import (
    AggregationResult,
    MergeResult,
    ResultMetadata,
)
from src.models.product import RawProduct
from src.models.source_report import SourceReport

logger = logging.getLogger("shopmate.assembler")

NO_SOURCES_MESSAGE = (
    "No data sources enabled. Enable USE_SERPAPI and/or "
    "USE_DIRECT_SCRAPERS in .env"
)
MISSING_KEY_MESSAGE = (
    "Please add SERPAPI_KEY to .env file. Get a free key at: "
    "https://serpapi.com/users/sign_up"
)
NO_RESULTS_MESSAGE = "No products found. Try a different search term."

SETUP_MESSAGES = (NO_SOURCES_MESSAGE, MISSING_KEY_MESSAGE, NO_RESULTS_MESSAGE)


class ResultAssembler:
    """Package items, summary, and metadata for the caller."""

    def __init__(self, config: PipelineConfig) -> None:
        self.config = config

    def setup_message(self) -> str:
        """Explain an empty result in terms of the current configuration."""
        if not self.config.use_serpapi and not self.config.use_direct_scrapers:
            return NO_SOURCES_MESSAGE
        if self.config.use_serpapi and not self.config.serpapi_configured:
            return MISSING_KEY_MESSAGE
        return NO_RESULTS_MESSAGE

    def strategy(self) -> dict[str, bool]:
        return {
            "directScrapers": self.config.use_direct_scrapers,
            "serpApiOthers": self.config.use_serpapi,
        }

    def assemble(
        self,
        items: list[RawProduct],
        reports: list[SourceReport],
        summary: str,
        elapsed_ms: int,
        ranking_ok: bool,
        merge: MergeResult | None = None,
    ) -> AggregationResult:
        """Build the result; an empty item list gets a setup message."""
        if not items:
            message = self.setup_message()
            logger.info("No results, returning setup message: %s", message)
            return AggregationResult(
                items=[],
                summary=message,
                metadata=ResultMetadata(
                    total_results=0,
                    ranked_by_ai=False,
                    fetch_time_ms=elapsed_ms,
                    sources=list(reports),
                    strategy=self.strategy(),
                ),
            )

        top = items[0]
        return AggregationResult(
            items=list(items),
            summary=summary,
            metadata=ResultMetadata(
                total_results=len(items),
                ranked_by_ai=ranking_ok,
                fetch_time_ms=elapsed_ms,
                direct_links=merge.direct_links if merge else 0,
                redirect_links=merge.redirect_links if merge else 0,
                top_price=top.price,
                top_store=top.store,
                sources=list(reports),
                strategy=self.strategy(),
            ),
        )
