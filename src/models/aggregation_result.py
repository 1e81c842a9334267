# src/models/aggregation_result.py

"""Pipeline output envelope and intermediate stage results."""

from dataclasses import dataclass, field
from typing import Any

from src.models.product import RawProduct, ScoredProduct
from src.models.source_report import SourceReport


@dataclass(frozen=True)
class MergeResult:
    """Validated, deduplicated products plus link statistics."""

    products: list[RawProduct]
    invalid_count: int = 0
    duplicate_count: int = 0
    direct_links: int = 0
    redirect_links: int = 0


@dataclass(frozen=True)
class RankingOutcome:
    """Scorer result, always in this shape whether scoring worked or not."""

    ranked_products: list[RawProduct]
    all_scores_failed: bool
    scored_count: int = 0


@dataclass(frozen=True)
class ResultMetadata:
    """Counts, timing, and provenance for one query."""

    total_results: int
    ranked_by_ai: bool
    fetch_time_ms: int
    direct_links: int = 0
    redirect_links: int = 0
    top_price: int | None = None
    top_store: str | None = None
    sources: list[SourceReport] = field(
        default_factory=lambda: list[SourceReport]()
    )
    strategy: dict[str, bool] = field(
        default_factory=lambda: dict[str, bool]()
    )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "totalResults": self.total_results,
            "rankedByAI": self.ranked_by_ai,
            "fetchTime": self.fetch_time_ms,
            "directLinks": self.direct_links,
            "redirectLinks": self.redirect_links,
            "sources": [s.to_dict() for s in self.sources],
        }
        if self.top_price is not None:
            data["topPrice"] = self.top_price
            data["topStore"] = self.top_store
        if self.strategy:
            data["strategy"] = dict(self.strategy)
        return data


@dataclass(frozen=True)
class AggregationResult:
    """The pipeline's sole output for one query."""

    items: list[RawProduct | ScoredProduct]
    summary: str
    metadata: ResultMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [p.to_dict() for p in self.items],
            "summary": self.summary,
            "metadata": self.metadata.to_dict(),
        }
