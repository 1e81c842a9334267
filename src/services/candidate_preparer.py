# src/services/candidate_preparer.py

"""Reduce the merged product set to a bounded scoring workload."""

import logging
import math

from src.config.settings import Settings
from src.filters.product_filter import ProductFilter
from src.filters.query_classifier import QueryClassifier
from src.models.product import RawProduct

logger = logging.getLogger("shopmate.preparer")


def _price_key(product: RawProduct) -> float:
    return product.price if product.price > 0 else math.inf


def sort_by_price(products: list[RawProduct]) -> list[RawProduct]:
    """Stable ascending price sort; unpriced items go last."""
    return sorted(products, key=_price_key)


class CandidatePreparer:
    """Pick which products are worth sending to the relevance model.

    The preparer never removes anything from the final result; items it
    leaves out are appended after the scored ones.
    """

    @staticmethod
    def prepare(
        query: str,
        products: list[RawProduct],
    ) -> list[RawProduct]:
        """Return the scoring sample for ``query``."""
        filtered = ProductFilter.filter_accessories(query, products)

        if not filtered:
            logger.warning(
                "All %d products filtered as accessories, "
                "using original set",
                len(products),
            )
            return list(products[: Settings.FALLBACK_SAMPLE_SIZE])

        ordered = sort_by_price(filtered)

        if QueryClassifier.is_high_value(query):
            sample = CandidatePreparer._sample_price_segments(ordered)
            logger.info(
                "High-value query '%s': ranking %d of %d products "
                "across price segments (%d - %d)",
                query,
                len(sample),
                len(products),
                ordered[0].price,
                ordered[-1].price,
            )
            return sample

        sample = ordered[: Settings.DEFAULT_SAMPLE_SIZE]
        logger.info(
            "Ranking cheapest %d of %d products for '%s'",
            len(sample),
            len(products),
            query,
        )
        return sample

    @staticmethod
    def _sample_price_segments(
        ordered: list[RawProduct],
    ) -> list[RawProduct]:
        """Take slices at fixed price quantiles, dedupe, and cap.

        The very cheapest listings in expensive categories are often
        mis-tagged accessories or bundles, so the sample spans the
        whole price range instead of only the bottom.
        """
        total = len(ordered)
        picked: list[RawProduct] = []
        seen: set[str] = set()

        for quantile, length in Settings.PRICE_SEGMENTS:
            start = math.floor(total * quantile)
            for product in ordered[start:start + length]:
                if product.key in seen:
                    continue
                seen.add(product.key)
                picked.append(product)

        return picked[: Settings.HIGH_VALUE_SAMPLE_CAP]

    @staticmethod
    def fallback_order(
        query: str,
        products: list[RawProduct],
    ) -> list[RawProduct]:
        """Deterministic ranking used when relevance scoring is unavailable.

        Accessory-filtered ascending price; if the filter leaves nothing,
        the unfiltered set is price-sorted instead.
        """
        filtered = ProductFilter.filter_accessories(query, products)
        return sort_by_price(filtered or products)
