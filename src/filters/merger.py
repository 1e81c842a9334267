# src/filters/merger.py

"""Combine source outputs into one validated, deduplicated list."""

import logging

from src.config.settings import Settings
from src.filters.deduplicator import ProductDeduplicator
from src.filters.product_validator import ProductValidator
from src.models.aggregation_result import MergeResult
from src.models.product import RawProduct

logger = logging.getLogger("shopmate.filters")


def count_link_types(products: list[RawProduct]) -> tuple[int, int]:
    """Return ``(direct, redirect)`` link counts.

    A redirect link routes through the broad-market provider's
    redirector domain instead of pointing at the store.
    """
    redirect = sum(
        1 for p in products if Settings.REDIRECT_DOMAIN in p.link
    )
    return len(products) - redirect, redirect


class ProductMerger:
    """Validate, deduplicate, and compute link statistics."""

    @staticmethod
    def merge(products: list[RawProduct]) -> MergeResult:
        """Run validation then dedup over the concatenated source output."""
        valid, invalid_count = ProductValidator.validate(products)
        unique, duplicate_count = ProductDeduplicator.deduplicate(valid)
        direct, redirect = count_link_types(unique)

        logger.info(
            "Merged %d products (%d invalid, %d duplicates); "
            "links: %d direct, %d redirect",
            len(unique),
            invalid_count,
            duplicate_count,
            direct,
            redirect,
        )

        return MergeResult(
            products=unique,
            invalid_count=invalid_count,
            duplicate_count=duplicate_count,
            direct_links=direct,
            redirect_links=redirect,
        )
