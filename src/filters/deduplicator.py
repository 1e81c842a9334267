# src/filters/deduplicator.py

"""Product deduplication across direct scrapers and broad-market search."""

import logging

from src.config.settings import Settings
from src.models.product import RawProduct

logger = logging.getLogger("shopmate.filters")


class ProductDeduplicator:
    """Remove duplicates keyed on a truncated title plus the exact price."""

    @staticmethod
    def dedup_key(product: RawProduct) -> str:
        """Build the composite dedup key for a product.

        The key ignores the store, so the same item listed by a direct
        scraper and by broad-market search collapses into one entry.
        Distinct products sharing a 50-character title prefix and an
        identical price also collapse; that loss is accepted.
        """
        prefix = product.title.lower()[: Settings.DEDUP_TITLE_PREFIX].strip()
        return f"{prefix}_{product.price}"

    @staticmethod
    def deduplicate(
        products: list[RawProduct],
    ) -> tuple[list[RawProduct], int]:
        """Keep the first occurrence of each key, preserving order.

        Returns the deduplicated list and the count of removed dupes.
        """
        seen: set[str] = set()
        kept: list[RawProduct] = []
        removed = 0

        for product in products:
            key = ProductDeduplicator.dedup_key(product)
            if key in seen:
                removed += 1
                continue
            seen.add(key)
            kept.append(product)

        if removed:
            logger.info(
                "Deduplication removed %d duplicate products",
                removed,
            )

        return kept, removed
