# src/filters/product_filter.py

"""Title-keyword product filtering."""

import logging

from src.config.settings import Settings
from src.filters.query_classifier import QueryClassifier
from src.models.product import RawProduct

logger = logging.getLogger("shopmate.filters")


class ProductFilter:
    """Filter products by keywords appearing in their titles."""

    @staticmethod
    def filter_by_keywords(
        products: list[RawProduct],
        negative_keywords: list[str],
    ) -> tuple[list[RawProduct], int]:
        """Remove products whose title contains any negative keyword.

        Returns the filtered list and the count of excluded products.
        """
        if not negative_keywords:
            return list(products), 0

        lowered_keywords = [kw.lower() for kw in negative_keywords]

        kept: list[RawProduct] = []
        excluded = 0
        for product in products:
            title_lower = product.title.lower()
            if any(kw in title_lower for kw in lowered_keywords):
                excluded += 1
            else:
                kept.append(product)

        return kept, excluded

    @staticmethod
    def filter_accessories(
        query: str,
        products: list[RawProduct],
    ) -> list[RawProduct]:
        """Drop accessory listings unless the query asks for an accessory.

        A blunt heuristic: it only shrinks the scoring workload and
        drives the price-sort fallback, never the final result set.
        """
        if not QueryClassifier.is_primary(query):
            return list(products)

        kept, excluded = ProductFilter.filter_by_keywords(
            products, Settings.ACCESSORY_KEYWORDS
        )
        if excluded:
            logger.info(
                "Accessory filter removed %d products for '%s'",
                excluded,
                query,
            )
        return kept
