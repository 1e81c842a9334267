# src/filters/product_validator.py

"""Product validation: drop unusable listings before dedup."""

import logging

from src.models.product import RawProduct

logger = logging.getLogger("shopmate.filters")


class ProductValidator:
    """Validate products and drop those with missing essential fields."""

    @staticmethod
    def validate(
        products: list[RawProduct],
    ) -> tuple[list[RawProduct], int]:
        """Drop products with a blank title, no link, or a non-positive price.

        Returns the valid products and the count of dropped items.
        """
        valid: list[RawProduct] = []
        dropped = 0

        for product in products:
            if not product.title.strip():
                logger.debug(
                    "Dropped product with empty title "
                    "(store=%s, link=%s)",
                    product.store,
                    product.link,
                )
                dropped += 1
                continue
            if not product.link:
                logger.debug(
                    "Dropped product without link (title=%s, store=%s)",
                    product.title,
                    product.store,
                )
                dropped += 1
                continue
            if product.price <= 0:
                logger.debug(
                    "Dropped product with zero/negative "
                    "price (title=%s, store=%s)",
                    product.title,
                    product.store,
                )
                dropped += 1
                continue
            valid.append(product)

        if dropped:
            logger.info(
                "Validation dropped %d invalid products",
                dropped,
            )

        return valid, dropped
