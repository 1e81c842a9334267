# src/services/advisor.py

"""Short natural-language verdict for the top-ranked products."""

import asyncio
import logging
from typing import Protocol

from src.config.settings import Settings
from src.models.product import RawProduct
from src.services.worker_thread import run_detached

logger = logging.getLogger("shopmate.advisor")

RANKING_UNAVAILABLE_NOTE = (
    "(Note: AI ranking temporarily unavailable, results filtered "
    "and sorted by price.)"
)


class SummaryModel(Protocol):
    """External text generator for the verdict."""

    def generate(
        self,
        top_items: list[RawProduct],
        instructions: str = "",
    ) -> str: ...


def _rupees(amount: int) -> str:
    return f"₹{amount:,}"


def fallback_summary(products: list[RawProduct], note: str = "") -> str:
    """Template verdict built only from product fields.

    Always endorses ``products[0]``; the second product, when present,
    is used for a price comparison.
    """
    if not products:
        return "No products available to analyze."

    top = products[0]
    parts = [
        f"Our **#1 top recommendation** is the **{top.title}** from "
        f"**{top.store}** for {_rupees(top.price)}."
    ]

    if top.discount > 0:
        parts.append(
            f"This fantastic deal includes a huge **{top.discount}% off** "
            "the original price, making it an excellent value choice."
        )
    else:
        parts.append(
            "It stands out as the best choice based on its competitive "
            "price and overall value."
        )

    if top.rating > 0:
        parts.append(
            "Customers love this product, giving it a high rating of "
            f"**{top.rating}/5**."
        )
        if top.reviews > 0:
            parts.append(
                f"With {top.reviews:,} verified reviews, you can shop "
                "with confidence."
            )
    elif top.reviews > 0:
        parts.append(
            "This product has been widely purchased and reviewed by "
            f"{top.reviews:,} customers."
        )

    if len(products) > 1:
        second = products[1]
        difference = second.price - top.price
        if difference > 0:
            parts.append(
                f"Compared to the #2 option at {_rupees(second.price)}, "
                f"you're **saving {_rupees(difference)}** with this choice!"
            )
        elif difference < 0:
            parts.append(
                "While there are cheaper options available, this product "
                "offers the best overall **value for money** based on "
                "quality, features, and customer satisfaction."
            )

    if note:
        parts.append(note)

    return " ".join(parts)


class AdvisorSummarizer:
    """Ask the summary model for a verdict, falling back to the template."""

    def __init__(
        self,
        model: SummaryModel | None = None,
        timeout: float = 20.0,
    ) -> None:
        self.model = model
        self.timeout = timeout

    async def summarize(
        self,
        top_products: list[RawProduct],
        note: str = "",
    ) -> str:
        """Return a verdict for ``top_products``; never raises."""
        top = list(top_products[: Settings.SUMMARY_TOP_N])
        if self.model is None or not top:
            logger.info("Summary model not configured, using fallback summary")
            return fallback_summary(top, note)

        try:
            verdict = await asyncio.wait_for(
                run_detached(self.model.generate, top, note),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Summary model timed out after %.1fs, using fallback",
                self.timeout,
            )
            return fallback_summary(top, note)
        except Exception as exc:
            logger.warning(
                "Summary model unavailable (%s), using fallback", exc
            )
            return fallback_summary(top, note)

        verdict = (verdict or "").strip()
        if not verdict:
            logger.warning("Empty verdict from summary model, using fallback")
            return fallback_summary(top, note)

        logger.info("AI verdict generated successfully")
        return verdict
