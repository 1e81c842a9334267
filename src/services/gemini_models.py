# src/services/gemini_models.py

"""Gemini-backed relevance and summary models."""

import json
import logging
from typing import Any

from google.genai import types

from src.config.settings import Settings
from src.models.product import RawProduct, ScoredProduct
from src.services.errors import (
    BatchScoreUnavailable,
    ModelRequestError,
    PipelineError,
    SummaryUnavailable,
)
from src.services.gemini_client import (
    BLOCKED_FINISH_REASONS,
    GeminiClient,
    candidate_text,
    first_candidate,
    strip_code_fence,
)

logger = logging.getLogger("shopmate.gemini")

RELEVANCE_INSTRUCTION = (
    "You are an E-commerce Relevance Engine. Score product matches to "
    "user queries.\n"
    "Score each product with:\n"
    "1. **R_Score**: 0.0-1.0 (relevance to query, higher = better match)\n"
    "2. **Irrelevance_Penalty**: 0.9 if accessory AND query is for primary "
    "product, else 0.0\n"
    "Return ONLY JSON array. No other text."
)

ADVISOR_INSTRUCTION = (
    "You are ShopMate, an AI shopping assistant. Your ONLY job is to write "
    "a compelling endorsement for whichever product is listed as \"#1\". "
    "You MUST recommend the #1 product - do NOT choose a different "
    "product. Explain why the #1 product is the best choice in 6-8 "
    "sentences. Be enthusiastic and concise."
)

_SCORE_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "id": {"type": "STRING"},
            "R_Score": {"type": "NUMBER"},
            "Irrelevance_Penalty": {"type": "NUMBER"},
        },
        "required": ["id", "R_Score", "Irrelevance_Penalty"],
    },
}

_TOKENS_PER_PRODUCT = 80
_MIN_OUTPUT_TOKENS = 2048


class GeminiRelevanceModel:
    """Score ``{id, title, is_accessory}`` items against a query."""

    def __init__(self, client: GeminiClient) -> None:
        self.client = client

    @classmethod
    def from_key(cls, api_key: str, timeout: float) -> "GeminiRelevanceModel":
        return cls(GeminiClient(api_key, Settings.RANKING_MODEL, timeout))

    def score(
        self,
        query: str,
        items: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """Return one ``{id, R_Score, Irrelevance_Penalty}`` dict per item.

        Raises:
            RateLimited: the API returned 429; the caller may retry.
            BatchScoreUnavailable: any other failure or an unparseable body.
        """
        prompt = (
            f'User Query: "{query}"\n\n'
            f"Products:\n{json.dumps(items, indent=2)}"
        )
        config = types.GenerateContentConfig(
            system_instruction=RELEVANCE_INSTRUCTION,
            response_mime_type="application/json",
            response_schema=_SCORE_SCHEMA,
            temperature=0.1,
            max_output_tokens=max(
                _MIN_OUTPUT_TOKENS, len(items) * _TOKENS_PER_PRODUCT
            ),
        )

        try:
            response = self.client.generate(prompt, config)
            text = candidate_text(first_candidate(response))
        except ModelRequestError as exc:
            raise BatchScoreUnavailable(str(exc)) from exc

        if not text:
            raise BatchScoreUnavailable("no text returned from model")

        try:
            scores = json.loads(strip_code_fence(text))
        except ValueError as exc:
            raise BatchScoreUnavailable(
                f"unparseable score payload: {text[:80]!r}"
            ) from exc

        if not isinstance(scores, list):
            raise BatchScoreUnavailable(
                f"expected a JSON array, got {type(scores).__name__}"
            )
        return [s for s in scores if isinstance(s, dict)]


def _format_price(price: int) -> str:
    return f"₹{price:,}"


def _product_line(rank: int, product: RawProduct) -> str:
    details: list[str] = []
    if product.rating > 0:
        details.append(f"rating {product.rating}")
    if product.discount > 0:
        details.append(f"{product.discount}% off")
    if product.reviews > 0:
        details.append(f"{product.reviews:,} reviews")
    if isinstance(product, ScoredProduct):
        details.append(f"score {product.crs:.2f}")
    suffix = f" ({', '.join(details)})" if details else ""
    label = "#1 BEST MATCH" if rank == 1 else f"#{rank}"
    return (
        f"{label}. {product.title}\n"
        f"   {_format_price(product.price)} - {product.store}{suffix}"
    )


def build_advisor_prompt(
    products: list[RawProduct],
    instructions: str = "",
) -> str:
    """User prompt asking the model to endorse product #1."""
    top = products[0]
    lines = [
        "Write an enthusiastic endorsement for this product "
        "(which is our #1 ranked choice):",
        "",
        "**TOP RECOMMENDATION:**",
        _product_line(1, top),
        "",
        "**Alternatives for comparison:**",
    ]
    lines.extend(
        _product_line(i, p) for i, p in enumerate(products[1:], start=2)
    )
    if instructions:
        lines.extend(["", f"Note: {instructions}"])
    lines.extend([
        "",
        f"Write your endorsement for the #1 product "
        f"({top.store} - {top.title[:50]}...):",
    ])
    return "\n".join(lines)


class GeminiSummaryModel:
    """Generate a short verdict endorsing the top-ranked product."""

    def __init__(self, client: GeminiClient) -> None:
        self.client = client

    @classmethod
    def from_key(cls, api_key: str, timeout: float) -> "GeminiSummaryModel":
        return cls(GeminiClient(api_key, Settings.ADVISOR_MODEL, timeout))

    def generate(
        self,
        top_items: list[RawProduct],
        instructions: str = "",
    ) -> str:
        """Return the verdict text.

        Raises:
            SummaryUnavailable: hard failure, blocked or truncated output,
                or empty text.
        """
        if not top_items:
            raise SummaryUnavailable("no products to summarise")

        prompt = build_advisor_prompt(top_items, instructions)
        config = types.GenerateContentConfig(
            system_instruction=ADVISOR_INSTRUCTION,
            temperature=0.7,
            max_output_tokens=512,
            top_p=0.95,
            top_k=40,
        )

        try:
            candidate = first_candidate(self.client.generate(prompt, config))
        except PipelineError as exc:
            raise SummaryUnavailable(str(exc)) from exc

        reason = candidate.finish_reason
        if reason in BLOCKED_FINISH_REASONS:
            raise SummaryUnavailable(
                f"response blocked or cut off: {reason.name}"
            )

        text = candidate_text(candidate)
        if not text:
            raise SummaryUnavailable("empty verdict")
        return text
