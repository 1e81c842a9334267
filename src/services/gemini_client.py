# src/services/gemini_client.py

"""Thin wrapper over the ``google-genai`` client for one Gemini model.

The client is synchronous like the scrapers; async callers run it on a
worker thread and apply their own deadline.
"""

import logging

from google import genai
from google.genai import errors, types

from src.services.errors import ModelRequestError, RateLimited

logger = logging.getLogger("shopmate.gemini")

BLOCKED_FINISH_REASONS = frozenset({
    types.FinishReason.SAFETY,
    types.FinishReason.RECITATION,
    types.FinishReason.MAX_TOKENS,
})


class GeminiClient:
    """Send prompts to one Gemini model and return the typed response."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 20.0,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    def generate(
        self,
        prompt: str,
        config: types.GenerateContentConfig,
    ) -> types.GenerateContentResponse:
        """Send one request.

        Raises:
            RateLimited: the API answered 429 (RESOURCE_EXHAUSTED).
            ModelRequestError: on any other failure.
        """
        logger.debug("%s request, %d prompt chars", self.model, len(prompt))
        try:
            return self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except errors.APIError as exc:
            if exc.code == 429:
                raise RateLimited(
                    f"{self.model} returned 429 Too Many Requests"
                ) from exc
            raise ModelRequestError(
                f"{self.model} returned {exc.code}: {exc.message}"
            ) from exc
        except Exception as exc:
            raise ModelRequestError(
                f"{self.model} request failed: {exc}"
            ) from exc


def first_candidate(
    response: types.GenerateContentResponse,
) -> types.Candidate:
    """Return the first response candidate or raise ModelRequestError."""
    if not response.candidates:
        raise ModelRequestError("response has no candidates")
    return response.candidates[0]


def candidate_text(candidate: types.Candidate) -> str:
    """Concatenated text parts of a candidate (may be empty)."""
    if candidate.content is None or not candidate.content.parts:
        return ""
    return "".join(
        part.text for part in candidate.content.parts if part.text
    ).strip()


def strip_code_fence(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return text.replace("```json", "").replace("```", "").strip()

