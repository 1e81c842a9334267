# src/scrapers/serpapi_scraper.py

"""Broad-market search through SerpAPI's Google Shopping engine."""

import json
import logging
import re
from typing import Any
from urllib.parse import parse_qs, unquote, urlparse

from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.models.product import RawProduct, derive_discount

# Link substring -> display name, checked in order
_KNOWN_STORES: list[tuple[str, str]] = [
    ("amazon", "Amazon"),
    ("flipkart", "Flipkart"),
    ("myntra", "Myntra"),
    ("ebay", "eBay"),
    ("jiomart", "JioMart"),
    ("tatacliq", "Tata CLiQ"),
    ("croma", "Croma"),
    ("reliance", "Reliance Digital"),
]

_REDIRECT_MARKERS = ("google.com/url", "google.com/shopping")
_REDIRECT_PARAMS = ("url", "q", "adurl")


def _to_float(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    cleaned = re.sub(r"[^0-9.]", "", str(value or ""))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def resolve_link(item: dict[str, Any]) -> str:
    """Prefer a direct store link, unwrapping Google redirects when possible."""
    product_link = str(item.get("product_link") or "")
    if product_link:
        return product_link

    link = str(item.get("link") or "")
    if not link or not any(m in link for m in _REDIRECT_MARKERS):
        return link

    params = parse_qs(urlparse(link).query)
    for name in _REDIRECT_PARAMS:
        values = params.get(name)
        if values and values[0]:
            return unquote(values[0])
    return link


def detect_store(link: str, fallback: str) -> str:
    lowered = link.lower()
    for marker, name in _KNOWN_STORES:
        if marker in lowered:
            return name
    return fallback or "Google Shopping"


class SerpApiScraper:
    """Google Shopping results via SerpAPI, with per-item store resolution."""

    def __init__(self, api_key: str = "", max_results: int = 15) -> None:
        self.label = Settings.MARKET_SOURCE["label"]
        self.api_key = api_key
        self.max_results = max_results
        self.logger = logging.getLogger("shopmate.serpapi")
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    @staticmethod
    def _parse_item(index: int, item: dict[str, Any]) -> RawProduct:
        """Map one ``shopping_results`` entry onto a RawProduct."""
        if item.get("extracted_price"):
            price = _to_float(item["extracted_price"])
        else:
            price = _to_float(item.get("price"))

        rating = _to_float(item.get("rating"))
        review_digits = re.sub(r"[^0-9]", "", str(item.get("reviews") or ""))
        reviews = int(review_digits) if review_digits else 0
        if rating == 0 and item.get("reviews_original_text"):
            match = re.search(r"\d+\.?\d*", str(item["reviews_original_text"]))
            if match:
                rating = float(match.group())

        link = resolve_link(item)
        rounded_price = round(price)
        original = _to_float(item.get("extracted_original_price"))
        original_price = round(original) if original > price else 0

        return RawProduct(
            id=f"serp_{index}",
            title=str(item.get("title") or "Unknown Product"),
            store=detect_store(link, str(item.get("source") or "")),
            price=rounded_price,
            link=link,
            original_price=original_price,
            discount=derive_discount(rounded_price, original_price),
            rating=rating,
            reviews=reviews,
            image=str(item.get("thumbnail") or ""),
        )

    def search(self, query: str) -> list[RawProduct]:
        """Search Google Shopping; returns [] when the key is missing."""
        if not self.api_key:
            self.logger.warning("[serpapi] API key not configured")
            return []

        params = {
            "engine": "google_shopping",
            "q": query,
            "api_key": self.api_key,
            "num": str(self.max_results),
            "gl": self.settings.SERPAPI_COUNTRY,
            "hl": self.settings.SERPAPI_LANGUAGE,
        }
        resp = self.session.get(
            self.settings.SERPAPI_URL,
            params=params,
            timeout=self.settings.REQUEST_TIMEOUT,
        )
        if resp.status_code != 200:
            msg = f"SerpAPI returned {resp.status_code}"
            raise ConnectionError(msg)

        data: dict[str, Any] = json.loads(resp.text)
        if data.get("error"):
            raise ConnectionError(str(data["error"]))

        results: list[dict[str, Any]] = data.get("shopping_results", [])
        products = [
            self._parse_item(index, item)
            for index, item in enumerate(results)
        ]
        kept = [p for p in products if p.price > 0 and p.link]
        self.logger.info(
            "[serpapi] %d shopping results, %d usable",
            len(results),
            len(kept),
        )
        return kept
