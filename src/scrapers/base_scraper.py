# src/scrapers/base_scraper.py

"""Abstract base class for direct-store scrapers."""

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from bs4 import BeautifulSoup, Tag
from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.models.product import RawProduct

_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")
_DECIMAL_RE = re.compile(r"\d+(?:\.\d+)?")


class BaseScraper(ABC):
    """Abstract base class for direct-store scrapers.

    Subclasses implement :meth:`search`, which must catch its own errors
    and return an empty list on failure. The source coordinator runs
    ``search`` in a worker thread under a deadline.
    """

    def __init__(self, source_name: str, label: str) -> None:
        self.source_name = source_name
        self.label = label
        self.logger = logging.getLogger(
            f"shopmate.{source_name}"
        )
        self.settings = Settings()
        self.selectors: dict[str, list[str]] = self._load_selectors()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._current_delay: float = (
            self.settings.REQUEST_DELAY
        )
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0
        self._request_timeout: int = (
            self.settings.REQUEST_TIMEOUT
        )

    def _load_selectors(self) -> dict[str, list[str]]:
        """Load CSS selectors for this source from selectors.json."""
        with open(self.settings.SELECTORS_PATH, encoding="utf-8") as f:
            all_selectors: dict[str, Any] = json.load(f)
        result: dict[str, list[str]] = all_selectors.get(
            self.source_name, {}
        )
        return result

    # Cloudflare challenge page markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "cf-turnstile",
    ]

    def _validate_response(
        self, resp: curl_requests.Response,
    ) -> bool:
        """Reject bot-check, CAPTCHA, and challenge pages."""
        lower = resp.text.lower()

        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "[%s] Challenge page detected (marker: '%s')",
                    self.source_name,
                    marker,
                )
                return False

        # Real result pages are large; only scan short pages so product
        # titles mentioning "captcha" do not trip the check
        if len(lower) < 5000:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    self.logger.warning(
                        "[%s] Bot detection triggered ('%s')",
                        self.source_name,
                        keyword,
                    )
                    return False
        return True

    def _check_circuit(self) -> bool:
        """Return True if the circuit breaker blocks this request.

        After CIRCUIT_BREAKER_COOLDOWN seconds the breaker enters
        a half-open state, allowing a single probe request through.
        """
        if not self._circuit_open:
            return False
        elapsed = time.time() - self._circuit_opened_at
        if elapsed >= self.settings.CIRCUIT_BREAKER_COOLDOWN:
            self.logger.info(
                "[%s] Circuit breaker half-open after %.0fs",
                self.source_name,
                elapsed,
            )
            self._circuit_open = False
            return False
        return True

    def _record_success(self) -> None:
        """Reset failure counters after a successful fetch."""
        self._consecutive_failures = 0
        self._circuit_open = False
        self._circuit_opened_at = 0.0
        self._current_delay = self.settings.REQUEST_DELAY

    def _record_failure(self) -> None:
        """Track failure and open circuit breaker if needed."""
        self._consecutive_failures += 1
        if (
            self._consecutive_failures
            >= self.settings.CIRCUIT_BREAKER_THRESHOLD
        ):
            self._circuit_open = True
            self._circuit_opened_at = time.time()
            self.logger.error(
                "[%s] Circuit breaker opened after %d "
                "consecutive failures",
                self.source_name,
                self._consecutive_failures,
            )

    def _escalate_delay(self) -> None:
        """Double the current delay up to the configured max."""
        max_delay = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._current_delay = min(
            self._current_delay * 2, max_delay
        )
        self.logger.warning(
            "[%s] Rate-limited, delay escalated to %.1fs",
            self.source_name,
            self._current_delay,
        )

    def _fetch_get(
        self,
        url: str,
        headers: dict[str, str],
    ) -> curl_requests.Response | None:
        """GET with retries, adaptive delay, and circuit breaker."""
        if self._check_circuit():
            return None
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    headers=headers,
                    timeout=self._request_timeout,
                )
                if resp.status_code == 200:
                    if not self._validate_response(resp):
                        self._escalate_delay()
                        time.sleep(self._current_delay)
                        continue
                    self._record_success()
                    return resp
                self.logger.warning(
                    "[%s] HTTP %d on attempt %d",
                    self.source_name,
                    resp.status_code,
                    attempt + 1,
                )
                if resp.status_code in (429, 403, 503):
                    self._escalate_delay()
                    time.sleep(self._current_delay)
            except Exception as exc:
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.source_name,
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
                time.sleep(
                    self._current_delay * (attempt + 1)
                )
        self._record_failure()
        return None

    def _get_page(self, url: str) -> BeautifulSoup | None:
        """Fetch a page, falling back to cloudscraper on failure."""
        if self._check_circuit():
            return None
        headers: dict[str, str] = {
            **self.settings.DEFAULT_HEADERS,
            "Referer": self._get_homepage(),
        }
        time.sleep(self._current_delay)

        resp = self._fetch_get(url, headers)
        if resp:
            return BeautifulSoup(resp.text, "lxml")

        self.logger.info(
            "[%s] curl_cffi exhausted, falling back to cloudscraper",
            self.source_name,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            fallback_resp: Any = scraper.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
            if fallback_resp.status_code == 200:
                return BeautifulSoup(
                    str(fallback_resp.text), "lxml"
                )
        except Exception as e:
            self.logger.error(
                "[%s] cloudscraper fallback also failed: %s",
                self.source_name,
                e,
                exc_info=True,
            )

        return None

    # ── Parsing helpers ──────────────────────────────────

    def _select_cards(self, soup: BeautifulSoup) -> list[Tag]:
        """Return cards for the first card selector that matches."""
        for selector in self.selectors.get("product_card", []):
            cards = soup.select(selector)
            if cards:
                self.logger.debug(
                    "[%s] Found %d cards using selector: %s",
                    self.source_name,
                    len(cards),
                    selector,
                )
                return cards
        return []

    def _first_text(self, card: Tag, field_name: str) -> str:
        """Text of the first non-empty match among a field's selectors."""
        for selector in self.selectors.get(field_name, []):
            el = card.select_one(selector)
            if el is None:
                continue
            text = el.get_text(strip=True)
            if text:
                return text
        return ""

    def _first_attr(
        self, card: Tag, field_name: str, *attrs: str,
    ) -> str:
        """First non-empty attribute value among a field's selectors."""
        for selector in self.selectors.get(field_name, []):
            el = card.select_one(selector)
            if el is None:
                continue
            for attr in attrs:
                value = el.get(attr)
                if value:
                    return str(value)
        return ""

    @staticmethod
    def extract_price(text: str | None) -> int:
        """Extract a whole-rupee price from text like '₹1,29,999.00'."""
        if not text:
            return 0
        match = _NUMBER_RE.search(text)
        if not match:
            return 0
        return int(float(match.group().replace(",", "")))

    @staticmethod
    def extract_rating(text: str | None) -> float:
        """Extract '4.3' from text like '4.3 out of 5 stars'."""
        if not text:
            return 0.0
        match = _DECIMAL_RE.search(text)
        return float(match.group()) if match else 0.0

    @staticmethod
    def extract_count(text: str | None) -> int:
        """Keep only the digits, e.g. '(12,345)' -> 12345."""
        if not text:
            return 0
        digits = re.sub(r"[^0-9]", "", text)
        return int(digits) if digits else 0

    @abstractmethod
    def _get_homepage(self) -> str:
        """Return the homepage URL for the Referer header."""
        ...

    @abstractmethod
    def search(self, query: str) -> list[RawProduct]:
        """Search for products and return RawProduct listings."""
        ...
