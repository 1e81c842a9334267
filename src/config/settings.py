# src/config/settings.py

"""Central configuration for the shopmate search pipeline."""

import os
from dataclasses import dataclass
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Static constants shared by scrapers, filters, and ranking."""

    # --- Scraping ---
    REQUEST_DELAY: float = 0.5          # Seconds between requests
    REQUEST_TIMEOUT: int = 5            # Seconds before a request times out
    MAX_RETRIES: int = 2                # Retry count on transient failures

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 300.0
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "robot check",
        "verify you are human",
        "unusual traffic",
    ]

    # --- Query classification ---
    HIGH_VALUE_KEYWORDS: list[str] = [
        "phone", "iphone", "samsung", "oneplus", "pixel", "smartphone",
        "laptop", "macbook", "notebook", "computer", "pc",
        "tablet", "ipad",
        "tv", "television", "smart tv",
        "camera", "dslr", "mirrorless",
        "watch", "smartwatch", "apple watch",
        "console", "playstation", "xbox", "ps5",
        "refrigerator", "fridge", "washing machine", "ac",
        "air conditioner",
    ]
    ACCESSORY_KEYWORDS: list[str] = [
        "case", "cover", "protector", "charger", "cable", "stand",
    ]
    # Hint sent to the relevance model; slightly broader than the filter
    SCORER_ACCESSORY_HINTS: list[str] = [
        "case", "cable", "protector", "charger", "adapter", "cover", "stand",
    ]

    # --- Candidate sampling ---
    FALLBACK_SAMPLE_SIZE: int = 20
    HIGH_VALUE_SAMPLE_CAP: int = 20
    DEFAULT_SAMPLE_SIZE: int = 30
    # (start quantile, slice length) per price segment
    PRICE_SEGMENTS: list[tuple[float, int]] = [
        (0.0, 8),
        (0.25, 5),
        (0.5, 4),
        (0.75, 3),
    ]

    # --- Dedup / link stats ---
    DEDUP_TITLE_PREFIX: int = 50
    REDIRECT_DOMAIN: str = "google.com"

    # --- Scoring ---
    WEIGHT_RELEVANCE: float = 5.0
    WEIGHT_PRICE: float = 2.0
    WEIGHT_IRRELEVANCE: float = 8.0
    NEUTRAL_R_SCORE: float = 0.5
    HIGH_PRICE_THRESHOLD: int = 10000
    HIGH_PRICE_REFERENCE_FACTOR: float = 1.15
    LOW_PRICE_REFERENCE_FACTOR: float = 2.0

    # --- Gemini ---
    RANKING_MODEL: str = "gemini-2.5-flash-lite"
    ADVISOR_MODEL: str = "gemini-2.0-flash"
    SUMMARY_TOP_N: int = 5

    # --- SerpAPI ---
    SERPAPI_URL: str = "https://serpapi.com/search.json"
    SERPAPI_COUNTRY: str = "in"
    SERPAPI_LANGUAGE: str = "en"

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/webp,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "src" / "config" / "selectors.json"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Sources ---
    # Direct-store scrapers, fanned out concurrently in declaration order
    DIRECT_SOURCES: list[dict[str, str]] = [
        {
            "id": "amazon",
            "label": "Amazon",
            "scraper": "src.scrapers.amazon_scraper.AmazonScraper",
        },
        {
            "id": "flipkart",
            "label": "Flipkart",
            "scraper": "src.scrapers.flipkart_scraper.FlipkartScraper",
        },
    ]
    # Broad-market search, run after the direct set completes
    MARKET_SOURCE: dict[str, str] = {
        "id": "serpapi",
        "label": "SerpAPI (Other Stores)",
        "scraper": "src.scrapers.serpapi_scraper.SerpApiScraper",
    }


_PLACEHOLDER_KEYS = frozenset({
    "your_serpapi_key_here",
    "your_gemini_api_key_here",
})


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_ms(name: str, default_ms: int) -> float:
    """Read a millisecond env var and return seconds."""
    raw = os.getenv(name, "")
    try:
        value = int(raw)
    except ValueError:
        value = default_ms
    if value <= 0:
        value = default_ms
    return value / 1000


def _env_int(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, ""))
    except ValueError:
        return default
    return value if value > 0 else default


def _env_key(name: str) -> str:
    value = os.getenv(name, "").strip()
    if value in _PLACEHOLDER_KEYS:
        return ""
    return value


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable per-process configuration handed to pipeline components.

    Components never read the environment themselves; the entry point
    builds one of these with :meth:`from_env` and passes it down.
    """

    use_direct_scrapers: bool = True
    use_serpapi: bool = True
    scraper_timeout: float = 6.0
    model_timeout: float = 20.0
    serpapi_key: str = ""
    gemini_api_key: str = ""
    max_products_per_store: int = 15
    batch_size: int = 25
    batch_pacing: float = 0.5
    max_retries: int = 3
    initial_backoff: float = 2.0

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a config from process environment variables."""
        return cls(
            use_direct_scrapers=_env_flag("USE_DIRECT_SCRAPERS", True),
            use_serpapi=_env_flag("USE_SERPAPI", True),
            scraper_timeout=_env_ms("SCRAPER_TIMEOUT_MS", 6000),
            model_timeout=_env_ms("MODEL_TIMEOUT_MS", 20000),
            serpapi_key=_env_key("SERPAPI_KEY"),
            gemini_api_key=_env_key("GEMINI_API_KEY"),
            max_products_per_store=_env_int("MAX_PRODUCTS_PER_STORE", 15),
            batch_size=_env_int("RANK_BATCH_SIZE", 25),
        )

    @property
    def serpapi_configured(self) -> bool:
        return bool(self.serpapi_key)

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)

    def warnings(self) -> list[str]:
        """Return human-readable configuration problems (may be empty)."""
        problems: list[str] = []
        if not self.use_serpapi and not self.use_direct_scrapers:
            problems.append(
                "No data sources enabled (USE_SERPAPI, USE_DIRECT_SCRAPERS)"
            )
        if self.use_serpapi and not self.serpapi_configured:
            problems.append("SERPAPI_KEY not configured")
        if not self.gemini_configured:
            problems.append(
                "GEMINI_API_KEY not configured - AI ranking disabled"
            )
        return problems
