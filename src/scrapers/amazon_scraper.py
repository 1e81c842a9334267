# src/scrapers/amazon_scraper.py

"""Scraper for amazon.in search results."""

import urllib.parse

from bs4 import Tag

from src.models.product import RawProduct, derive_discount
from src.scrapers.base_scraper import BaseScraper

BASE_URL = "https://www.amazon.in"
MAX_ITEMS = 20


class AmazonScraper(BaseScraper):
    """Scraper for amazon.in (India)."""

    def __init__(self) -> None:
        super().__init__("amazon", "Amazon")

    def _get_homepage(self) -> str:
        """Return the Amazon.in homepage URL."""
        return f"{BASE_URL}/"

    def _parse_card(self, card: Tag) -> RawProduct | None:
        """Parse a search-result card, or None if it is not a priced product."""
        asin = str(card.get("data-asin") or "")
        if not asin:
            return None

        title = self._first_text(card, "title")
        if not title:
            return None

        price = self.extract_price(self._first_text(card, "price"))
        if price == 0:
            return None

        href = self._first_attr(card, "link", "href")
        if href:
            link = href if href.startswith("http") else f"{BASE_URL}{href}"
        else:
            link = f"{BASE_URL}/dp/{asin}"

        original_price = self.extract_price(
            self._first_text(card, "original_price")
        )

        return RawProduct(
            id=f"amazon_{asin}",
            title=title,
            store="Amazon",
            price=price,
            link=link,
            original_price=original_price,
            discount=derive_discount(price, original_price),
            rating=self.extract_rating(self._first_text(card, "rating")),
            reviews=self.extract_count(self._first_text(card, "reviews")),
            image=self._first_attr(card, "image", "src", "data-src"),
        )

    def search(self, query: str) -> list[RawProduct]:
        """Search Amazon.in for products matching the query."""
        try:
            url = f"{BASE_URL}/s?k={urllib.parse.quote_plus(query)}"
            self.logger.info("[amazon] Fetching %s", url)

            soup = self._get_page(url)
            if not soup:
                return []

            cards = self._select_cards(soup)
            if not cards:
                self.logger.warning("[amazon] No product elements found")
                return []

            products: list[RawProduct] = []
            for card in cards:
                if len(products) >= MAX_ITEMS:
                    break
                product = self._parse_card(card)
                if product is not None:
                    products.append(product)

            self.logger.info("[amazon] Scraped %d products", len(products))
            return products
        except Exception as e:
            self.logger.error(
                "[amazon] Search failed: %s", e, exc_info=True
            )
            return []
