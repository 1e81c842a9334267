# src/scrapers/flipkart_scraper.py

"""Scraper for flipkart.com search results."""

import urllib.parse

from bs4 import Tag

from src.models.product import RawProduct, derive_discount
from src.scrapers.base_scraper import BaseScraper

BASE_URL = "https://www.flipkart.com"
MAX_ITEMS = 40


class FlipkartScraper(BaseScraper):
    """Scraper for flipkart.com.

    Flipkart rotates its obfuscated class names, so every field is
    looked up through a list of known selectors.
    """

    def __init__(self) -> None:
        super().__init__("flipkart", "Flipkart")

    def _get_homepage(self) -> str:
        """Return the Flipkart homepage URL."""
        return f"{BASE_URL}/"

    def _parse_card(self, index: int, card: Tag) -> RawProduct | None:
        """Parse one card, or None when title, link, or price is missing."""
        title = self._first_text(card, "title") or self._first_attr(
            card, "title_attr", "title"
        )
        if not title:
            return None

        href = self._first_attr(card, "link", "href")
        if not href:
            return None
        link = href if href.startswith("http") else f"{BASE_URL}{href}"

        price = self.extract_price(self._first_text(card, "price"))
        if price == 0:
            return None

        original_price = self.extract_price(
            self._first_text(card, "original_price")
        )
        discount = self.extract_count(self._first_text(card, "discount"))
        if discount == 0:
            discount = derive_discount(price, original_price)

        product_id = str(card.get("data-id") or "") or f"{index}"
        return RawProduct(
            id=f"flipkart_{product_id}",
            title=title,
            store="Flipkart",
            price=price,
            link=link,
            original_price=original_price,
            discount=min(discount, 100),
            rating=self.extract_rating(self._first_text(card, "rating")),
            # "12,407 Ratings & 1,101 Reviews": keep the first count only
            reviews=self.extract_price(self._first_text(card, "reviews")),
            image=self._first_attr(
                card, "image", "src", "data-src", "data-image"
            ),
        )

    def search(self, query: str) -> list[RawProduct]:
        """Search Flipkart for products matching the query."""
        try:
            url = f"{BASE_URL}/search?q={urllib.parse.quote_plus(query)}"
            self.logger.info("[flipkart] Fetching %s", url)

            soup = self._get_page(url)
            if not soup:
                return []

            products: list[RawProduct] = []
            for index, card in enumerate(self._select_cards(soup)):
                if len(products) >= MAX_ITEMS:
                    break
                product = self._parse_card(index, card)
                if product is not None:
                    products.append(product)

            self.logger.info(
                "[flipkart] Scraped %d products", len(products)
            )
            return products
        except Exception as e:
            self.logger.error(
                "[flipkart] Search failed: %s", e, exc_info=True
            )
            return []
