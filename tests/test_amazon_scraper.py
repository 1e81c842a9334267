# tests/test_amazon_scraper.py

"""Tests for the Amazon scraper using mocked HTTP responses."""

import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from src.models.product import RawProduct
from src.scrapers.amazon_scraper import AmazonScraper

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _fixture_response(name: str) -> MagicMock:
    """Build a 200 response whose body is the named fixture."""
    mock_resp = MagicMock()
    mock_resp.status_code = 200
    with open(FIXTURES_DIR / name, encoding="utf-8") as f:
        mock_resp.text = f.read()
    return mock_resp


@patch("src.scrapers.base_scraper.curl_requests.Session")
class TestAmazonScraper(unittest.TestCase):
    """Tests for the Amazon scraper using mocked HTTP responses."""

    def _search(self, mock_session_cls: MagicMock) -> list[RawProduct]:
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        mock_session.get.return_value = _fixture_response(
            "amazon_search.html"
        )
        scraper = AmazonScraper()
        scraper.session = mock_session
        return scraper.search("laptop")

    def test_search_returns_priced_products(
        self, mock_session_cls: MagicMock
    ) -> None:
        """Cards without an ASIN or a price are skipped."""
        products = self._search(mock_session_cls)

        self.assertEqual(len(products), 3)
        self.assertTrue(all(p.store == "Amazon" for p in products))
        self.assertTrue(all(p.price > 0 for p in products))

    def test_product_fields_parsed(
        self, mock_session_cls: MagicMock
    ) -> None:
        """Title, price, rating, reviews, and image come from the card."""
        first = self._search(mock_session_cls)[0]

        self.assertEqual(first.id, "amazon_B0CX23V2ZK")
        self.assertEqual(
            first.title,
            "Lenovo IdeaPad Slim 3 Intel Core i5 16GB 512GB SSD Laptop",
        )
        self.assertEqual(first.price, 52990)
        self.assertEqual(first.rating, 4.2)
        self.assertEqual(first.reviews, 1284)
        self.assertEqual(
            first.image, "https://m.media-amazon.com/images/I/lenovo.jpg"
        )

    def test_discount_derived_from_list_price(
        self, mock_session_cls: MagicMock
    ) -> None:
        """The struck-through price yields a rounded discount."""
        first = self._search(mock_session_cls)[0]

        self.assertEqual(first.original_price, 78890)
        self.assertEqual(first.discount, 33)

    def test_no_list_price_means_no_discount(
        self, mock_session_cls: MagicMock
    ) -> None:
        """Without an original price the discount stays zero."""
        second = self._search(mock_session_cls)[1]

        self.assertEqual(second.original_price, 0)
        self.assertEqual(second.discount, 0)

    def test_links_are_absolute(
        self, mock_session_cls: MagicMock
    ) -> None:
        """Relative hrefs are prefixed; missing links use /dp/<asin>."""
        products = self._search(mock_session_cls)

        self.assertEqual(
            products[0].link,
            "https://www.amazon.in/Lenovo-IdeaPad-Slim-3/dp/B0CX23V2ZK",
        )
        self.assertEqual(
            products[1].link,
            "https://www.amazon.in/HP-15-Laptop/dp/B0D5QJ8N1M",
        )
        self.assertEqual(
            products[2].link, "https://www.amazon.in/dp/B0BSHF7WHW"
        )

    def test_query_is_url_encoded(
        self, mock_session_cls: MagicMock
    ) -> None:
        """The search URL carries the quoted query."""
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        mock_session.get.return_value = _fixture_response(
            "amazon_search.html"
        )
        scraper = AmazonScraper()
        scraper.session = mock_session

        scraper.search("gaming laptop")

        url = mock_session.get.call_args.args[0]
        self.assertEqual(url, "https://www.amazon.in/s?k=gaming+laptop")

    def test_blocked_page_returns_empty(
        self, mock_session_cls: MagicMock
    ) -> None:
        """A robot-check page on every attempt gives no products."""
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        blocked = MagicMock()
        blocked.status_code = 200
        blocked.text = "<html>Robot Check</html>"
        mock_session.get.return_value = blocked

        scraper = AmazonScraper()
        scraper.session = mock_session
        with patch(
            "src.scrapers.base_scraper.cloudscraper.create_scraper",
            side_effect=RuntimeError("blocked"),
        ):
            products = scraper.search("laptop")

        self.assertEqual(products, [])

    def test_unexpected_error_returns_empty(
        self, mock_session_cls: MagicMock
    ) -> None:
        """search() swallows parse errors and returns an empty list."""
        mock_session_cls.return_value = MagicMock()
        scraper = AmazonScraper()
        with patch.object(
            scraper, "_get_page", side_effect=ValueError("bad html")
        ):
            self.assertEqual(scraper.search("laptop"), [])


if __name__ == "__main__":
    unittest.main()
