# src/models/product.py

"""Product data models for inter-stage data flow."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class RawProduct:
    """A single listing returned by one source."""

    id: str
    title: str
    store: str
    price: int
    link: str
    original_price: int = 0
    discount: int = 0
    rating: float = 0.0
    reviews: int = 0
    image: str = ""
    stock: bool = True

    @property
    def key(self) -> str:
        """Identity used when re-merging scored and unscored lists."""
        return self.id or self.link

    def is_valid(self) -> bool:
        """True when the listing has a positive price, title, and link."""
        return self.price > 0 and bool(self.title.strip()) and bool(self.link)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScoredProduct(RawProduct):
    """A listing annotated with relevance-model and price scores."""

    r_score: float = 0.5
    p_score: float = 0.0
    irrelevance_penalty: float = 0.0
    crs: float = 0.0


def derive_discount(price: int, original_price: int) -> int:
    """Percentage off ``original_price``; 0 when it is unknown or lower."""
    if original_price <= 0 or original_price <= price:
        return 0
    return round((original_price - price) / original_price * 100)
