"""In-memory shopping cart used by the cart tools."""

import logging
import re
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from cartpilot.catalog.models import Product

logger = logging.getLogger(__name__)


class CartItem(BaseModel):
    """A product saved in the cart."""

    sku: int
    name: str
    upc: Optional[str] = None
    price: Optional[float] = None
    manufacturer: Optional[str] = None
    thumbnail_image: Optional[str] = None
    added_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_product(cls, product: Product) -> "CartItem":
        return cls(
            sku=product.sku,
            name=product.name,
            upc=product.upc,
            price=product.effective_price,
            manufacturer=product.manufacturer,
            thumbnail_image=product.thumbnail_image,
        )


def _match_score(item: CartItem, query: str) -> int:
    name = item.name.lower()
    manufacturer = (item.manufacturer or "").lower()

    score = 0
    if query in name:
        score += 100
    if manufacturer and query in manufacturer:
        score += 50
    for word in re.split(r"\s+", query):
        if len(word) < 2:
            continue
        if word in name:
            score += 10
        if manufacturer and word in manufacturer:
            score += 5

    if score == 0:
        # Letters of the query appearing in order in the name
        position = 0
        for char in name:
            if position < len(query) and char == query[position]:
                position += 1
        if position == len(query):
            score = position
    return score


class CartStore:
    """
    Insertion-ordered cart keyed by SKU.

    Persistence is someone else's job; this store only keeps items for the life of the process.
    """

    def __init__(self) -> None:
        self._items: Dict[int, CartItem] = {}

    @property
    def items(self) -> List[CartItem]:
        return list(self._items.values())

    @property
    def item_count(self) -> int:
        return len(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def contains(self, sku: int) -> bool:
        return sku in self._items

    def get(self, sku: int) -> Optional[CartItem]:
        return self._items.get(sku)

    def add(self, product: Product) -> bool:
        """Add *product*; returns False if its SKU is already in the cart."""
        if product.sku in self._items:
            return False
        self._items[product.sku] = CartItem.from_product(product)
        logger.info("Added SKU %s to cart", product.sku)
        return True

    def remove(self, sku: int) -> Optional[CartItem]:
        """Remove and return the item for *sku*, or None if it was not in the cart."""
        item = self._items.pop(sku, None)
        if item is not None:
            logger.info("Removed SKU %s from cart", sku)
        return item

    def clear(self) -> int:
        """Empty the cart and return how many items were removed."""
        count = len(self._items)
        self._items.clear()
        return count

    def search(self, query: str) -> List[CartItem]:
        """Fuzzy name search, best match first."""
        query = query.strip().lower()
        if not query:
            return self.items
        scored = [(_match_score(item, query), item) for item in self._items.values()]
        scored = [entry for entry in scored if entry[0] > 0]
        scored.sort(key=lambda entry: entry[0], reverse=True)
        return [item for _, item in scored]

    def total(self, items: List[CartItem] | None = None) -> float:
        return sum(item.price or 0.0 for item in (self.items if items is None else items))
