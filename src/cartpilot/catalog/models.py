"""
Pydantic models for the product catalog.

Field names follow Python conventions; the Best Buy JSON uses camelCase, which is accepted through
aliases.  Only the attributes the agent tools actually format are modelled.
"""

from typing import (
    Any,
    List,
    Literal,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

SortOption = Literal["best_selling", "price_low", "price_high", "rating", "newest", "name"]


class Product(BaseModel):
    """A catalog product."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    sku: int
    name: str
    upc: Optional[str] = None
    manufacturer: Optional[str] = None
    model_number: Optional[str] = None
    url: Optional[str] = None
    thumbnail_image: Optional[str] = None

    regular_price: Optional[float] = None
    sale_price: Optional[float] = None
    on_sale: Optional[bool] = None
    percent_savings: Optional[float] = None
    dollar_savings: Optional[float] = None

    online_availability: Optional[bool] = None
    online_availability_text: Optional[str] = None
    in_store_availability: Optional[bool] = None
    in_store_availability_text: Optional[str] = None
    free_shipping: Optional[bool] = None
    shipping_cost: Optional[float] = None

    customer_review_average: Optional[float] = None
    customer_review_count: Optional[int] = None

    short_description: Optional[str] = None
    features: List[str] = Field(default_factory=list)

    @field_validator("features", mode="before")
    @classmethod
    def _flatten_features(cls, value: Any) -> Any:
        # The API sends [{"feature": "..."}]
        if isinstance(value, list):
            return [
                item.get("feature", "") if isinstance(item, dict) else str(item) for item in value
            ]
        return value

    @field_validator("percent_savings", "shipping_cost", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        return None if value == "" else value

    @property
    def effective_price(self) -> float | None:
        """Sale price when known, otherwise the regular price."""
        return self.sale_price if self.sale_price is not None else self.regular_price

    def to_ai_context(self) -> str:
        """Plain-text summary of the product written for the model."""
        lines = ["=== PRODUCT CONTEXT ===", f"Name: {self.name}", f"SKU: {self.sku}"]
        if self.upc:
            lines.append(f"UPC: {self.upc}")
        if self.manufacturer:
            lines.append(f"Brand: {self.manufacturer}")
        if self.model_number:
            lines.append(f"Model: {self.model_number}")

        lines += ["", "PRICING:"]
        if self.effective_price is not None:
            lines.append(f"Current Price: ${self.effective_price:.2f}")
        if self.on_sale and self.regular_price is not None:
            lines.append(f"Regular Price: ${self.regular_price:.2f}")
            if self.percent_savings is not None:
                lines.append(f"Savings: {self.percent_savings:.0f}% off")

        lines += [
            "",
            "AVAILABILITY:",
            f"Online: {'Available' if self.online_availability else 'Not available'}",
            f"In-Store: {'Available' if self.in_store_availability else 'Not available'}",
        ]
        if self.free_shipping:
            lines.append("Free Shipping: Yes")

        if self.short_description:
            lines += ["", "DESCRIPTION:", self.short_description]

        if self.features:
            lines += ["", "KEY FEATURES:"]
            lines += [f"- {feature}" for feature in self.features[:10]]

        if self.customer_review_average is not None:
            lines += [
                "",
                f"REVIEWS: {self.customer_review_average:.1f}/5 "
                f"({self.customer_review_count or 0} reviews)",
            ]
        return "\n".join(lines)


class SearchCriteria(BaseModel):
    """Filters accepted by :meth:`CatalogClient.search`."""

    query: Optional[str] = None
    category_id: Optional[str] = None
    manufacturer: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    on_sale: bool = False
    in_stock: bool = False
    free_shipping: bool = False
    min_rating: Optional[float] = None
    sort_by: SortOption = "best_selling"
    limit: int = 5

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, value: Any) -> int:
        try:
            limit = int(value)
        except (TypeError, ValueError):
            return 5
        return max(1, min(20, limit))


class SearchResults(BaseModel):
    """A page of products plus the total number of matches."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int = 0
    products: List[Product] = Field(default_factory=list)
