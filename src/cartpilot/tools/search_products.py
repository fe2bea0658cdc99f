"""Catalog search tool."""

from typing import (
    Any,
    Dict,
    List,
    Mapping,
)

from pydantic import ValidationError

from cartpilot.catalog.client import CatalogClient
from cartpilot.catalog.models import (
    Product,
    SearchCriteria,
)
from cartpilot.tools import Tool


def _format_price(product: Product) -> str:
    if product.on_sale and product.regular_price is not None and product.sale_price is not None:
        savings = f", save {product.percent_savings:.0f}%" if product.percent_savings else ""
        return f"${product.sale_price:.2f} (was ${product.regular_price:.2f}{savings})"
    if product.effective_price is None:
        return "N/A"
    return f"${product.effective_price:.2f}"


def format_product_line(product: Product) -> List[str]:
    lines = ["---", f"**{product.name}**", f"- SKU: {product.sku}"]
    if product.manufacturer:
        lines.append(f"- Brand: {product.manufacturer}")
    lines.append(f"- Price: {_format_price(product)}")

    available = []
    if product.online_availability:
        available.append("Online")
    if product.in_store_availability:
        available.append("In-Store")
    if available:
        lines.append(f"- Available: {', '.join(available)}")

    if product.customer_review_average is not None:
        lines.append(
            f"- Rating: {product.customer_review_average:.1f}/5 "
            f"({product.customer_review_count or 0} reviews)"
        )
    lines.append("")
    return lines


class SearchProductsTool(Tool):
    """Search the catalog by keyword and filters."""

    def __init__(self, catalog: CatalogClient) -> None:
        self._catalog = catalog

    @property
    def name(self) -> str:
        return "search_products"

    @property
    def display_name(self) -> str:
        return "Searching Products..."

    @property
    def description(self) -> str:
        return (
            "Search for products in the Best Buy catalog.\n"
            "Returns matching products with basic info (SKU, name, price, availability).\n"
            "Use this to find products by keyword, category, price range, or other criteria.\n"
            "After finding products, you can show them to the user using [Product(SKU)] syntax."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": 'Search keywords (e.g., "iPhone 15", "4K TV", "gaming laptop").',
                },
                "category_id": {
                    "type": "string",
                    "description": 'Best Buy category ID (e.g., "abcat0502000" for laptops).',
                },
                "manufacturer": {
                    "type": "string",
                    "description": 'Filter by brand (e.g., "Apple", "Samsung", "Sony").',
                },
                "min_price": {"type": "number", "minimum": 0, "description": "Minimum price."},
                "max_price": {"type": "number", "minimum": 0, "description": "Maximum price."},
                "on_sale": {"type": "boolean", "description": "Only products on sale."},
                "in_stock": {"type": "boolean", "description": "Only products available online."},
                "free_shipping": {"type": "boolean", "description": "Only free-shipping products."},
                "min_rating": {
                    "type": "number",
                    "minimum": 1,
                    "maximum": 5,
                    "description": "Minimum customer review rating.",
                },
                "sort_by": {
                    "type": "string",
                    "enum": ["best_selling", "price_low", "price_high", "rating", "newest", "name"],
                    "description": 'How to sort results. Default is "best_selling".',
                },
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 20,
                    "description": "Maximum number of results to return. Default is 5.",
                },
            },
            "required": [],
        }

    async def execute(self, arguments: Mapping[str, Any]) -> str:
        try:
            criteria = SearchCriteria.model_validate(
                {key: value for key, value in arguments.items() if value is not None}
            )
        except ValidationError as exc:
            return f"Error: invalid search arguments: {exc.errors()[0]['msg']}"

        results = await self._catalog.search(criteria)
        if not results.products:
            return "No products found matching your criteria."

        lines = [f"Found {results.total} products (showing {len(results.products)}):", ""]
        for product in results.products:
            lines += format_product_line(product)
        lines += ["---", "To show a product to the user, use: [Product(SKU)]"]
        return "\n".join(lines)
