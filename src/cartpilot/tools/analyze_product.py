"""Detailed product lookup by SKU or UPC."""

from typing import (
    Any,
    Dict,
    List,
    Mapping,
)

from cartpilot.catalog.client import CatalogClient
from cartpilot.catalog.models import Product
from cartpilot.tools import Tool


def _availability(flag: bool | None) -> str:
    return "Available" if flag else "Not available"


def format_product_details(product: Product) -> str:
    lines: List[str] = [f"# {product.name}", "", "## Identifiers", f"- **SKU**: {product.sku}"]
    if product.upc:
        lines.append(f"- **UPC**: {product.upc}")
    if product.model_number:
        lines.append(f"- **Model**: {product.model_number}")
    if product.manufacturer:
        lines.append(f"- **Brand**: {product.manufacturer}")

    lines += ["", "## Pricing"]
    if product.on_sale and product.sale_price is not None:
        lines.append(f"- **Current Price**: ${product.sale_price:.2f} (ON SALE!)")
        if product.regular_price is not None:
            lines.append(f"- **Regular Price**: ${product.regular_price:.2f}")
        if product.dollar_savings is not None:
            lines.append(
                f"- **You Save**: ${product.dollar_savings:.2f} "
                f"({product.percent_savings or 0:.0f}% off)"
            )
    elif product.effective_price is not None:
        lines.append(f"- **Price**: ${product.effective_price:.2f}")
    else:
        lines.append("- **Price**: N/A")

    lines += ["", "## Availability", f"- **Online**: {_availability(product.online_availability)}"]
    if product.online_availability_text:
        lines.append(f"  - {product.online_availability_text}")
    lines.append(f"- **In-Store**: {_availability(product.in_store_availability)}")
    if product.in_store_availability_text:
        lines.append(f"  - {product.in_store_availability_text}")
    if product.free_shipping:
        lines.append("- **Shipping**: FREE shipping")
    elif product.shipping_cost is not None:
        lines.append(f"- **Shipping**: ${product.shipping_cost:.2f}")

    if product.customer_review_average is not None:
        lines += [
            "",
            "## Customer Reviews",
            f"- **Rating**: {product.customer_review_average:.1f}/5",
            f"- **Total Reviews**: {product.customer_review_count or 0}",
        ]

    if product.short_description:
        lines += ["", "## Description", product.short_description]

    if product.features:
        lines += ["", "## Key Features"]
        lines += [f"- {feature}" for feature in product.features]

    if product.url:
        lines += ["", f"Product page: {product.url}"]

    lines += ["", f"To show this product to the user, use: [Product({product.sku})]"]
    return "\n".join(lines)


class AnalyzeProductTool(Tool):
    """Fetch the full record of one product."""

    def __init__(self, catalog: CatalogClient) -> None:
        self._catalog = catalog

    @property
    def name(self) -> str:
        return "analyze_product"

    @property
    def display_name(self) -> str:
        return "Analyzing Product..."

    @property
    def description(self) -> str:
        return (
            "Get comprehensive details about a specific product.\n"
            "Use this when you need full product information including specs, features, reviews, "
            "and availability.\n"
            "Provide either a SKU (numeric ID) or UPC (barcode number)."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "sku": {"type": "integer", "description": "The Best Buy SKU number."},
                "upc": {"type": "string", "description": "The UPC barcode, usually 12-13 digits."},
            },
            "required": [],
        }

    async def execute(self, arguments: Mapping[str, Any]) -> str:
        sku = arguments.get("sku")
        upc = arguments.get("upc")
        if sku is None and not upc:
            return "Error: Please provide either a SKU or UPC to look up the product."

        if sku is not None:
            product = await self._catalog.get_by_sku(int(sku))
        else:
            product = await self._catalog.get_by_upc(str(upc))

        if product is None:
            return (
                f"Product not found. Please verify the {'SKU' if sku is not None else 'UPC'} "
                "and try again."
            )
        return format_product_details(product)
