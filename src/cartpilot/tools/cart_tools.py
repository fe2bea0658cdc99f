"""Tools that read and change the shopping cart."""

from typing import (
    Any,
    Dict,
    Mapping,
)

from cartpilot.cart.store import CartStore
from cartpilot.catalog.client import CatalogClient
from cartpilot.tools import Tool


def _sku_schema() -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "sku": {"type": "integer", "description": "The Best Buy SKU of the product."},
        },
        "required": ["sku"],
    }


def _plural(count: int, noun: str = "item") -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _read_sku(arguments: Mapping[str, Any]) -> int | None:
    try:
        return int(arguments["sku"])
    except (KeyError, TypeError, ValueError):
        return None


class AddToCartTool(Tool):
    """Look a product up and save it in the cart."""

    def __init__(self, cart: CartStore, catalog: CatalogClient) -> None:
        self._cart = cart
        self._catalog = catalog

    @property
    def name(self) -> str:
        return "add_to_cart"

    @property
    def display_name(self) -> str:
        return "Adding to Cart..."

    @property
    def description(self) -> str:
        return (
            "Add a product to the user's shopping cart. Requires the product SKU.\n"
            "Use this when the user wants to save a product for later or add it to their list."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return _sku_schema()

    async def execute(self, arguments: Mapping[str, Any]) -> str:
        sku = _read_sku(arguments)
        if sku is None:
            return "Error: SKU is required to add a product to cart."

        existing = self._cart.get(sku)
        if existing is not None:
            return f'Product "{existing.name}" is already in your cart.'

        product = await self._catalog.get_by_sku(sku)
        if product is None:
            return f"Error: Could not find product with SKU {sku}."

        self._cart.add(product)
        price = f"${product.effective_price:.2f}" if product.effective_price is not None else "N/A"
        return (
            "Successfully added to cart:\n"
            f"- **{product.name}**\n"
            f"- SKU: {product.sku}\n"
            f"- Price: {price}\n\n"
            f"Cart now has {_plural(self._cart.item_count)}."
        )


class RemoveFromCartTool(Tool):
    def __init__(self, cart: CartStore) -> None:
        self._cart = cart

    @property
    def name(self) -> str:
        return "remove_from_cart"

    @property
    def display_name(self) -> str:
        return "Removing from Cart..."

    @property
    def description(self) -> str:
        return (
            "Remove a product from the user's shopping cart. Requires the product SKU.\n"
            "Use this when the user no longer wants a product in their cart."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return _sku_schema()

    async def execute(self, arguments: Mapping[str, Any]) -> str:
        sku = _read_sku(arguments)
        if sku is None:
            return "Error: SKU is required to remove a product from cart."

        item = self._cart.remove(sku)
        if item is None:
            return f"Product with SKU {sku} is not in your cart."
        return (
            f'Removed "{item.name}" from your cart.\n\n'
            f"Cart now has {_plural(self._cart.item_count)}."
        )


class ClearCartTool(Tool):
    def __init__(self, cart: CartStore) -> None:
        self._cart = cart

    @property
    def name(self) -> str:
        return "clear_cart"

    @property
    def display_name(self) -> str:
        return "Clearing Cart..."

    @property
    def description(self) -> str:
        return (
            "Clear all products from the user's shopping cart.\n"
            "Use this when the user wants to start fresh. This action cannot be undone."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return {"type": "object", "properties": {}, "required": []}

    async def execute(self, arguments: Mapping[str, Any]) -> str:
        if self._cart.is_empty:
            return "Your cart is already empty."
        removed = self._cart.clear()
        return f"Cleared {_plural(removed)} from your cart. Your cart is now empty."


class ViewCartTool(Tool):
    """List cart contents, optionally filtered by a fuzzy name search."""

    def __init__(self, cart: CartStore) -> None:
        self._cart = cart

    @property
    def name(self) -> str:
        return "view_cart"

    @property
    def display_name(self) -> str:
        return "Checking Cart..."

    @property
    def description(self) -> str:
        return (
            "View the contents of the user's shopping cart.\n"
            "Can optionally search for specific items using a fuzzy name search.\n"
            "Returns the list of products with their SKUs, names, and prices."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "search": {
                    "type": "string",
                    "description": "Optional fuzzy search query over product names in the cart.",
                },
            },
            "required": [],
        }

    async def execute(self, arguments: Mapping[str, Any]) -> str:
        if self._cart.is_empty:
            return "Your cart is empty. Use add_to_cart to add products."

        query = (arguments.get("search") or "").strip()
        if query:
            items = self._cart.search(query)
            if not items:
                return (
                    f'No items in your cart match "{query}". '
                    f"You have {_plural(self._cart.item_count)} total."
                )
            header = f'Found {_plural(len(items), "matching item")} for "{query}":'
        else:
            items = self._cart.items
            header = f"Your cart has {_plural(len(items))}:"

        lines = [header, ""]
        for item in items:
            lines += ["---", f"**{item.name}**", f"- SKU: {item.sku}"]
            if item.manufacturer:
                lines.append(f"- Brand: {item.manufacturer}")
            if item.price is not None:
                lines.append(f"- Price: ${item.price:.2f}")
            if item.upc:
                lines.append(f"- UPC: {item.upc}")
            lines.append("")

        lines.append("---")
        total = self._cart.total(items)
        if total > 0:
            lines.append(f"**Estimated Total: ${total:.2f}**")
        lines += ["", "To show a product, use: [Product(SKU)]"]
        return "\n".join(lines)
