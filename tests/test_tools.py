"""Tests for the shopping tools and the cart store."""

import asyncio
from datetime import (
    datetime,
    timezone,
)

from conftest import FakeCatalog

from cartpilot.agent.rendezvous import ScanRequestService
from cartpilot.cart.store import CartStore
from cartpilot.tools.analyze_product import AnalyzeProductTool
from cartpilot.tools.cart_tools import (
    AddToCartTool,
    ClearCartTool,
    RemoveFromCartTool,
    ViewCartTool,
)
from cartpilot.tools.defaults import create_default_registry
from cartpilot.tools.get_time import GetTimeTool
from cartpilot.tools.search_products import SearchProductsTool


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Default registry
# ---------------------------------------------------------------------------
def test_default_registry_holds_all_tools(catalog, cart, scans) -> None:
    registry = create_default_registry(catalog, cart, scans)
    assert registry.names == [
        "search_products",
        "analyze_product",
        "add_to_cart",
        "remove_from_cart",
        "clear_cart",
        "view_cart",
        "request_scan",
        "get_current_time",
    ]
    assert registry.display_name("view_cart") == "Checking Cart..."


# ---------------------------------------------------------------------------
# Cart store
# ---------------------------------------------------------------------------
def test_cart_store_add_remove_clear(laptop, cable) -> None:
    cart = CartStore()
    assert cart.add(laptop)
    assert not cart.add(laptop)
    assert cart.add(cable)

    assert [item.sku for item in cart.items] == [laptop.sku, cable.sku]
    assert cart.get(laptop.sku).price == 329.99
    assert round(cart.total(), 2) == 349.98

    assert cart.remove(cable.sku).name == cable.name
    assert cart.remove(cable.sku) is None
    assert cart.clear() == 1
    assert cart.is_empty


def test_cart_search_ranks_matches(laptop, cable) -> None:
    cart = CartStore()
    cart.add(laptop)
    cart.add(cable)

    assert [item.sku for item in cart.search("usb cable")] == [cable.sku]
    assert [item.sku for item in cart.search("acer")] == [laptop.sku]
    assert [item.sku for item in cart.search("aspr")] == [laptop.sku]  # in-order letters
    assert cart.search("xbox") == []
    assert len(cart.search("  ")) == 2


# ---------------------------------------------------------------------------
# Cart tools
# ---------------------------------------------------------------------------
def test_add_to_cart(catalog: FakeCatalog, cart: CartStore, laptop) -> None:
    tool = AddToCartTool(cart, catalog)

    added = run(tool.execute({"sku": laptop.sku}))
    assert added.startswith("Successfully added to cart:")
    assert "- Price: $329.99" in added
    assert added.endswith("Cart now has 1 item.")

    assert run(tool.execute({"sku": str(laptop.sku)})) == (
        f'Product "{laptop.name}" is already in your cart.'
    )
    assert run(tool.execute({})) == "Error: SKU is required to add a product to cart."
    assert run(tool.execute({"sku": 1})) == "Error: Could not find product with SKU 1."


def test_remove_and_clear(catalog: FakeCatalog, cart: CartStore, laptop, cable) -> None:
    cart.add(laptop)
    cart.add(cable)
    remove, clear = RemoveFromCartTool(cart), ClearCartTool(cart)

    assert run(remove.execute({"sku": laptop.sku})).startswith(
        f'Removed "{laptop.name}" from your cart.'
    )
    assert run(remove.execute({"sku": laptop.sku})) == (
        f"Product with SKU {laptop.sku} is not in your cart."
    )
    assert run(clear.execute({})) == "Cleared 1 item from your cart. Your cart is now empty."
    assert run(clear.execute({})) == "Your cart is already empty."


def test_view_cart(cart: CartStore, laptop, cable) -> None:
    tool = ViewCartTool(cart)
    assert run(tool.execute({})) == "Your cart is empty. Use add_to_cart to add products."

    cart.add(laptop)
    cart.add(cable)
    listing = run(tool.execute({}))
    assert listing.startswith("Your cart has 2 items:")
    assert "**Estimated Total: $349.98**" in listing

    filtered = run(tool.execute({"search": "cable"}))
    assert filtered.startswith('Found 1 matching item for "cable":')
    assert laptop.name not in filtered

    assert run(tool.execute({"search": "xbox"})).startswith('No items in your cart match "xbox".')


# ---------------------------------------------------------------------------
# Catalog tools
# ---------------------------------------------------------------------------
def test_search_products(catalog: FakeCatalog, laptop) -> None:
    tool = SearchProductsTool(catalog)

    result = run(tool.execute({"query": "laptop", "limit": 50, "sort_by": None}))
    assert result.startswith("Found 1 products (showing 1):")
    assert f"- SKU: {laptop.sku}" in result
    assert "- Price: $329.99 (was $449.99, save 27%)" in result
    assert result.endswith("To show a product to the user, use: [Product(SKU)]")

    criteria = catalog.searches[-1]
    assert criteria.limit == 20
    assert criteria.sort_by == "best_selling"


def test_search_products_no_match_and_bad_args(catalog: FakeCatalog) -> None:
    tool = SearchProductsTool(catalog)

    assert run(tool.execute({"query": "toaster"})) == "No products found matching your criteria."
    assert run(tool.execute({"sort_by": "cheapest"})).startswith(
        "Error: invalid search arguments:"
    )


def test_analyze_product(catalog: FakeCatalog, laptop, cable) -> None:
    tool = AnalyzeProductTool(catalog)

    details = run(tool.execute({"sku": laptop.sku}))
    assert details.startswith(f"# {laptop.name}")
    assert "- **Current Price**: $329.99 (ON SALE!)" in details
    assert details.endswith(f"[Product({laptop.sku})]")

    by_upc = run(tool.execute({"upc": cable.upc}))
    assert "- **Price**: $19.99" in by_upc

    assert run(tool.execute({})) == (
        "Error: Please provide either a SKU or UPC to look up the product."
    )
    assert run(tool.execute({"sku": 42})) == (
        "Product not found. Please verify the SKU and try again."
    )


# ---------------------------------------------------------------------------
# Time tool
# ---------------------------------------------------------------------------
def test_get_current_time_formats() -> None:
    now = datetime(2024, 12, 31, 23, 15, 5, tzinfo=timezone.utc)
    tool = GetTimeTool(clock=lambda: now)

    assert run(tool.execute({})) == "Tuesday, December 31, 2024 at 23:15:05 (UTC)"
    assert run(tool.execute({"timezone_offset_hours": 2})) == (
        "Wednesday, January 1, 2025 at 01:15:05 (UTC+2)"
    )
    assert run(tool.execute({"timezone_offset_hours": -5.5, "format": "iso"})) == (
        "2024-12-31T17:45:05-05:30"
    )
    assert run(tool.execute({"format": "unix"})) == str(int(now.timestamp()))


def test_request_scan_is_in_default_registry(catalog, cart) -> None:
    scans = ScanRequestService(default_timeout=5)
    registry = create_default_registry(catalog, cart, scans, scan_safety_timeout=1)
    assert registry.get("request_scan").safety_timeout == 1


def test_sku_tools_do_not_share_schema(catalog, cart) -> None:
    add, remove = AddToCartTool(cart, catalog), RemoveFromCartTool(cart)

    add.parameters["properties"]["sku"]["description"] = "changed"

    assert add.parameters is not remove.parameters
    assert remove.parameters["properties"]["sku"]["description"] == (
        "The Best Buy SKU of the product."
    )
