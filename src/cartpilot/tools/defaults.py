"""Assembles the standard tool set."""

from cartpilot.agent.rendezvous import ScanRequestService
from cartpilot.cart.store import CartStore
from cartpilot.catalog.client import CatalogClient
from cartpilot.tools import ToolRegistry
from cartpilot.tools.analyze_product import AnalyzeProductTool
from cartpilot.tools.cart_tools import (
    AddToCartTool,
    ClearCartTool,
    RemoveFromCartTool,
    ViewCartTool,
)
from cartpilot.tools.get_time import GetTimeTool
from cartpilot.tools.request_scan import RequestScanTool
from cartpilot.tools.search_products import SearchProductsTool


def create_default_registry(
    catalog: CatalogClient,
    cart: CartStore,
    scans: ScanRequestService,
    scan_safety_timeout: float | None = None,
) -> ToolRegistry:
    """Build a registry holding every shopping tool, wired to the given collaborators."""
    registry = ToolRegistry()
    registry.register(SearchProductsTool(catalog))
    registry.register(AnalyzeProductTool(catalog))
    registry.register(AddToCartTool(cart, catalog))
    registry.register(RemoveFromCartTool(cart))
    registry.register(ClearCartTool(cart))
    registry.register(ViewCartTool(cart))
    registry.register(RequestScanTool(scans, safety_timeout=scan_safety_timeout))
    registry.register(GetTimeTool())
    return registry
