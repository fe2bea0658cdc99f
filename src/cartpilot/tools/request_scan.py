"""
Human-in-the-loop barcode scan tool.

The tool opens a request on the :class:`~cartpilot.agent.rendezvous.ScanRequestService` and waits
for the UI to resolve it.  The UI enforces its own (shorter) timeout while the scanner is open; the
tool adds a longer safety bound in case the UI never shows up.  Both go through the same
resolve-once guard, so whichever fires first decides the outcome.
"""

import asyncio
import logging
from typing import (
    Any,
    Dict,
    Mapping,
)

from cartpilot.agent.rendezvous import (
    ScanCancelled,
    ScanError,
    ScanNotFound,
    ScanOutcome,
    ScanRequestService,
    ScanSuccess,
    ScanTimeout,
)
from cartpilot.config import settings
from cartpilot.tools import Tool

logger = logging.getLogger(__name__)


class RequestScanTool(Tool):
    """Ask the user to scan a product and return what was scanned."""

    def __init__(
        self,
        scans: ScanRequestService,
        safety_timeout: float | None = None,
    ) -> None:
        self._scans = scans
        self.safety_timeout = (
            safety_timeout if safety_timeout is not None else settings.SCAN_SAFETY_TIMEOUT
        )

    @property
    def name(self) -> str:
        return "request_scan"

    @property
    def display_name(self) -> str:
        return "Requesting Scan..."

    @property
    def description(self) -> str:
        return """Request the user to scan a product barcode or QR code.

Use this when:
- The user has a physical product and you need to identify it
- The user mentions they're looking at a product in-store
- You need to look up a product but don't have the SKU or UPC
- The user asks about compatibility or details of a product they have

The app will automatically open the camera scanner and wait for the user to scan.
Returns the full product details if found, or an appropriate message if the scan times out,
is cancelled, or the product is not found."""

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "product_name": {
                    "type": "string",
                    "description": (
                        "A brief description of what the user should scan, shown to them. "
                        'Example: "the USB cable", "the laptop", "the product barcode"'
                    ),
                },
            },
            "required": ["product_name"],
        }

    async def execute(self, arguments: Mapping[str, Any]) -> str:
        product_name = arguments.get("product_name") or "the product"

        request = self._scans.request(product_name)
        try:
            outcome = await asyncio.wait_for(request.wait(), timeout=self.safety_timeout)
        except asyncio.TimeoutError:
            if self._scans.resolve_timeout(request):
                logger.warning("Scan request '%s' hit the safety timeout", product_name)
            # Whoever resolved first (us or the UI) decided the outcome.
            outcome = await request.wait()

        return self.format_outcome(outcome, request.timeout)

    @staticmethod
    def format_outcome(outcome: ScanOutcome, ui_timeout: float) -> str:
        if isinstance(outcome, ScanSuccess):
            product = outcome.product
            return (
                "=== SCANNED PRODUCT ===\n\n"
                f"{product.to_ai_context()}\n\n"
                f"To display this product to the user, use: [Product({product.sku})]"
            )
        if isinstance(outcome, ScanTimeout):
            return f"""The user did not scan a product within the time limit \
({ui_timeout:g} seconds).

Possible reasons:
- They couldn't find the barcode on the product
- They decided not to scan
- They had technical difficulties with the camera

You should:
1. Ask if they still want to scan (they can try again)
2. Offer to search for the product by name instead
3. Ask for any identifying information they can see (brand, model number, etc.)"""
        if isinstance(outcome, ScanCancelled):
            return f"""The scan was cancelled: {outcome.reason}

The user chose not to complete the scan. You should:
1. Ask if they'd like to try again
2. Offer alternative ways to identify the product (search by name, describe it, etc.)
3. Continue the conversation naturally"""
        if isinstance(outcome, ScanNotFound):
            return f"""The barcode was scanned but no matching product was found in the catalog.

Scanned code: {outcome.code}

This could mean:
- The product is not sold at Best Buy
- The barcode is for a different retailer's internal use
- The product has been discontinued

You should:
1. Let the user know the product wasn't found
2. Offer to search for similar products by description
3. Ask for more details about the product they're looking for"""
        if isinstance(outcome, ScanError):
            return f"""An error occurred while processing the scan: {outcome.message}

You should:
1. Acknowledge the technical issue
2. Offer to try scanning again
3. Suggest searching for the product by name as an alternative"""
        raise TypeError(f"Unknown scan outcome: {outcome!r}")
