"""
Product catalog client.

Tools depend on the small :class:`CatalogClient` protocol only.  :class:`BestBuyClient` implements
it against the Best Buy Products API, whose filters live in the path:

    GET /v1/products(search=laptop&salePrice<=500)?format=json&apiKey=...
"""

import logging
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
)

import httpx
from pydantic import ValidationError

from cartpilot.catalog.models import (
    Product,
    SearchCriteria,
    SearchResults,
)
from cartpilot.config import settings

logger = logging.getLogger(__name__)

SORT_PARAMS: Dict[str, str] = {
    "best_selling": "bestSellingRank.asc",
    "price_low": "salePrice.asc",
    "price_high": "salePrice.dsc",
    "rating": "customerReviewAverage.dsc",
    "newest": "releaseDate.dsc",
    "name": "name.asc",
}

CARD_ATTRIBUTES = (
    "sku,upc,name,manufacturer,salePrice,regularPrice,onSale,percentSavings,"
    "customerReviewAverage,customerReviewCount,onlineAvailability,inStoreAvailability,"
    "thumbnailImage"
)


class CatalogError(RuntimeError):
    """Raised when the catalog service cannot be reached or answers with an error."""


class CatalogClient(Protocol):
    """What the agent tools need from a product catalog."""

    async def search(self, criteria: SearchCriteria) -> SearchResults: ...

    async def get_by_sku(self, sku: int) -> Optional[Product]: ...

    async def get_by_upc(self, upc: str) -> Optional[Product]: ...


def build_filters(criteria: SearchCriteria) -> List[str]:
    """Translate *criteria* into Best Buy path filters, in a stable order."""
    filters: List[str] = []
    if criteria.query:
        filters += [f"search={word}" for word in criteria.query.split()]
    if criteria.category_id:
        filters.append(f"categoryPath.id={criteria.category_id}")
    if criteria.manufacturer:
        filters.append(f'manufacturer="{criteria.manufacturer}"')
    if criteria.min_price is not None:
        filters.append(f"salePrice>={criteria.min_price:g}")
    if criteria.max_price is not None:
        filters.append(f"salePrice<={criteria.max_price:g}")
    if criteria.on_sale:
        filters.append("onSale=true")
    if criteria.in_stock:
        filters.append("onlineAvailability=true")
    if criteria.free_shipping:
        filters.append("freeShipping=true")
    if criteria.min_rating is not None:
        filters.append(f"customerReviewAverage>={criteria.min_rating:g}")
    return filters


def build_products_path(filters: List[str]) -> str:
    return f"/products({'&'.join(filters)})" if filters else "/products"


class BestBuyClient:
    """Async Best Buy Products API client built on httpx."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.BESTBUY_API_KEY
        self.base_url = (base_url or settings.BESTBUY_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise CatalogError("BESTBUY_API_KEY is not configured")

        query = {"format": "json", **params, "apiKey": self.api_key}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(f"{self.base_url}{path}", params=query)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Catalog error %s for %s", exc.response.status_code, path)
            raise CatalogError(f"Catalog returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("Catalog request error: %s", str(exc))
            raise CatalogError(f"Catalog request failed: {exc}") from exc
        except ValueError as exc:
            raise CatalogError("Catalog returned a malformed body") from exc

    async def search(self, criteria: SearchCriteria) -> SearchResults:
        params = {
            "sort": SORT_PARAMS[criteria.sort_by],
            "pageSize": criteria.limit,
            "show": CARD_ATTRIBUTES,
        }
        body = await self._request(build_products_path(build_filters(criteria)), params)
        try:
            return SearchResults.model_validate(body)
        except ValidationError as exc:
            raise CatalogError(f"Unexpected catalog payload: {exc}") from exc

    async def _first(self, filters: List[str]) -> Optional[Product]:
        body = await self._request(build_products_path(filters), {"pageSize": 1})
        try:
            results = SearchResults.model_validate(body)
        except ValidationError as exc:
            raise CatalogError(f"Unexpected catalog payload: {exc}") from exc
        return results.products[0] if results.products else None

    async def get_by_sku(self, sku: int) -> Optional[Product]:
        return await self._first([f"sku={sku}"])

    async def get_by_upc(self, upc: str) -> Optional[Product]:
        return await self._first([f"upc={upc}"])
