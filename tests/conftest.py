"""Shared fixtures and fakes for the CartPilot test-suite."""

import copy
import json
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Sequence,
)

import pytest

from cartpilot.agent.gateway import BaseGateway
from cartpilot.agent.rendezvous import ScanRequestService
from cartpilot.cart.store import CartStore
from cartpilot.catalog.models import (
    Product,
    SearchCriteria,
    SearchResults,
)


def completion(content: str | None = "", tool_calls: Sequence[tuple] = ()) -> Dict[str, Any]:
    """Build a chat-completions body.  *tool_calls* holds ``(id, name, args)`` tuples."""
    message: Dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = [
            {
                "id": call_id,
                "type": "function",
                "function": {
                    "name": name,
                    "arguments": args if isinstance(args, str) else json.dumps(args),
                },
            }
            for call_id, name, args in tool_calls
        ]
    return {"choices": [{"message": message}]}


class ScriptedGateway(BaseGateway):
    """Gateway stub that replays canned responses and records every request."""

    def __init__(self, responses: Sequence[Any], repeat_last: bool = False) -> None:
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.calls: List[Dict[str, Any]] = []

    async def complete(
        self,
        model: str,
        messages: Sequence[Dict[str, Any]],
        tools: Sequence[Dict[str, Any]] | None = None,
    ) -> Dict[str, Any]:
        self.calls.append(
            {"model": model, "messages": copy.deepcopy(list(messages)), "tools": tools}
        )
        index = len(self.calls) - 1
        if index >= len(self.responses):
            if not self.repeat_last:
                raise AssertionError("gateway called more often than scripted")
            index = len(self.responses) - 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


class FakeCatalog:
    """In-memory :class:`~cartpilot.catalog.client.CatalogClient`."""

    def __init__(self, products: Sequence[Product] = ()) -> None:
        self.products = {product.sku: product for product in products}
        self.searches: List[SearchCriteria] = []

    async def search(self, criteria: SearchCriteria) -> SearchResults:
        self.searches.append(criteria)
        found = list(self.products.values())
        if criteria.query:
            words = criteria.query.lower().split()
            found = [p for p in found if any(word in p.name.lower() for word in words)]
        return SearchResults(total=len(found), products=found[: criteria.limit])

    async def get_by_sku(self, sku: int) -> Optional[Product]:
        return self.products.get(sku)

    async def get_by_upc(self, upc: str) -> Optional[Product]:
        return next((p for p in self.products.values() if p.upc == upc), None)


@pytest.fixture
def laptop() -> Product:
    return Product(
        sku=6535245,
        name="Acer Aspire 3 15.6in Laptop",
        upc="195133185041",
        manufacturer="Acer",
        regular_price=449.99,
        sale_price=329.99,
        on_sale=True,
        percent_savings=27,
        online_availability=True,
        customer_review_average=4.4,
        customer_review_count=812,
    )


@pytest.fixture
def cable() -> Product:
    return Product(
        sku=6401234,
        name="Insignia 6ft USB-C Charging Cable",
        upc="600603251234",
        manufacturer="Insignia",
        regular_price=19.99,
        in_store_availability=True,
    )


@pytest.fixture
def catalog(laptop: Product, cable: Product) -> FakeCatalog:
    return FakeCatalog([laptop, cable])


@pytest.fixture
def cart() -> CartStore:
    return CartStore()


@pytest.fixture
def scans() -> ScanRequestService:
    return ScanRequestService(default_timeout=20.0)
