"""Pytest configuration for storefront engine tests."""

import os
import sys

import httpx
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.catalog.models import AttributeDefinition, Product, Variant  # noqa: E402


# ---------------------------------------------------------------------------
# Time: caches and the API client take injectable clocks / sleeps so tests
# never wait on wall-clock time.
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------

def build_product(
    product_id="p1",
    variants=None,
    required=("size", "color"),
    stock=None,
    is_active=True,
    **fields,
):
    """Product with required size/color definitions and the given variants."""
    variants = variants or []
    return Product(
        id=product_id,
        name=fields.pop("name", "Linen Shirt"),
        stock=stock,
        is_active=is_active,
        attribute_defs=[
            AttributeDefinition(name=name, label=name.capitalize(), required=True)
            for name in required
        ] if variants else [],
        variants=[
            v if isinstance(v, Variant) else Variant(**v) for v in variants
        ],
        **fields,
    )


@pytest.fixture
def shirt():
    """Two M variants: red out of stock, blue in stock."""
    return build_product(
        "p1",
        variants=[
            {"id": "v-red", "sku": "SH-M-RED", "attributes": {"size": "M", "color": "red"}, "stock": 0,
             "price": 20.0, "final_price": 22.0},
            {"id": "v-blue", "sku": "SH-M-BLUE", "attributes": {"size": "M", "color": "blue"}, "stock": 5,
             "price": 20.0, "final_price": 22.0},
        ],
        price=20.0,
        final_price=22.0,
    )


@pytest.fixture
def mug():
    """Simple product without variants."""
    return build_product("p2", name="Mug", stock=3, price=8.0, final_price=8.8)


@pytest.fixture
def product_payload():
    """Raw backend product body as returned by GET /products/{id}."""
    return {
        "success": True,
        "data": {
            "_id": "p1",
            "name": "Linen Shirt",
            "description": "Breathable summer shirt",
            "merchantPrice": "20",
            "finalPrice": 22,
            "nubianMarkup": 10,
            "stock": 99,
            "isActive": True,
            "images": ["a.jpg", "b.jpg"],
            "category": {"_id": "c1", "name": "Shirts"},
            "merchant": "m1",
            "attributes": [
                {"name": "Size", "displayName": "Size", "required": True, "options": ["S", "M"]},
                {"name": "color", "required": True},
            ],
            "variants": [
                {"_id": "v-red", "sku": "SH-M-RED", "attributes": {"Size": "M", "Color": "red"},
                 "stock": 0, "merchantPrice": 20, "finalPrice": 22},
                {"_id": "v-blue", "sku": "SH-M-BLUE",
                 "attributes": [{"name": "size", "value": "M"}, {"name": "color", "value": "blue"}],
                 "stock": "5", "merchantPrice": 20, "finalPrice": 22, "isActive": True},
            ],
        },
    }


# ---------------------------------------------------------------------------
# HTTP: handler for httpx.MockTransport
# ---------------------------------------------------------------------------

class FakeBackend:
    """Scripted MockTransport handler; records every request it sees.

    `routes` maps (method, path) to a JSON body answered with 200; `script`
    holds responses or exceptions consumed one per request before routes.
    Unknown routes answer 404.
    """

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []
        self.script = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.script:
            step = self.script.pop(0)
            if isinstance(step, Exception):
                raise step
            return step
        key = (request.method, request.url.path)
        if key in self.routes:
            body = self.routes[key]
            return httpx.Response(200, json=body(request) if callable(body) else body)
        return httpx.Response(404, json={"message": "not found"})

    def calls(self, method=None, path=None):
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]
