"""
Cart endpoint client.

Endpoints:
    GET    /carts          → current cart (404 means "no cart yet")
    POST   /carts/add      → {productId, quantity, size?, attributes?}
    PUT    /carts/update   → {productId, quantity (delta), size?, attributes?}
    DELETE /carts/remove   → {productId, size?, attributes?}

Every call answers with the authoritative cart, which replaces local state.
Successful writes also drop the cached GET /carts response (same resource
family) and, when a catalog is attached, the touched product's cache entry.
"""

from __future__ import annotations

import asyncio
import math
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

from storefront.cache.entity_cache import retrieve_exception
from storefront.cart.line_key import build_key
from storefront.cart.lines import CartState
from storefront.catalog.attributes import coerce_attribute_map, merge_legacy_size
from storefront.catalog.models import Cart, CartLine
from storefront.catalog.normalize import unwrap_envelope
from storefront.core.errors import NotFoundError
from storefront.http.client import ApiClient
from storefront.utils.logger import get_logger

if TYPE_CHECKING:
    from storefront.api.catalog import ProductCatalog

logger = get_logger("cart_api")


def build_payload(
    product_id: str,
    quantity: Optional[int] = None,
    size: Any = None,
    attributes: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Request body for add / update / remove.

    Attributes are normalized and the legacy `size` folded in; `size` is sent
    only when the merged map has one, `attributes` only when non-empty.
    """
    if not product_id:
        raise ValueError("product_id is required")

    merged = merge_legacy_size(size, attributes)
    payload: Dict[str, Any] = {"productId": product_id}
    if quantity is not None:
        payload["quantity"] = quantity
    if merged.get("size"):
        payload["size"] = merged["size"]
    if merged:
        payload["attributes"] = merged
    return payload


def _as_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _as_quantity(value: Any) -> int:
    return int(_as_float(value))


def parse_cart(payload: Any) -> Cart:
    """
    Backend cart body -> Cart.

    Accepts {"data": {...}} or the cart object. Lines without a product
    reference or with a non-positive quantity are skipped.
    """
    raw = unwrap_envelope(payload)
    if not isinstance(raw, Mapping):
        return Cart()

    lines = []
    for item in raw.get("products") or []:
        if not isinstance(item, Mapping):
            continue
        product = item.get("product")
        if isinstance(product, Mapping):
            product_id = str(product.get("_id") or product.get("id") or "")
        else:
            product_id = str(product or "")
        quantity = _as_quantity(item.get("quantity"))
        if not product_id or quantity < 1:
            logger.warning("cart_api: skipped cart row product=%r quantity=%r",
                           product_id, item.get("quantity"))
            continue

        attributes = merge_legacy_size(item.get("size"), coerce_attribute_map(item.get("attributes")))
        lines.append(CartLine(
            product_id=product_id,
            variant_id=item.get("variantId") or None,
            attributes=attributes,
            quantity=quantity,
            line_key=build_key(product_id, attributes),
            line_id=str(item["_id"]) if item.get("_id") else None,
        ))

    return Cart(
        id=str(raw["_id"]) if raw.get("_id") else None,
        lines=lines,
        total_quantity=_as_quantity(raw.get("totalQuantity")) or sum(l.quantity for l in lines),
        total_price=_as_float(raw.get("totalPrice")),
    )


class CartApi:
    """Cart calls plus a CartState kept in step with the backend."""

    def __init__(
        self,
        client: ApiClient,
        state: Optional[CartState] = None,
        catalog: Optional["ProductCatalog"] = None,
    ):
        self.client = client
        self.state = state if state is not None else CartState()
        self.catalog = catalog
        self._in_flight: Optional[asyncio.Task] = None

    async def fetch_cart(self) -> Cart:
        """
        Current cart; an empty Cart when the backend has none.

        Concurrent callers share one request.
        """
        task = self._in_flight
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch_cart())
            task.add_done_callback(retrieve_exception)
            self._in_flight = task
        return await asyncio.shield(task)

    async def _fetch_cart(self) -> Cart:
        try:
            try:
                response = await self.client.get("/carts")
            except NotFoundError:
                logger.info("cart_api: method=fetch_cart result=empty")
                cart = Cart()
            else:
                cart = parse_cart(response.data)
        finally:
            self._in_flight = None
        self.state.reconcile(cart)
        return cart

    async def add_to_cart(
        self,
        product_id: str,
        quantity: int = 1,
        attributes: Optional[Mapping[str, Any]] = None,
        size: Any = None,
    ) -> Cart:
        if quantity < 1:
            raise ValueError("quantity must be a positive integer")
        payload = build_payload(product_id, quantity, size, attributes)
        response = await self.client.post("/carts/add", json=payload)
        return await self._apply(product_id, response.data, "add_to_cart")

    async def update_quantity(
        self,
        product_id: str,
        quantity: int,
        attributes: Optional[Mapping[str, Any]] = None,
        size: Any = None,
    ) -> Cart:
        """Change a line's quantity by `quantity` (negative decrements)."""
        if not isinstance(quantity, int) or quantity == 0:
            raise ValueError("quantity change must be a non-zero integer")
        payload = build_payload(product_id, quantity, size, attributes)
        response = await self.client.put("/carts/update", json=payload)
        return await self._apply(product_id, response.data, "update_quantity")

    async def remove_from_cart(
        self,
        product_id: str,
        attributes: Optional[Mapping[str, Any]] = None,
        size: Any = None,
    ) -> Cart:
        payload = build_payload(product_id, None, size, attributes)
        response = await self.client.delete("/carts/remove", json=payload)
        return await self._apply(product_id, response.data, "remove_from_cart")

    async def _apply(self, product_id: str, body: Any, method: str) -> Cart:
        cart = parse_cart(body)
        self.state.reconcile(cart)
        if self.catalog is not None:
            await self.catalog.invalidate_product(product_id)
        logger.info("cart_api: method=%s product_id=%s lines=%s total_quantity=%s",
                    method, product_id, len(cart.lines), cart.total_quantity)
        return cart
