"""
Local cart lines keyed by line key.

CartState mirrors the backend cart between round trips so the UI can tell
whether an add increments an existing line or creates a new one. After every
add / update / remove the backend cart is authoritative: reconcile() replaces
local lines with it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from storefront.cart.line_key import build_key
from storefront.catalog.attributes import normalize
from storefront.catalog.models import Cart, CartLine, Product
from storefront.pricing.engine import selling_price
from storefront.utils.logger import get_logger
from storefront.variants.availability import evaluate
from storefront.variants.matcher import match_variant

logger = get_logger("cart")


class CartState:
    """Ordered cart lines indexed by line key."""

    def __init__(self) -> None:
        self._lines: Dict[str, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, line_key: str) -> bool:
        return line_key in self._lines

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def find(self, product_id: str, attributes: Optional[Mapping[str, Any]] = None) -> Optional[CartLine]:
        return self._lines.get(build_key(product_id, attributes))

    def add(
        self,
        product_id: str,
        attributes: Optional[Mapping[str, Any]] = None,
        quantity: int = 1,
        variant_id: Optional[str] = None,
    ) -> CartLine:
        """
        Add quantity to the line for (product_id, attributes).

        Merges into an existing line with the same key; otherwise creates one.
        """
        if quantity < 1:
            raise ValueError("quantity must be a positive integer")

        key = build_key(product_id, attributes)
        existing = self._lines.get(key)
        if existing is not None:
            merged = existing.model_copy(update={
                "quantity": existing.quantity + quantity,
                "variant_id": variant_id or existing.variant_id,
            })
            self._lines[key] = merged
            return merged

        line = CartLine(
            product_id=product_id,
            variant_id=variant_id,
            attributes=normalize(attributes),
            quantity=quantity,
            line_key=key,
        )
        self._lines[key] = line
        return line

    def set_quantity(
        self,
        product_id: str,
        attributes: Optional[Mapping[str, Any]],
        quantity: int,
    ) -> Optional[CartLine]:
        """Set an absolute quantity; zero or less removes the line."""
        key = build_key(product_id, attributes)
        line = self._lines.get(key)
        if line is None:
            return None
        if quantity <= 0:
            del self._lines[key]
            return None
        updated = line.model_copy(update={"quantity": quantity})
        self._lines[key] = updated
        return updated

    def remove(self, product_id: str, attributes: Optional[Mapping[str, Any]] = None) -> bool:
        return self._lines.pop(build_key(product_id, attributes), None) is not None

    def clear(self) -> None:
        self._lines.clear()

    def reconcile(self, cart: Optional[Cart]) -> None:
        """Replace local lines with the backend's authoritative cart."""
        self._lines.clear()
        if cart is None:
            return
        for line in cart.lines:
            if line.line_key in self._lines:
                # backend returned two rows for one identity; sum them
                current = self._lines[line.line_key]
                self._lines[line.line_key] = current.model_copy(
                    update={"quantity": current.quantity + line.quantity}
                )
                logger.warning("cart: duplicate backend lines merged line_key=%s", line.line_key)
            else:
                self._lines[line.line_key] = line


@dataclass
class CartValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)


def validate_cart(lines: List[CartLine], products_by_id: Mapping[str, Product]) -> CartValidation:
    """Check every line against the latest product snapshots."""
    errors: List[str] = []
    for line in lines:
        verdict = evaluate(products_by_id.get(line.product_id), line.attributes)
        if not verdict.purchasable:
            errors.append(f"{line.line_key}: {verdict.reason.value}")
    return CartValidation(valid=not errors, errors=errors)


def cart_total(lines: List[CartLine], products_by_id: Mapping[str, Product]) -> float:
    """Sum of selling price x quantity; lines with unknown products are skipped."""
    total = 0.0
    for line in lines:
        product = products_by_id.get(line.product_id)
        if product is None:
            continue
        variant = match_variant(product, line.attributes) if product.has_variants else None
        total += selling_price(product, variant) * max(1, line.quantity)
    return round(total, 2)
