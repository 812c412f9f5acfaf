"""
Purchasability verdicts for a product + selection snapshot.

Decision table, first match wins:
  1. product missing / inactive / deleted   → INACTIVE_PRODUCT
  2. no variants                            → OK if stock > 0 else OUT_OF_STOCK
  3. a required attribute is not selected   → MISSING_REQUIRED (+ display names)
  4. no variant matches the selection       → NO_MATCHING_VARIANT
  5. matched variant inactive or stock <= 0 → OUT_OF_STOCK
  6. otherwise                              → OK

Recompute on every selection change and every product refresh; nothing here
is cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional

from storefront.catalog.attributes import normalize, normalize_key
from storefront.catalog.models import Product, Variant
from storefront.variants.matcher import match_variant


class AvailabilityReason(str, Enum):
    """Reason codes surfaced to the UI."""
    OK = "OK"
    INACTIVE_PRODUCT = "INACTIVE_PRODUCT"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    MISSING_REQUIRED = "MISSING_REQUIRED"
    NO_MATCHING_VARIANT = "NO_MATCHING_VARIANT"


@dataclass
class Availability:
    """Verdict for one product + selection."""
    purchasable: bool
    reason: AvailabilityReason
    missing: List[str] = field(default_factory=list)
    variant: Optional[Variant] = None


def missing_required(product: Product, selected: Optional[Mapping[str, str]]) -> List[str]:
    """Display names of required attributes absent from the selection."""
    selection = normalize(selected)
    return [
        d.display_name for d in product.attribute_defs
        if d.required and not selection.get(normalize_key(d.name))
    ]


def evaluate(product: Optional[Product], selected: Optional[Mapping[str, str]] = None) -> Availability:
    """
    Decide whether the current selection can be added to the cart.

    Args:
        product: Latest product snapshot, or None if it could not be loaded
        selected: Current selection (raw or normalized, may be partial)

    Returns:
        Availability with reason code, missing names and the matched variant
    """
    if product is None or not product.available:
        return Availability(False, AvailabilityReason.INACTIVE_PRODUCT)

    if not product.has_variants:
        if (product.stock or 0) > 0:
            return Availability(True, AvailabilityReason.OK)
        return Availability(False, AvailabilityReason.OUT_OF_STOCK)

    missing = missing_required(product, selected)
    if missing:
        return Availability(False, AvailabilityReason.MISSING_REQUIRED, missing=missing)

    variant = match_variant(product, selected)
    if variant is None:
        return Availability(False, AvailabilityReason.NO_MATCHING_VARIANT)

    if not variant.is_active or variant.stock <= 0:
        return Availability(False, AvailabilityReason.OUT_OF_STOCK, variant=variant)

    return Availability(True, AvailabilityReason.OK, variant=variant)
