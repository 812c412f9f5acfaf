"""
Price resolution for a product or one of its variants.

Rules:
1. Variant products:
   - no variant chosen -> product-level "from" price, requires_selection=True
   - variant chosen    -> that variant's pricing
2. Simple products use their own price fields.

The backend computes final prices; this module only picks and compares them.
"""

from dataclasses import dataclass
from typing import Optional

from storefront.catalog.models import Product, Variant

DEFAULT_MARKUP_PERCENT = 10.0


@dataclass
class Discount:
    amount: float
    percentage: int


@dataclass
class ResolvedPrice:
    final: float
    merchant: float
    original: float
    currency: str
    requires_selection: bool
    source: str                      # "variant" or "simple"
    discount: Optional[Discount] = None


def _first_positive(*values: Optional[float]) -> Optional[float]:
    for value in values:
        if value is not None and value > 0:
            return value
    return None


def selling_price(product: Optional[Product], variant: Optional[Variant] = None) -> float:
    """Price to charge: final price, else discount price, else base price."""
    if product is None:
        return 0.0
    source = variant if variant is not None else product
    chosen = _first_positive(source.final_price, source.discount_price, source.price)
    return chosen or 0.0


def _priced(final: float, merchant: float, markup: Optional[float], has_discount: bool,
            currency: str, source: str) -> ResolvedPrice:
    markup_percent = markup if markup is not None else DEFAULT_MARKUP_PERCENT
    normal_price = round(merchant * (1 + markup_percent / 100), 2)

    if has_discount or normal_price > final:
        original = normal_price
    else:
        original = final

    discount_amount = round(max(0.0, original - final), 2)
    discount = None
    if discount_amount > 0:
        percentage = round(discount_amount / original * 100) if original > 0 else 0
        discount = Discount(amount=round(discount_amount, 2), percentage=percentage)

    return ResolvedPrice(
        final=final,
        merchant=merchant,
        original=round(original, 2),
        currency=currency,
        requires_selection=False,
        source=source,
        discount=discount,
    )


def resolve_price(
    product: Product,
    variant: Optional[Variant] = None,
    currency: str = "USD",
) -> ResolvedPrice:
    """
    Resolve display / charge price.

    Args:
        product: Product snapshot
        variant: Matched variant, if the user has completed a selection
        currency: ISO currency code to tag the result with

    Returns:
        ResolvedPrice; for variant products without a variant, the product-level
        "from" price with requires_selection=True
    """
    if product.has_variants:
        if variant is None:
            from_price = product.final_price or 0.0
            merchant = product.price or 0.0
            return ResolvedPrice(
                final=from_price,
                merchant=merchant,
                original=merchant,
                currency=currency,
                requires_selection=True,
                source="variant",
            )
        merchant = variant.price or 0.0
        final = variant.final_price if variant.final_price is not None else merchant
        return _priced(
            final, merchant, variant.markup_percent,
            bool(variant.discount_price and variant.discount_price > 0),
            currency, "variant",
        )

    merchant = product.price or 0.0
    final = product.final_price if product.final_price is not None else merchant
    return _priced(
        final, merchant, product.markup_percent,
        bool(product.discount_price and product.discount_price > 0),
        currency, "simple",
    )
