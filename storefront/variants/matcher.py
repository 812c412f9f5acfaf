"""
Variant matching: selection -> the one purchasable variant.

A variant matches only when its attribute map and the selection are equal as
maps. Partial selections never resolve, even if only one variant could still
fit; the UI must collect every attribute first.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Tuple

from storefront.catalog.attributes import normalize, normalize_key, normalize_value
from storefront.catalog.models import Product, Variant
from storefront.utils.logger import get_logger

logger = get_logger("variants")


def match_variant(product: Optional[Product], selected: Optional[Mapping[str, str]]) -> Optional[Variant]:
    """
    Resolve a complete selection to its variant.

    Args:
        product: Product snapshot (None is tolerated)
        selected: Selection, raw or normalized

    Returns:
        The first variant whose normalized attribute map equals the selection,
        or None when nothing is selected or nothing matches.
    """
    selection = normalize(selected)
    if not selection or product is None:
        return None

    matches = [v for v in product.variants if normalize(v.attributes) == selection]
    if not matches:
        return None
    if len(matches) > 1:
        # Variant attribute maps should be unique per product; first one wins.
        logger.warning(
            "variants: duplicate attribute map product_id=%s attributes=%s variant_ids=%s",
            product.id, selection, [v.id for v in matches],
        )
    return matches[0]


def pick_display_variant(product: Optional[Product]) -> Optional[Variant]:
    """
    Default variant for image / price display before anything is chosen.

    Not a purchase resolution: use match_variant for that.
    """
    if product is None or not product.variants:
        return None
    return product.variants[0]


def find_duplicate_variants(product: Product) -> List[Tuple[str, str]]:
    """Return (first_id, duplicate_id) pairs of variants sharing one attribute map."""
    seen: Dict[Tuple[Tuple[str, str], ...], str] = {}
    duplicates: List[Tuple[str, str]] = []
    for variant in product.variants:
        signature = tuple(sorted(normalize(variant.attributes).items()))
        if signature in seen:
            duplicates.append((seen[signature], variant.id))
        else:
            seen[signature] = variant.id
    return duplicates


def attribute_options(product: Product) -> Dict[str, List[str]]:
    """
    Options per attribute name, declared options first.

    Declared definitions come first; values observed on selectable variants
    are appended in first-seen order. Nothing is invented.
    """
    options: Dict[str, List[str]] = {}

    for definition in product.attribute_defs:
        key = normalize_key(definition.name)
        if not key:
            continue
        values = options.setdefault(key, [])
        for option in definition.options:
            value = normalize_value(option)
            if value and value not in values:
                values.append(value)

    for variant in product.variants:
        if not variant.selectable:
            continue
        for key, value in normalize(variant.attributes).items():
            values = options.setdefault(key, [])
            if value not in values:
                values.append(value)

    return options


def is_option_available(
    product: Product,
    attribute_name: str,
    option_value: str,
    current_selection: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    Can `option_value` still be picked for `attribute_name`?

    True if at least one selectable variant carries that value and agrees
    with every *other* attribute already selected. Simple products always
    return True.
    """
    if not product.variants:
        return True

    key = normalize_key(attribute_name)
    value = normalize_value(option_value)
    others = {k: v for k, v in normalize(current_selection).items() if k != key}

    for variant in product.variants:
        if not variant.selectable:
            continue
        attrs = normalize(variant.attributes)
        if attrs.get(key) != value:
            continue
        if all(attrs.get(k) == v for k, v in others.items()):
            return True
    return False
