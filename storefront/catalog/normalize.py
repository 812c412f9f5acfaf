"""
Raw product payload -> Product.

Backend payloads are loosely typed (Mongo-style `_id`, camelCase, numbers as
strings, attribute maps in several shapes). This module is the only place
that reads them.
"""

from __future__ import annotations

import math
from typing import Any, List, Mapping, Optional

from storefront.catalog.attributes import coerce_attribute_map, normalize_key, normalize_value
from storefront.catalog.models import AttributeDefinition, Product, Variant
from storefront.core.errors import MalformedPayloadError


def _as_string(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_int(value: Any, default: int = 0) -> int:
    number = _as_number(value)
    return int(number) if number is not None else default


def _as_string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [s for s in (_as_string(v) for v in value) if s]


def _is_active(raw: Mapping[str, Any]) -> bool:
    return raw.get("isActive") is not False


def unwrap_envelope(payload: Any) -> Any:
    """Backend answers either {"data": {...}} or the object itself."""
    if isinstance(payload, Mapping) and "data" in payload and isinstance(payload["data"], (Mapping, list)):
        return payload["data"]
    return payload


def product_id_of(raw: Any) -> str:
    if not isinstance(raw, Mapping):
        return ""
    return _as_string(raw.get("_id") or raw.get("id")).strip()


def normalize_attribute_definition(raw: Mapping[str, Any]) -> AttributeDefinition:
    label = _as_string(raw.get("displayName") or raw.get("label")).strip()
    options = [normalize_value(o) for o in _as_string_list(raw.get("options"))]
    return AttributeDefinition(
        name=normalize_key(raw.get("name")),
        label=label or None,
        required=raw.get("required") is True,
        options=[o for o in options if o],
    )


def normalize_variant(raw: Mapping[str, Any], attribute_names: List[str]) -> Variant:
    price = _as_number(raw.get("merchantPrice"))
    if price is None:
        price = _as_number(raw.get("price"))
    return Variant(
        id=_as_string(raw.get("_id") or raw.get("id")),
        sku=_as_string(raw.get("sku")),
        attributes=coerce_attribute_map(raw.get("attributes"), attribute_names),
        stock=_as_int(raw.get("stock")),
        is_active=_is_active(raw),
        price=price,
        discount_price=_as_number(raw.get("discountPrice")),
        final_price=_as_number(raw.get("finalPrice")),
        markup_percent=_as_number(raw.get("nubianMarkup", raw.get("markupPercent"))),
        dynamic_markup_percent=_as_number(raw.get("dynamicMarkup", raw.get("dynamicMarkupPercent"))),
        images=_as_string_list(raw.get("images")),
    )


def normalize_product(payload: Any) -> Product:
    """
    Convert a backend product payload into a Product.

    Raises:
        MalformedPayloadError: payload is not an object, has no `_id` / `id`,
            or carries fields of an unexpected shape
    """
    raw = unwrap_envelope(payload)
    product_id = product_id_of(raw)
    if not product_id:
        raise MalformedPayloadError("product payload has no identifier")

    try:
        return _build_product(raw, product_id)
    except (TypeError, ValueError, AttributeError) as e:
        raise MalformedPayloadError(f"product {product_id}: unexpected payload shape: {e}") from e


def _build_product(raw: Mapping[str, Any], product_id: str) -> Product:
    raw_defs = raw.get("attributes") if isinstance(raw.get("attributes"), list) else []
    attribute_defs = [
        d for d in (normalize_attribute_definition(a) for a in raw_defs if isinstance(a, Mapping))
        if d.name
    ]
    attribute_names = [d.name for d in attribute_defs]

    raw_variants = raw.get("variants") if isinstance(raw.get("variants"), list) else []
    variants = [normalize_variant(v, attribute_names) for v in raw_variants if isinstance(v, Mapping)]

    category = raw.get("category")
    if isinstance(category, Mapping):
        category_id = _as_string(category.get("_id") or category.get("id"))
        category_name = _as_string(category.get("name")) or None
    else:
        category_id = _as_string(category)
        category_name = None

    price = _as_number(raw.get("merchantPrice"))
    if price is None:
        price = _as_number(raw.get("price"))

    stock = _as_number(raw.get("stock"))

    return Product(
        id=product_id,
        name=_as_string(raw.get("name")),
        description=_as_string(raw.get("description")),
        price=price,
        discount_price=_as_number(raw.get("discountPrice")),
        final_price=_as_number(raw.get("finalPrice")),
        markup_percent=_as_number(raw.get("nubianMarkup", raw.get("markupPercent"))),
        dynamic_markup_percent=_as_number(raw.get("dynamicMarkup", raw.get("dynamicMarkupPercent"))),
        # top-level stock is not authoritative once variants exist
        stock=None if variants or stock is None else int(stock),
        is_active=_is_active(raw),
        deleted_at=_as_string(raw.get("deletedAt")) or None,
        images=_as_string_list(raw.get("images")),
        category_id=category_id,
        category_name=category_name,
        merchant_id=None if raw.get("merchant") is None else _as_string(raw.get("merchant")),
        attribute_defs=attribute_defs,
        variants=variants,
    )


def normalize_listing(payload: Any) -> List[Product]:
    """
    Convert a listing payload (explore / home feeds) into partial products.

    Accepts a bare list, {"data": [...]}, or {"data": {"products": [...]}}.
    Items without an identifier are skipped.
    """
    items = unwrap_envelope(payload)
    if isinstance(items, Mapping):
        items = items.get("products") or items.get("items") or []
    if not isinstance(items, list):
        return []

    products: List[Product] = []
    for item in items:
        try:
            products.append(normalize_product(item))
        except MalformedPayloadError:
            continue
    return products
