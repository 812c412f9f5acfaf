"""Catalog data model, attribute normalization and payload conversion."""

from storefront.catalog.attributes import normalize, normalize_key, normalize_value
from storefront.catalog.models import AttributeDefinition, Cart, CartLine, Product, Variant

__all__ = [
    'normalize',
    'normalize_key',
    'normalize_value',
    'AttributeDefinition',
    'Cart',
    'CartLine',
    'Product',
    'Variant',
]
