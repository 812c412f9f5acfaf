"""Remote endpoint clients (catalog, cart)."""

from storefront.api.cart import CartApi, build_payload, parse_cart
from storefront.api.catalog import ProductCatalog

__all__ = ['CartApi', 'ProductCatalog', 'build_payload', 'parse_cart']
