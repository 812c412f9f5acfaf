"""Cart line identity and local cart state."""

from storefront.cart.line_key import build_key
from storefront.cart.lines import CartState, CartValidation, cart_total, validate_cart

__all__ = ['build_key', 'CartState', 'CartValidation', 'cart_total', 'validate_cart']
