"""
Storefront engine: product variant resolution and client-side caching.

Pure decision functions (normalize, match_variant, evaluate, build_key) can be
used on their own; create_storefront() wires the caches and API clients.
"""

from storefront.cache.entity_cache import CacheState, EntityCache
from storefront.cart.line_key import build_key
from storefront.catalog.attributes import normalize
from storefront.catalog.models import AttributeDefinition, Cart, CartLine, Product, Variant
from storefront.core.config import EngineConfig, get_config, set_config
from storefront.core.engine import Storefront, create_storefront
from storefront.core.errors import (
    ApiError,
    AuthExpiredError,
    MalformedPayloadError,
    NetworkTransientError,
    NotFoundError,
    StorefrontError,
)
from storefront.variants.availability import Availability, AvailabilityReason, evaluate
from storefront.variants.matcher import match_variant

__version__ = '0.1.0'

__all__ = [
    'normalize',
    'match_variant',
    'evaluate',
    'build_key',
    'Availability',
    'AvailabilityReason',
    'AttributeDefinition',
    'Cart',
    'CartLine',
    'Product',
    'Variant',
    'CacheState',
    'EntityCache',
    'EngineConfig',
    'get_config',
    'set_config',
    'Storefront',
    'create_storefront',
    'StorefrontError',
    'NetworkTransientError',
    'AuthExpiredError',
    'NotFoundError',
    'ApiError',
    'MalformedPayloadError',
]
