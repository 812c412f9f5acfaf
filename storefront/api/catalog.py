"""
Catalog endpoint client: product detail and listing reads, wired to the Entity Cache.

Endpoints:
    GET /products/{id}        → one product (detail)
    GET /products/explore     → listing; items seed PARTIAL cache entries

The Entity Cache sits in front of the HTTP response cache: a fresh FULL entry
answers get_product without touching the client at all.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from storefront.cache.entity_cache import CacheEntry, EntityCache
from storefront.cache.policy import DEFAULT_ENTITY_TTL
from storefront.catalog.models import Product
from storefront.catalog.normalize import normalize_listing, normalize_product
from storefront.core.errors import MalformedPayloadError, NotFoundError
from storefront.http.client import ApiClient
from storefront.utils.logger import get_logger

logger = get_logger("catalog")

PRODUCT_PATH = "/products/{product_id}"
EXPLORE_PATH = "/products/explore"


class ProductCatalog:
    """Product reads through an explicitly owned EntityCache."""

    def __init__(
        self,
        client: ApiClient,
        ttl_seconds: float = DEFAULT_ENTITY_TTL,
        clock: Callable[[], float] = time.monotonic,
        currency_code: Optional[str] = None,
    ):
        self.client = client
        self.currency_code = currency_code
        self.cache: EntityCache[Product] = EntityCache(
            self.fetch_product, ttl_seconds=ttl_seconds, clock=clock, name="product",
        )

    def _params(self) -> Dict[str, Any]:
        return {"currencyCode": self.currency_code} if self.currency_code else {}

    async def fetch_product(self, product_id: str) -> Optional[Product]:
        """
        Load one product from the backend, bypassing the Entity Cache.

        Returns None on HTTP 404.

        Raises:
            MalformedPayloadError: body has no product identifier
            NetworkTransientError / AuthExpiredError / ApiError: from the client
        """
        path = PRODUCT_PATH.format(product_id=product_id)
        params = self._params()
        try:
            response = await self.client.get(path, params=params)
        except NotFoundError:
            logger.info("catalog: method=fetch_product product_id=%s result=not_found", product_id)
            return None

        try:
            return normalize_product(response.data)
        except MalformedPayloadError:
            # keep the bad body out of the response cache too
            await self.client.invalidate(path, params)
            logger.warning("catalog: method=fetch_product product_id=%s result=malformed", product_id)
            raise

    async def get_product(self, product_id: str) -> Optional[Product]:
        """Fresh product from the Entity Cache, or None if absent / failed."""
        return await self.cache.get_or_fetch(product_id)

    def prefetch_product(self, product_id: str) -> Optional[asyncio.Task]:
        """Warm the cache for a likely next read (e.g. on hover or scroll into view)."""
        return self.cache.prefetch(product_id)

    def peek_product(self, product_id: str) -> Optional[CacheEntry[Product]]:
        """Whatever is cached for the product, partial or stale included."""
        return self.cache.peek(product_id)

    async def invalidate_product(self, product_id: str) -> None:
        """Drop the product from both caches after a known mutation."""
        self.cache.invalidate(product_id)
        await self.client.invalidate(PRODUCT_PATH.format(product_id=product_id), self._params())

    async def explore(self, params: Optional[Mapping[str, Any]] = None) -> List[Product]:
        """
        Fetch a product listing and seed PARTIAL entries for every item.

        Seeding never replaces a FULL entry. A 404 reads as an empty listing.
        """
        query = {**self._params(), **dict(params or {})}
        try:
            response = await self.client.get(EXPLORE_PATH, params=query)
        except NotFoundError:
            logger.info("catalog: method=explore result=not_found")
            return []
        products = normalize_listing(response.data)

        seeded = sum(1 for p in products if self.cache.seed_partial(p.id, p))
        logger.info("catalog: method=explore items=%s seeded=%s", len(products), seeded)
        return products
