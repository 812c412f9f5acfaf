"""
Storefront assembly.

create_storefront() builds every component from an EngineConfig and wires
them together. Nothing here is a module-level singleton: tests and
multi-tenant hosts build as many instances as they need.

Usage:
    storefront = create_storefront()
    await storefront.startup()
    product = await storefront.catalog.get_product("p1")
    await storefront.aclose()
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from storefront.api.cart import CartApi
from storefront.api.catalog import ProductCatalog
from storefront.core.config import EngineConfig, get_config
from storefront.http.client import ApiClient
from storefront.http.credentials import TokenStore
from storefront.http.response_cache import ResponseCache
from storefront.http.store import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore
from storefront.utils.logger import configure_logging, get_logger

logger = get_logger("engine")


@dataclass
class Storefront:
    config: EngineConfig
    store: KeyValueStore
    credentials: TokenStore
    client: ApiClient
    catalog: ProductCatalog
    cart: CartApi

    async def startup(self) -> int:
        """Load persisted response envelopes. Returns count loaded."""
        return await self.client.cache.load()

    async def aclose(self) -> None:
        await self.client.aclose()
        await self.store.close()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "products": self.catalog.cache.get_stats(),
            "responses": self.client.cache.get_stats(),
        }


def _request_headers(config: EngineConfig) -> Dict[str, str]:
    headers = {}
    if config.currency_code:
        headers["x-currency"] = config.currency_code
    if config.country_code:
        headers["x-country"] = config.country_code
    return headers


def create_storefront(
    config: Optional[EngineConfig] = None,
    store: Optional[KeyValueStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Storefront:
    """
    Build a Storefront.

    Args:
        config: Defaults to get_config()
        store: Persistent store; defaults to Redis when config.redis_url is
            set, otherwise an in-memory store
        transport: httpx transport override (tests use httpx.MockTransport)
        sleep: Backoff sleep, injectable for tests
    """
    config = config or get_config()
    configure_logging(config.log_level)
    if store is None:
        if config.redis_url:
            store = RedisKeyValueStore.from_url(config.redis_url)
        else:
            store = MemoryKeyValueStore()

    credentials = TokenStore(store, key=config.token_key)
    response_cache = ResponseCache(
        store,
        ttl_seconds=config.http_cache_ttl_seconds,
        prefix=config.cache_key_prefix,
    )
    client = ApiClient(
        config.api_base_url,
        cache=response_cache,
        credentials=credentials,
        timeout=config.request_timeout,
        max_retries=config.max_retries,
        retry_base_delay=config.retry_base_delay,
        retryable_status_codes=config.retryable_status_codes,
        default_headers=_request_headers(config),
        transport=transport,
        sleep=sleep,
    )
    catalog = ProductCatalog(
        client,
        ttl_seconds=config.entity_ttl_seconds,
        currency_code=config.currency_code,
    )
    cart = CartApi(client, catalog=catalog)

    logger.info("engine: base_url=%s store=%s entity_ttl=%ss http_ttl=%ss max_retries=%s",
                config.api_base_url, type(store).__name__, config.entity_ttl_seconds,
                config.http_cache_ttl_seconds, config.max_retries)
    return Storefront(
        config=config,
        store=store,
        credentials=credentials,
        client=client,
        catalog=catalog,
        cart=cart,
    )
