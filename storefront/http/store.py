"""
Persistent key-value stores backing the HTTP response cache and credentials.

The store is ONLY a cache mirror, never the source of truth: read and write
failures are logged and treated as misses.

Backends:
- MemoryKeyValueStore: process-local dict (tests, ephemeral sessions)
- RedisKeyValueStore: redis-py asyncio client; supports local Redis and
  Upstash (cloud-hosted) via UPSTASH_REDIS_URL
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from storefront.utils.logger import get_logger

logger = get_logger("store")


class KeyValueStore(ABC):
    """Async string -> string store with prefix listing."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> bool:
        ...

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        ...

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        ...

    async def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with `prefix`. Returns count deleted."""
        keys = await self.keys(prefix)
        if not keys:
            return 0
        return await self.delete(*keys)

    async def close(self) -> None:
        return None


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> bool:
        self._data[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    async def keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._data if k.startswith(prefix)]


class RedisKeyValueStore(KeyValueStore):
    """
    Redis-backed store.

    Connection priority (from_env):
    1. UPSTASH_REDIS_URL (cloud-hosted, rediss:// TLS)
    2. REDIS_HOST + REDIS_PORT + REDIS_DB (local)
    """

    def __init__(self, client: aioredis.Redis, namespace: str = "storefront"):
        self.client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "storefront") -> "RedisKeyValueStore":
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return cls(client, namespace=namespace)

    @classmethod
    def from_env(cls, namespace: str = "storefront") -> "RedisKeyValueStore":
        upstash_url = os.getenv("UPSTASH_REDIS_URL")
        if upstash_url:
            return cls.from_url(upstash_url, namespace=namespace)

        client = aioredis.Redis(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            db=int(os.getenv("REDIS_DB", "0")),
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        return cls(client, namespace=namespace)

    def _key(self, key: str) -> str:
        """Prefix key with namespace."""
        return f"{self.namespace}:{key}"

    def _strip(self, key: str) -> str:
        return key[len(self.namespace) + 1:]

    async def ping(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError):
            return False

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(self._key(key))
        except RedisError as e:
            logger.warning("store: read error key=%s error=%s", key, e)
            return None

    async def set(self, key: str, value: str) -> bool:
        try:
            await self.client.set(self._key(key), value)
            return True
        except RedisError as e:
            logger.warning("store: write error key=%s error=%s", key, e)
            return False

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self.client.delete(*(self._key(k) for k in keys)))
        except RedisError as e:
            logger.warning("store: delete error keys=%s error=%s", len(keys), e)
            return 0

    async def keys(self, prefix: str = "") -> List[str]:
        try:
            pattern = self._key(f"{prefix}*")
            return [self._strip(k) async for k in self.client.scan_iter(match=pattern, count=100)]
        except RedisError as e:
            logger.warning("store: scan error prefix=%s error=%s", prefix, e)
            return []

    async def close(self) -> None:
        await self.client.aclose()
