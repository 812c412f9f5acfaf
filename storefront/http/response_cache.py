"""
GET response cache, mirrored to a persistent key-value store.

Envelopes live in memory for lookups and are written through to the store on
every update, so a restarted process can load() them back. Only successful
idempotent reads are stored.

Stored value layout (JSON):
    {"path": "/products/p1", "data": <body>, "timestamp": 1700000000.0, "scoped": true}
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from storefront.cache.policy import CACHE_KEY_PREFIX, DEFAULT_HTTP_CACHE_TTL, resource_family
from storefront.http.store import KeyValueStore
from storefront.utils.logger import get_logger

logger = get_logger("response_cache")


@dataclass
class CacheEnvelope:
    key: str
    path: str
    data: Any
    timestamp: float
    scoped: bool = False       # fetched with an Authorization header


class ResponseCache:
    """TTL cache of GET bodies keyed by path + canonical query params."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = DEFAULT_HTTP_CACHE_TTL,
        prefix: str = CACHE_KEY_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix
        self._clock = clock
        self._entries: Dict[str, CacheEnvelope] = {}

        self.stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "deletes": 0,
            "errors": 0,
        }

    def __len__(self) -> int:
        return len(self._entries)

    async def load(self) -> int:
        """Load persisted envelopes into memory. Returns count loaded."""
        loaded = 0
        for store_key in await self._store.keys(self.prefix):
            raw = await self._store.get(store_key)
            if raw is None:
                continue
            try:
                payload = json.loads(raw)
                envelope = CacheEnvelope(
                    key=store_key[len(self.prefix):],
                    path=payload["path"],
                    data=payload["data"],
                    timestamp=float(payload["timestamp"]),
                    scoped=bool(payload.get("scoped", False)),
                )
            except (ValueError, KeyError, TypeError) as e:
                self.stats["errors"] += 1
                logger.warning("response_cache: corrupt entry key=%s error=%s", store_key, e)
                await self._store.delete(store_key)
                continue
            self._entries[envelope.key] = envelope
            loaded += 1
        logger.info("response_cache: loaded entries=%s", loaded)
        return loaded

    def get(self, key: str) -> Optional[CacheEnvelope]:
        """Fresh envelope for `key`, or None (stale entries are kept until overwritten)."""
        envelope = self._entries.get(key)
        if envelope is None or (self._clock() - envelope.timestamp) >= self.ttl_seconds:
            self.stats["misses"] += 1
            return None
        self.stats["hits"] += 1
        return envelope

    async def put(self, key: str, path: str, data: Any, scoped: bool = False) -> CacheEnvelope:
        envelope = CacheEnvelope(key=key, path=path, data=data, timestamp=self._clock(), scoped=scoped)
        self._entries[key] = envelope
        self.stats["sets"] += 1
        try:
            serialized = json.dumps({
                "path": path,
                "data": data,
                "timestamp": envelope.timestamp,
                "scoped": scoped,
            })
        except (TypeError, ValueError) as e:
            self.stats["errors"] += 1
            logger.warning("response_cache: body not serializable key=%s error=%s", key, e)
            return envelope
        if not await self._store.set(self.prefix + key, serialized):
            self.stats["errors"] += 1
        return envelope

    async def invalidate(self, key: str) -> bool:
        removed = self._entries.pop(key, None) is not None
        await self._store.delete(self.prefix + key)
        if removed:
            self.stats["deletes"] += 1
        return removed

    async def invalidate_family(self, family: str) -> int:
        """Drop every envelope whose path belongs to `family` (first path segment)."""
        keys = [k for k, env in self._entries.items() if resource_family(env.path) == family]
        return await self._drop(keys)

    async def drop_scoped(self) -> int:
        """Drop envelopes fetched with the (now cleared) credential."""
        keys = [k for k, env in self._entries.items() if env.scoped]
        return await self._drop(keys)

    async def clear(self) -> int:
        """Empty memory and prune every prefixed key from the store."""
        self._entries.clear()
        deleted = await self._store.delete_prefix(self.prefix)
        self.stats["deletes"] += deleted
        return deleted

    async def _drop(self, keys) -> int:
        for key in keys:
            self._entries.pop(key, None)
        if keys:
            await self._store.delete(*(self.prefix + k for k in keys))
            self.stats["deletes"] += len(keys)
        return len(keys)

    def get_stats(self) -> Dict[str, Any]:
        total_requests = self.stats["hits"] + self.stats["misses"]
        hit_rate = (self.stats["hits"] / total_requests * 100) if total_requests > 0 else 0
        return {
            **self.stats,
            "entries": len(self._entries),
            "total_requests": total_requests,
            "hit_rate_percent": round(hit_rate, 2),
        }
