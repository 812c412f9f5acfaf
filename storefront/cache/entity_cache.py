"""
Entity cache with TTL, in-flight request deduplication and prefetch.

Per-key states:
  ABSENT  → nothing stored (or a FULL entry older than the TTL)
  PARTIAL → seeded from a listing; never expires, never served by get_or_fetch
  FULL    → stored by a completed fetch; fresh for `ttl_seconds`

A FULL entry is only replaced by a newer fetch or removed by invalidate/clear;
seed_partial never downgrades it.

The in-flight registry holds one asyncio.Task per key. Every caller that asks
for a key while its fetch is running awaits that same task through
asyncio.shield, so a caller that is cancelled (or stops waiting) does not
cancel the fetch; the result still lands in the cache for the next reader.

Usage:
    cache = EntityCache(fetch_product, ttl_seconds=60)
    product = await cache.get_or_fetch("p1")
    cache.seed_partial("p2", listing_item)
    cache.prefetch("p3")
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Generic, Optional, Set, TypeVar

from storefront.cache.policy import DEFAULT_ENTITY_TTL
from storefront.core.errors import AuthExpiredError, StorefrontError
from storefront.utils.logger import get_logger

logger = get_logger("entity_cache")

T = TypeVar("T")


class CacheState(str, Enum):
    ABSENT = "ABSENT"
    PARTIAL = "PARTIAL"
    FULL = "FULL"


@dataclass
class CacheEntry(Generic[T]):
    data: T
    fetched_at: float
    partial: bool


class EntityCache(Generic[T]):
    """
    Process-scoped cache for remotely fetched entities.

    Construct one per entity type and inject it; there is no module-level
    instance.
    """

    def __init__(
        self,
        fetcher: Callable[[str], Awaitable[Optional[T]]],
        ttl_seconds: float = DEFAULT_ENTITY_TTL,
        clock: Callable[[], float] = time.monotonic,
        name: str = "entity",
    ):
        """
        Args:
            fetcher: Coroutine function loading the full entity for a key.
                Returning None means "does not exist"; StorefrontError means
                the fetch failed.
            ttl_seconds: Freshness window for FULL entries
            clock: Monotonic time source (seconds), injectable for tests
            name: Label used in log lines
        """
        self._fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.name = name

        self._entries: Dict[str, CacheEntry[T]] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()

        self.stats = {
            "hits": 0,
            "misses": 0,
            "dedup_waits": 0,
            "fetches": 0,
            "errors": 0,
        }

    #
    # Inspection
    #

    def peek(self, key: str) -> Optional[CacheEntry[T]]:
        """Stored entry regardless of freshness (for instant first render)."""
        return self._entries.get(key)

    def is_fresh(self, key: str) -> bool:
        entry = self._entries.get(key)
        return (
            entry is not None
            and not entry.partial
            and (self._clock() - entry.fetched_at) < self.ttl_seconds
        )

    def state(self, key: str) -> CacheState:
        entry = self._entries.get(key)
        if entry is None:
            return CacheState.ABSENT
        if entry.partial:
            return CacheState.PARTIAL
        return CacheState.FULL if self.is_fresh(key) else CacheState.ABSENT

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def __len__(self) -> int:
        return len(self._entries)

    #
    # Reads
    #

    async def get_or_fetch(self, key: str) -> Optional[T]:
        """
        Return the fresh FULL entry, join a running fetch, or start one.

        Returns None when the entity does not exist or the fetch failed.

        Raises:
            ValueError: empty key
            AuthExpiredError: the fetch hit HTTP 401 (raised to every waiter)
        """
        if not key:
            raise ValueError(f"{self.name} cache key is required")

        entry = self._entries.get(key)
        if entry is not None and self.is_fresh(key):
            self.stats["hits"] += 1
            logger.debug("entity_cache: name=%s key=%s result=hit age=%.1fs",
                         self.name, key, self._clock() - entry.fetched_at)
            return entry.data

        task = self._in_flight.get(key)
        if task is None:
            self.stats["misses"] += 1
            task = asyncio.get_running_loop().create_task(self._fetch(key))
            task.add_done_callback(retrieve_exception)
            self._in_flight[key] = task
        else:
            self.stats["dedup_waits"] += 1
            logger.debug("entity_cache: name=%s key=%s result=dedup_wait", self.name, key)

        return await asyncio.shield(task)

    async def _fetch(self, key: str) -> Optional[T]:
        this_task = asyncio.current_task()
        self.stats["fetches"] += 1
        start = self._clock()
        try:
            data = await self._fetcher(key)
        except AuthExpiredError:
            self.stats["errors"] += 1
            logger.warning("entity_cache: name=%s key=%s result=auth_expired", self.name, key)
            raise
        except StorefrontError as e:
            self.stats["errors"] += 1
            logger.warning("entity_cache: name=%s key=%s result=error error=%s", self.name, key, e)
            return None
        finally:
            if self._in_flight.get(key) is this_task:
                del self._in_flight[key]

        if data is None:
            logger.info("entity_cache: name=%s key=%s result=not_found", self.name, key)
            return None

        self._entries[key] = CacheEntry(data=data, fetched_at=self._clock(), partial=False)
        logger.debug("entity_cache: name=%s key=%s result=stored duration=%.3fs",
                     self.name, key, self._clock() - start)
        return data

    #
    # Writes
    #

    def seed_partial(self, key: str, data: T) -> bool:
        """
        Store list-view data so a detail screen can render before the full fetch.

        Returns False (and stores nothing) when a FULL entry already exists,
        fresh or not.
        """
        if not key:
            raise ValueError(f"{self.name} cache key is required")
        existing = self._entries.get(key)
        if existing is not None and not existing.partial:
            return False
        self._entries[key] = CacheEntry(data=data, fetched_at=self._clock(), partial=True)
        return True

    def prefetch(self, key: str) -> Optional[asyncio.Task]:
        """
        Fire-and-forget get_or_fetch. Never raises.

        Returns the background task, or None when the key is already fresh,
        already in flight, or there is no running event loop.
        """
        if not key or self.is_fresh(key) or key in self._in_flight:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("entity_cache: name=%s key=%s prefetch skipped (no event loop)", self.name, key)
            return None

        task = loop.create_task(self._prefetch(key))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _prefetch(self, key: str) -> None:
        try:
            await self.get_or_fetch(key)
        except StorefrontError as e:
            logger.info("entity_cache: name=%s key=%s prefetch failed error=%s", self.name, key, e)

    def invalidate(self, key: str) -> bool:
        """Drop one entry. A fetch already running for the key still completes."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry and forget in-flight fetches (they still complete)."""
        self._entries.clear()
        self._in_flight.clear()

    def get_stats(self) -> Dict[str, float]:
        total = self.stats["hits"] + self.stats["misses"] + self.stats["dedup_waits"]
        hit_rate = (self.stats["hits"] / total * 100) if total > 0 else 0
        return {
            **self.stats,
            "entries": len(self._entries),
            "in_flight": len(self._in_flight),
            "hit_rate_percent": round(hit_rate, 2),
        }


def retrieve_exception(task: asyncio.Task) -> None:
    # Waiters may all have been cancelled; mark the exception as retrieved.
    if not task.cancelled():
        task.exception()
