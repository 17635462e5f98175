"""
Two-tier read cache for task payloads.

L1 is a process-local ``TTLCache``. L2 is Redis, shared by every worker, and
is left out when ``redis_dsn`` is empty or Redis cannot be reached at startup.

Every key has a generation, and values are stored under ``<key>@<generation>``.
``invalidate`` bumps the generation after a write has committed, so a load
that read the row before the write stores its result in a slot no reader
looks at any more. Generations live in Redis while L2 is up, which keeps the
L1 copies of all workers consistent, and in a local table otherwise.
"""

import asyncio
import itertools
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from cachetools import TTLCache
from redis.asyncio import Redis, RedisError

from task_tracker.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]

# upper bound on how long a single load may take
LOAD_GRACE_SECONDS = 300


class TaskCache:
    def __init__(self, settings: Settings | None = None):
        self._settings = settings
        self._redis: Redis | None = None
        self.l1: TTLCache | None = None
        self._generations: TTLCache | None = None
        self._counter = itertools.count(1)
        self._locks: TTLCache | None = None
        self._initialized = False

        self.stats = {
            "l1_hits": 0,
            "l2_hits": 0,
            "misses": 0,
            "errors": 0,
            "invalidations": 0,
        }

    async def init_cache(self):
        if self._initialized:
            return

        if self._settings is None:
            self._settings = get_settings()
        settings = self._settings

        if self.l1 is None:
            self.l1 = TTLCache(maxsize=settings.l1_maxsize, ttl=settings.l1_ttl_seconds)
            # a generation must outlive every L1 entry stored under it
            self._generations = TTLCache(
                maxsize=max(settings.l1_maxsize * 8, 10_000),
                ttl=settings.l1_ttl_seconds + LOAD_GRACE_SECONDS,
            )
            self._locks = TTLCache(maxsize=10_000, ttl=LOAD_GRACE_SECONDS)

        if not settings.redis_dsn:
            logger.info("Redis disabled, task cache runs on L1 only")
            self._initialized = True
            return

        try:
            self._redis = Redis.from_url(
                settings.redis_dsn,
                encoding="utf-8",
                decode_responses=True,
                max_connections=settings.redis_pool_size,
                socket_connect_timeout=5,
                health_check_interval=30,
            )
            await self._redis.ping()
            logger.info("Task cache connected to Redis")
        except RedisError as e:
            logger.error(f"Redis unavailable, task cache runs on L1 only: {e}")
            self._redis = None

        self._initialized = True

    @staticmethod
    def _slot(key: str, generation: int) -> str:
        return f"{key}@{generation}"

    def _l2_key(self, slot: str) -> str:
        return f"{self._settings.cache_namespace}{slot}"

    def _generation_key(self, key: str) -> str:
        return f"{self._settings.cache_namespace}gen:{key}"

    async def _generation(self, key: str) -> int | None:
        """Current generation of ``key``, or None when Redis cannot tell."""
        if self._redis is None:
            return self._generations.get(key, 0)
        try:
            raw = await self._redis.get(self._generation_key(key))
        except RedisError as e:
            logger.error(f"Redis generation read failed for {key}: {e}")
            self.stats["errors"] += 1
            return None
        return int(raw) if raw else 0

    async def _read_l2(self, slot: str) -> Any:
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get(self._l2_key(slot))
        except RedisError as e:
            logger.error(f"Redis GET failed for {slot}: {e}")
            self.stats["errors"] += 1
            return None
        return None if raw is None else json.loads(raw)

    async def _store(self, key: str, generation: int, value: Any, ttl: int | None):
        slot = self._slot(key, generation)
        self.l1[slot] = value

        if self._redis is None:
            # invalidated while loading; the slot could resurface if the
            # generation entry is ever evicted
            if self._generations.get(key, 0) != generation:
                self.l1.pop(slot, None)
            return

        # never outlive the generation key
        ttl = min(ttl or self._settings.l2_ttl_seconds, self._settings.l2_ttl_seconds)
        try:
            await self._redis.set(self._l2_key(slot), json.dumps(value), ex=ttl)
        except RedisError as e:
            logger.error(f"Redis SET failed for {slot}: {e}")
            self.stats["errors"] += 1

    async def get(
        self, key: str, loader: Optional[Loader] = None, ttl: Optional[int] = None
    ):
        """
        Return the cached value for ``key``, loading it on a miss.

        Concurrent misses for the same slot share one load. ``None`` results
        are never cached. When the generation cannot be read the loader is
        called directly and nothing is stored.
        """
        await self.init_cache()

        generation = await self._generation(key)
        if generation is None:
            self.stats["misses"] += 1
            return await loader() if loader else None

        slot = self._slot(key, generation)
        if slot in self.l1:
            self.stats["l1_hits"] += 1
            return self.l1[slot]

        value = await self._read_l2(slot)
        if value is not None:
            self.stats["l2_hits"] += 1
            self.l1[slot] = value
            return value

        if loader is None:
            self.stats["misses"] += 1
            return None

        lock = self._locks.setdefault(slot, asyncio.Lock())
        async with lock:
            if slot in self.l1:
                self.stats["l1_hits"] += 1
                return self.l1[slot]

            self.stats["misses"] += 1
            logger.debug(f"Loading {slot}")
            value = await loader()
            if value is not None:
                await self._store(key, generation, value, ttl)
            return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None):
        await self.init_cache()
        generation = await self._generation(key)
        if generation is not None:
            await self._store(key, generation, value, ttl)

    async def invalidate(self, key: str):
        """Retire every value cached for ``key`` so far, in all workers."""
        await self.init_cache()
        self.stats["invalidations"] += 1
        self._generations[key] = next(self._counter)

        if self._redis is None:
            return
        generation_key = self._generation_key(key)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.incr(generation_key).expire(
                    generation_key, self._settings.l2_ttl_seconds + LOAD_GRACE_SECONDS
                ).execute()
        except RedisError as e:
            logger.error(f"Redis invalidation failed for {key}: {e}")
            self.stats["errors"] += 1

    async def replace(self, key: str, value: Any, ttl: Optional[int] = None):
        """Invalidate ``key`` and cache ``value`` as its newest version."""
        await self.invalidate(key)
        await self.set(key, value, ttl)

    def clear_local(self):
        if self.l1 is not None:
            self.l1.clear()
            self._generations.clear()

    async def close(self):
        if self._redis:
            try:
                await self._redis.aclose()
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.error(f"Error closing Redis: {e}")
        self._redis = None
        self._initialized = False

    def get_stats(self) -> dict:
        lookups = self.stats["l1_hits"] + self.stats["l2_hits"] + self.stats["misses"]
        return {
            **self.stats,
            "l1_size": len(self.l1) if self.l1 is not None else 0,
            "l1_maxsize": self.l1.maxsize if self.l1 is not None else 0,
            "l2_enabled": self._redis is not None,
            "hit_rate": (
                (self.stats["l1_hits"] + self.stats["l2_hits"]) / lookups if lookups else 0
            ),
        }


# one instance per worker
task_cache = TaskCache()
