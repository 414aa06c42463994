"""Read-through caches for storm data sources.

Caches provider responses with per-source TTLs to bound external call volume.
Each adapter receives its cache at construction; callers build keys from
rounded coordinates (and rounded timestamps) so near-duplicate queries share
a cache line.
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol, runtime_checkable

import redis.asyncio as redis

from stormintel.config import Settings

logger = logging.getLogger(__name__)


@runtime_checkable
class Cache(Protocol):
    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss or after expiry."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store a value for ttl_seconds."""
        ...


@dataclass
class CacheEntry:
    data: Any
    expires_at: float


class MemoryCache:
    """In-process TTL cache.

    Expired entries are removed on read, and swept in one pass whenever a write
    pushes the cache past ``max_entries``. There is no background sweep.
    """

    def __init__(self, max_entries: int = 500, clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        logger.debug("Cache hit: %s", key)
        return entry.data

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._entries[key] = CacheEntry(data=value, expires_at=self._clock() + ttl_seconds)
        if len(self._entries) > self.max_entries:
            self._prune()

    def _prune(self) -> None:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Pruned %d expired cache entries", len(expired))


class RedisCache:
    """Redis-backed cache. Values must be JSON-serializable.

    Redis being unreachable degrades to cache misses rather than failing the lookup.
    """

    def __init__(self, url: str, prefix: str = "stormintel", client: redis.Redis | None = None):
        self.prefix = prefix
        self._client = client or redis.from_url(url, decode_responses=True)

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(self._key(key))
        except Exception:
            logger.warning("Redis unavailable, skipping cache for %s", key)
            return None
        if raw is None:
            return None
        logger.debug("Cache hit: %s", key)
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self._client.setex(self._key(key), ttl_seconds, json.dumps(value, default=str))
        except Exception:
            logger.warning("Failed to write cache for %s", key)


def build_cache(settings: Settings) -> Cache:
    """Create the cache backend selected by ``settings.cache_backend``."""
    backend = settings.cache_backend.lower()
    if backend == "redis":
        return RedisCache(settings.redis_url)
    if backend == "memory":
        return MemoryCache(max_entries=settings.cache_max_entries)
    raise ValueError(f"Unknown cache backend: {settings.cache_backend}")


def round_coord(value: float, places: int = 3) -> str:
    """Round a coordinate to ``places`` decimals (~110 m at 3) for use in a key."""
    return f"{round(value, places):.{places}f}"


def round_timestamp(dt: datetime, minutes: int = 5) -> datetime:
    """Round a timestamp to the nearest ``minutes`` interval."""
    step = timedelta(minutes=minutes)
    floor = dt.replace(second=0, microsecond=0) - timedelta(minutes=dt.minute % minutes)
    remainder = dt - floor
    return floor + step if remainder * 2 >= step else floor


def make_key(prefix: str, *parts: Any) -> str:
    """Join key parts, e.g. ``make_key("nws", "37.541", "-77.436")``."""
    return ":".join([prefix, *(str(p) for p in parts)])
