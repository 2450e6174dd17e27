"""
Fetch-once memoization for provider calls.

Wraps every external fetch so that:
- A valid entry is returned without calling the producer
- At most one producer call per key is in flight. The call runs as a
  task owned by the cache, so cancelling one caller never cancels the
  fetch other callers are waiting on. Every caller shares its result
  or its exception
- Failures are never cached, so the next caller retries

Usage:
    cache = FetchOnceCache(settings.cache_ttls)
    key = CacheKey.of(CacheKind.ACTIVITIES, day, provider="strava")
    activities = await cache.fetch(key, lambda: client.get_activities(...))
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Tuple, TypeVar

from ..config import CacheTTLs

logger = logging.getLogger(__name__)

V = TypeVar("V")


class CacheKind(str, Enum):
    """Categories of cached data, each with its own TTL."""

    ACTIVITIES = "activities"
    HEALTH_METRICS = "health_metrics"
    WELLNESS = "wellness"
    BASELINES = "baselines"
    DAILY_SCORES = "daily_scores"
    STREAMS = "streams"
    ILLNESS = "illness"


@dataclass(frozen=True)
class CacheKey:
    """Structured cache key: (kind, day, sorted parameters)."""

    kind: CacheKind
    day: Optional[date] = None
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, kind: CacheKind, day: Optional[date] = None, **params: Any) -> "CacheKey":
        return cls(kind=kind, day=day, params=tuple(sorted(params.items())))

    def __str__(self) -> str:
        parts = [self.kind.value]
        if self.day is not None:
            parts.append(self.day.isoformat())
        parts.extend(f"{k}={v}" for k, v in self.params)
        return ":".join(parts)


@dataclass
class CacheEntry(Generic[V]):
    key: CacheKey
    value: V
    fetched_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.fetched_at < self.ttl


@dataclass
class CacheStatistics:
    """Counters for cache effectiveness."""

    hits: int = 0
    misses: int = 0
    deduplicated: int = 0
    failures: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses + self.deduplicated
        if lookups == 0:
            return 0.0
        return (self.hits + self.deduplicated) / lookups

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "deduplicated": self.deduplicated,
            "failures": self.failures,
            "hit_rate": round(self.hit_rate, 3),
        }


class FetchOnceCache:
    """TTL cache guaranteeing a single in-flight producer call per key.

    All mutation of entries and in-flight futures happens under one
    ``asyncio.Lock``. Reading an already-resolved entry takes no lock.
    """

    def __init__(
        self,
        ttls: Optional[CacheTTLs] = None,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        self._ttls = ttls or CacheTTLs()
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._in_flight: Dict[CacheKey, asyncio.Future] = {}
        self._lock = asyncio.Lock()
        self._stats = CacheStatistics()

    @property
    def statistics(self) -> CacheStatistics:
        return self._stats

    def ttl_for(self, kind: CacheKind) -> float:
        return float(getattr(self._ttls, kind.value))

    def peek(self, key: CacheKey) -> Optional[Any]:
        """Return a valid cached value without fetching."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_valid(self._clock()):
            return entry.value
        return None

    def contains(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_valid(self._clock())

    async def fetch(
        self,
        key: CacheKey,
        producer: Callable[[], Awaitable[V]],
        ttl: Optional[float] = None,
    ) -> V:
        """
        Return the cached value for ``key`` or produce it exactly once.

        Args:
            key: Structured cache key
            producer: Zero-argument coroutine function that fetches the value
            ttl: Seconds the value stays valid; defaults to the kind's TTL

        Returns:
            The cached or freshly produced value

        Raises:
            Whatever the producer raised, identically for every waiter
        """
        entry = self._entries.get(key)
        if entry is not None and entry.is_valid(self._clock()):
            self._stats.hits += 1
            return entry.value

        async with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_valid(self._clock()):
                self._stats.hits += 1
                return entry.value

            task = self._in_flight.get(key)
            if task is not None:
                self._stats.deduplicated += 1
                self._logger.debug(f"Awaiting in-flight fetch for {key}")
            else:
                self._stats.misses += 1
                effective_ttl = ttl if ttl is not None else self.ttl_for(key.kind)
                task = asyncio.ensure_future(self._produce(key, producer, effective_ttl))
                task.add_done_callback(self._observe)
                self._in_flight[key] = task

        # A cancelled caller stops waiting; the shared task keeps running
        return await asyncio.shield(task)

    async def _produce(self, key: CacheKey, producer: Callable[[], Awaitable[V]], ttl: float) -> V:
        try:
            value = await producer()
        except Exception as e:
            async with self._lock:
                self._in_flight.pop(key, None)
                self._stats.failures += 1
            self._logger.warning(f"Fetch failed for {key}: {e}")
            raise
        except asyncio.CancelledError:
            async with self._lock:
                self._in_flight.pop(key, None)
            raise

        async with self._lock:
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                fetched_at=self._clock(),
                ttl=ttl,
            )
            self._in_flight.pop(key, None)
        return value

    @staticmethod
    def _observe(task: asyncio.Future) -> None:
        # Every caller may have given up; mark the failure as retrieved
        if not task.cancelled():
            task.exception()

    async def put(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value computed outside ``fetch``."""
        async with self._lock:
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                fetched_at=self._clock(),
                ttl=ttl if ttl is not None else self.ttl_for(key.kind),
            )

    async def invalidate(self, key: CacheKey) -> bool:
        """Drop one entry. Returns True if something was removed."""
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def invalidate_kind(self, kind: CacheKind) -> int:
        """Drop every entry of one kind. Returns the number removed."""
        return await self._invalidate_where(lambda k: k.kind == kind)

    async def invalidate_date(self, day: date) -> int:
        """Drop every entry keyed to ``day``."""
        return await self._invalidate_where(lambda k: k.day == day)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def _invalidate_where(self, predicate: Callable[[CacheKey], bool]) -> int:
        async with self._lock:
            doomed = [k for k in self._entries if predicate(k)]
            for k in doomed:
                del self._entries[k]
        if doomed:
            self._logger.debug(f"Invalidated {len(doomed)} cache entries")
        return len(doomed)

    def __len__(self) -> int:
        return len(self._entries)
