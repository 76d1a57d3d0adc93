"""
Infrastructure layer: Memoization of expensive remote computations.

Entries are keyed by a canonical fingerprint of (source, payload), expire
after a per-source TTL and are bounded in number (LRU eviction). Concurrent
misses on the same fingerprint share one in-flight computation.
"""
import asyncio
import hashlib
import json
import logging
import time
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from cachetools import TLRUCache

from carbono.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class CacheSource(str, Enum):
    """Operations whose results are cached."""
    GEE_ANALYZE_AREA = "GEE_ANALYZE_AREA"
    GEE_FOREST_MASK = "GEE_FOREST_MASK"
    GEE_HISTORICAL_TRENDS = "GEE_HISTORICAL_TRENDS"
    NASA_FIRMS = "NASA_FIRMS"


def default_ttls() -> Dict[str, float]:
    """Per-source TTLs in seconds from configuration."""
    return {
        CacheSource.GEE_ANALYZE_AREA.value: settings.cache_ttl_analyze_area_seconds,
        CacheSource.GEE_FOREST_MASK.value: settings.cache_ttl_forest_mask_seconds,
        CacheSource.GEE_HISTORICAL_TRENDS.value: settings.cache_ttl_historical_trends_seconds,
        CacheSource.NASA_FIRMS.value: settings.cache_ttl_fire_hotspots_seconds,
    }


def _source_key(source: Any) -> str:
    return source.value if isinstance(source, Enum) else str(source)


class ResultCache:
    """
    Bounded TTL cache with single-flight computation.

    - first writer wins: a live entry is never overwritten
    - one asyncio.Task per fingerprint; waiters await it through
      asyncio.shield so a cancelled waiter never cancels the computation
    - failures are not cached
    """

    def __init__(
        self,
        maxsize: Optional[int] = None,
        ttls: Optional[Dict[str, float]] = None,
        default_ttl: float = 3600.0,
        timer: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            maxsize: Maximum number of entries (LRU eviction beyond)
            ttls: TTL in seconds per source
            default_ttl: TTL for sources missing from ttls
            timer: Clock used for expiry (inject a fake one in tests)
        """
        self._ttls = {_source_key(k): v for k, v in (ttls or default_ttls()).items()}
        self._default_ttl = default_ttl
        self._entries = TLRUCache(
            maxsize=maxsize or settings.cache_max_entries,
            ttu=self._time_to_use,
            timer=timer,
        )
        self._inflight: Dict[str, asyncio.Task] = {}
        self._hits = 0
        self._misses = 0
        self._coalesced = 0

    def _time_to_use(self, key: str, value: Any, now: float) -> float:
        source = key.split(":", 1)[0]
        return now + self._ttls.get(source, self._default_ttl)

    @staticmethod
    def fingerprint(source: Any, payload: Any) -> str:
        """
        Canonical cache key: source tag plus SHA-256 of sorted-key JSON.

        Key order in dicts does not matter; non-JSON values are stringified.
        """
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"{_source_key(source)}:{digest}"

    # ============================================================
    # Plain access
    # ============================================================

    def get(self, source: Any, payload: Any, default: Any = None) -> Any:
        """Live cached value or default."""
        return self._entries.get(self.fingerprint(source, payload), default)

    def set(self, source: Any, payload: Any, value: Any) -> Any:
        """
        Store a value unless a live entry exists.

        Returns:
            The value now cached (the earlier one if it was kept)
        """
        return self._store(self.fingerprint(source, payload), value)

    def _store(self, key: str, value: Any) -> Any:
        existing = self._entries.get(key, _MISSING)
        if existing is not _MISSING:
            return existing
        self._entries[key] = value
        return value

    # ============================================================
    # Single-flight
    # ============================================================

    async def get_or_compute(
        self,
        source: Any,
        payload: Any,
        compute: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Return the cached value or compute it once for all concurrent callers.

        Args:
            source: Cache source tag (selects the TTL)
            payload: JSON-like input describing the computation
            compute: Zero-argument coroutine function producing the value

        Returns:
            The cached or freshly computed value

        Raises:
            Whatever compute raises; nothing is cached in that case
        """
        key = self.fingerprint(source, payload)

        value = self._entries.get(key, _MISSING)
        if value is not _MISSING:
            self._hits += 1
            logger.info(f"Cache hit for {key[:40]}")
            return value

        task = self._inflight.get(key)
        if task is None:
            self._misses += 1
            logger.info(f"Cache miss for {key[:40]}")
            task = asyncio.create_task(self._compute_and_store(key, compute))
            self._inflight[key] = task
            task.add_done_callback(partial(self._on_done, key))
        else:
            self._coalesced += 1
            logger.debug(f"Joining in-flight computation for {key[:40]}")

        return await asyncio.shield(task)

    with_cache = get_or_compute

    async def _compute_and_store(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        value = await compute()
        return self._store(key, value)

    def _on_done(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if task.cancelled():
            logger.warning(f"Cached computation for {key[:40]} was cancelled")
        elif task.exception() is not None:
            logger.warning(f"Cached computation for {key[:40]} failed: {task.exception()}")

    # ============================================================
    # Maintenance
    # ============================================================

    def invalidate(self, source: Any, payload: Any) -> bool:
        """Drop one entry. Returns True if it existed."""
        return self._entries.pop(self.fingerprint(source, payload), _MISSING) is not _MISSING

    def clear_source(self, source: Any) -> int:
        """Drop every entry of a source. Returns the number removed."""
        prefix = f"{_source_key(source)}:"
        keys = [key for key in list(self._entries.keys()) if key.startswith(prefix)]
        for key in keys:
            self._entries.pop(key, None)
        return len(keys)

    def clear_expired(self) -> int:
        """Evict expired entries now. Returns the number removed."""
        return len(self._entries.expire())

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        """Counters and entry counts per source."""
        self._entries.expire()
        by_source: Dict[str, int] = {}
        for key in list(self._entries.keys()):
            source = key.split(":", 1)[0]
            by_source[source] = by_source.get(source, 0) + 1
        return {
            "entries": len(self._entries),
            "max_entries": self._entries.maxsize,
            "hits": self._hits,
            "misses": self._misses,
            "coalesced": self._coalesced,
            "in_flight": len(self._inflight),
            "by_source": by_source,
        }


# Singleton instance
_result_cache: Optional[ResultCache] = None


def get_result_cache() -> ResultCache:
    """
    Get or create the process-wide result cache.

    Returns:
        ResultCache instance
    """
    global _result_cache
    if _result_cache is None:
        _result_cache = ResultCache()
    return _result_cache
