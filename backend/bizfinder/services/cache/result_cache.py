"""
Content-addressed, TTL-bounded result cache for tool lookups.

- Key: `tool:{operation}:{md5(canonical params)}`. Canonical form sorts
  mapping keys and sets, turns tuples into lists and integral floats into
  ints, so logically equal parameters share an entry.
- Values are stored serialized (JSON) and deserialized on every hit; a
  caller can never mutate a cached result.
- None results are never stored; None from get() means miss.
- A background sweep removes expired entries every sweep interval; capacity
  pressure evicts the oldest-expiring entries first.

Advisory only: a miss is always safe and staleness within the TTL is accepted.
"""
import asyncio
import hashlib
import json
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Optional

from bizfinder.core.logging import get_logger
from bizfinder.core.metrics import (
    record_cache_eviction,
    record_cache_hit,
    record_cache_miss,
    update_cache_size,
)

logger = get_logger(__name__)

KEY_PREFIX = "tool:"
DEFAULT_TTL_SECONDS = 300
DEFAULT_SWEEP_INTERVAL_SECONDS = 60
DEFAULT_MAX_ENTRIES = 10_000


def canonicalize(value: Any) -> Any:
    """Reduce a parameter structure to a deterministic JSON-compatible form."""
    if isinstance(value, dict):
        return {str(k): canonicalize(v) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (set, frozenset)):
        items = [canonicalize(v) for v in value]
        return sorted(items, key=lambda v: json.dumps(v, sort_keys=True))
    if isinstance(value, (list, tuple)):
        return [canonicalize(v) for v in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def make_cache_key(operation: str, params: Optional[Dict[str, Any]]) -> str:
    canonical = json.dumps(
        canonicalize(params or {}),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    digest = hashlib.md5(canonical.encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}{operation}:{digest}"


def serialize_result(result: Any) -> str:
    return json.dumps(result, ensure_ascii=False, default=str)


class ResultCache(ABC):
    """Interface shared by the in-process and Redis caches."""

    backend = "base"

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds

    async def start(self) -> None:
        """Acquire resources / start background work."""

    async def stop(self) -> None:
        """Release resources / stop background work."""

    @abstractmethod
    async def get(self, operation: str, params: Optional[Dict[str, Any]]) -> Optional[Any]:
        ...

    @abstractmethod
    async def put(self, operation: str, params: Optional[Dict[str, Any]], result: Any) -> bool:
        ...

    @abstractmethod
    async def flush(self) -> int:
        """Drop every entry. Returns the number of entries removed."""

    @abstractmethod
    async def stats(self) -> Dict[str, Any]:
        ...


@dataclass
class _CacheEntry:
    payload: str
    expires_at: float


class MemoryResultCache(ResultCache):
    """
    In-process cache guarded by a lock.

    Entries are kept in insertion order; with a single TTL this is also
    expiry order, so evicting from the front evicts the oldest-expiring entry.
    """

    backend = "memory"

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(ttl_seconds)
        self.max_entries = max_entries
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._lock = Lock()
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()
        self._sweeper: Optional[asyncio.Task] = None
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, operation: str, params: Optional[Dict[str, Any]]) -> Optional[Any]:
        key = make_cache_key(operation, params)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at <= now:
                del self._entries[key]
                record_cache_eviction("expired")
                entry = None
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1

        if entry is None:
            record_cache_miss(operation)
            logger.debug("cache_miss", operation=operation, key=key)
            return None

        record_cache_hit(operation)
        logger.debug("cache_hit", operation=operation, key=key)
        return json.loads(entry.payload)

    async def put(self, operation: str, params: Optional[Dict[str, Any]], result: Any) -> bool:
        if result is None:
            return False
        key = make_cache_key(operation, params)
        try:
            payload = serialize_result(result)
        except (TypeError, ValueError) as e:
            logger.warning(
                "cache_serialize_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        evicted = 0
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = _CacheEntry(payload, self._clock() + self.ttl_seconds)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                evicted += 1
            size = len(self._entries)

        if evicted:
            record_cache_eviction("capacity", evicted)
            logger.debug("cache_evicted", reason="capacity", count=evicted)
        update_cache_size(size)
        logger.debug("cache_set", operation=operation, key=key)
        return True

    def sweep(self) -> int:
        """Remove expired entries. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for key in expired:
                del self._entries[key]
            size = len(self._entries)

        if expired:
            record_cache_eviction("expired", len(expired))
            logger.debug("cache_swept", removed=len(expired), remaining=size)
        update_cache_size(size)
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error(
                    "cache_sweep_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

    async def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop())
            logger.info(
                "cache_sweeper_started",
                interval_seconds=self.sweep_interval_seconds,
                ttl_seconds=self.ttl_seconds,
            )

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("cache_sweeper_stopped")

    async def flush(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        update_cache_size(0)
        logger.info("cache_flushed", backend=self.backend, removed=removed)
        return removed

    async def stats(self) -> Dict[str, Any]:
        with self._lock:
            entries = len(self._entries)
        return {
            "backend": self.backend,
            "entries": entries,
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
            "sweeper_running": self._sweeper is not None and not self._sweeper.done(),
        }
