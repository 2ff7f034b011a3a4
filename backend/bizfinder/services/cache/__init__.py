"""
Result cache in front of every tool lookup.
"""
from bizfinder.core.config import Settings

from .redis_cache import RedisResultCache
from .result_cache import MemoryResultCache, ResultCache, canonicalize, make_cache_key

__all__ = [
    "MemoryResultCache",
    "RedisResultCache",
    "ResultCache",
    "build_result_cache",
    "canonicalize",
    "make_cache_key",
]


def build_result_cache(settings: Settings) -> ResultCache:
    """Pick the cache backend named by CACHE_BACKEND."""
    if settings.cache_backend == "redis":
        return RedisResultCache(settings.redis_url, ttl_seconds=settings.cache_ttl_seconds)
    return MemoryResultCache(
        ttl_seconds=settings.cache_ttl_seconds,
        max_entries=settings.cache_max_entries,
        sweep_interval_seconds=settings.cache_sweep_interval_seconds,
    )
