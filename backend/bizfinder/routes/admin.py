"""
Admin endpoints.

POST /admin/cache/flush
GET /admin/cache/stats

Security: should sit behind admin authentication in production.
"""
from fastapi import APIRouter, Depends

from bizfinder.core.logging import get_logger
from bizfinder.deps import get_result_cache
from bizfinder.services.cache import ResultCache

logger = get_logger(__name__)

router = APIRouter()


@router.post("/cache/flush")
async def flush_cache(cache: ResultCache = Depends(get_result_cache)):
    """Drop every cached tool result."""
    removed = await cache.flush()
    logger.info("admin_cache_flushed", backend=cache.backend, removed=removed)
    return {"status": "flushed", "backend": cache.backend, "removed": removed}


@router.get("/cache/stats")
async def cache_stats(cache: ResultCache = Depends(get_result_cache)):
    return await cache.stats()
