"""
Health check endpoints.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from bizfinder.core.config import Settings
from bizfinder.core.logging import SERVICE_NAME, get_logger
from bizfinder.deps import get_app_settings, get_record_store, get_result_cache
from bizfinder.services.cache import ResultCache
from bizfinder.services.store import RecordStore

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check(settings: Settings = Depends(get_app_settings)):
    """
    Basic liveness check.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "llm_configured": settings.llm_configured,
    }


@router.get("/store")
async def store_health(store: RecordStore = Depends(get_record_store)):
    """
    Record store readiness.

    Returns 503 when the store does not answer a trivial query.
    """
    available = await store.ping()
    if not available:
        logger.warning("health_store_unavailable", backend=store.name)
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "backend": store.name},
        )
    return {"status": "ok", "backend": store.name}


@router.get("/cache")
async def cache_health(cache: ResultCache = Depends(get_result_cache)):
    """Result cache statistics."""
    return {"status": "ok", **(await cache.stats())}
