"""
Prometheus metrics endpoint.

GET /metrics
Chat, tool, cache, model and HTTP metrics plus process CPU/memory gauges.
"""
from fastapi import APIRouter, Response
from fastapi.responses import PlainTextResponse

from bizfinder.core.logging import get_logger
from bizfinder.core.metrics import get_metrics, get_metrics_content_type

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_class=PlainTextResponse)
async def metrics():
    """Prometheus text exposition; no authentication (scraped internally)."""
    try:
        payload = get_metrics()
    except Exception as e:
        logger.error(
            "metrics_endpoint_error",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        payload = b"# Error collecting metrics\n"
    return Response(content=payload, media_type=get_metrics_content_type())
