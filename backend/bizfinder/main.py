import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.errors import ChatError
from .core.logging import configure_logging, get_logger, get_trace_id
from .core.metrics import record_http_request
from .core.middleware import TraceIDMiddleware
from .core.tracing import (
    StatusCode,
    configure_tracing,
    get_trace_id_from_context,
    instrument_fastapi,
    record_exception,
    set_span_status,
    shutdown_tracing,
)
from .routes import admin, chat, health, metrics, reviews
from .services.container import ServiceContainer

APP_VERSION = "1.0.0"

settings = get_settings()

# JSON output in production (containerized), console output in development
configure_logging(log_level=settings.log_level, json_output=settings.log_json)

logger = get_logger(__name__)

# OTLP export only when OTEL_EXPORTER_OTLP_ENDPOINT is set
configure_tracing()

app = FastAPI(
    title="BizFinder Chat API",
    description="Conversational discovery of local businesses",
    version=APP_VERSION,
)

# Mobile/web clients call from any origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add trace ID middleware (must be after CORS middleware)
app.add_middleware(TraceIDMiddleware)

# Instrument FastAPI with OpenTelemetry (creates automatic spans for HTTP requests)
instrument_fastapi(app)


@app.on_event("startup")
async def startup_event():
    """Build services, connect the record store and start the cache sweeper."""
    logger.info("app_startup_started", environment=settings.environment)

    if not settings.llm_configured:
        logger.warning(
            "app_startup_llm_not_configured",
            message="LLM_API_KEY not set. POST /chat will answer 503 until it is configured.",
        )

    services = ServiceContainer.build(settings)
    await services.start()
    app.state.services = services

    logger.info("app_startup_completed")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup resources on application shutdown."""
    logger.info("app_shutdown_started")
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.stop()
    shutdown_tracing()
    logger.info("app_shutdown_completed")


def _error_response(status_code: int, content: dict) -> JSONResponse:
    trace_id = get_trace_id() or get_trace_id_from_context()
    response = JSONResponse(status_code=status_code, content={**content, "trace_id": trace_id})
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    """Request-level faults: structured {"error": {kind, message, retryable}}."""
    if exc.status_code >= 500:
        set_span_status(StatusCode.ERROR, exc.message)
    logger.warning(
        "chat_error",
        kind=exc.kind,
        error=exc.message,
        status_code=exc.status_code,
        retryable=exc.retryable,
        path=request.url.path,
        method=request.method,
    )
    return _error_response(exc.status_code, {"error": exc.to_payload()})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400), like a missing message."""
    logger.warning("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return _error_response(400, {
        "error": {
            "kind": "ValidationError",
            "message": "Invalid request body",
            "retryable": False,
            "details": {"errors": [
                {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg")}
                for err in exc.errors()
            ]},
        },
    })


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    start_time = getattr(request.state, "start_time", time.time())
    duration = time.time() - start_time

    set_span_status(StatusCode.ERROR if exc.status_code >= 500 else StatusCode.OK, exc.detail)

    record_http_request(
        method=request.method,
        endpoint=request.url.path,
        status_code=exc.status_code,
        duration_seconds=duration,
    )

    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )
    return _error_response(exc.status_code, {
        "detail": exc.detail,
        "status_code": exc.status_code,
    })


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    record_exception(exc)
    set_span_status(StatusCode.ERROR, str(exc))

    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return _error_response(500, {
        "detail": "Internal server error",
        "status_code": 500,
    })


@app.get("/")
async def root():
    """Service descriptor."""
    return {
        "service": "BizFinder Chat API",
        "version": APP_VERSION,
        "endpoints": {
            "health": "GET /health/",
            "chat": "POST /chat",
            "reviews": "POST /reviews, GET /reviews/{item_id}, GET /reviews/{item_id}/stats",
            "metrics": "GET /metrics",
        },
    }


app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(chat.router, prefix="/chat", tags=["Chat"])
app.include_router(reviews.router, prefix="/reviews", tags=["Reviews"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
