"""
Trace ID propagation and request context middleware.

- Takes the trace ID from X-Trace-ID / X-Request-ID, else from the active
  OpenTelemetry span, else generates one
- Generates a request ID per request
- Logs request start/completion and records HTTP RED metrics
- Echoes X-Trace-ID and X-Request-ID on the response
"""
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging import (
    generate_request_id,
    generate_trace_id,
    get_logger,
    set_conversation_id,
    set_request_id,
    set_trace_id,
)
from .metrics import record_http_request
from .tracing import (
    StatusCode,
    get_trace_id_from_context,
    record_exception,
    set_span_attribute,
    set_span_status,
)

logger = get_logger(__name__)


def _otel_to_uuid(trace_hex: str) -> str:
    if len(trace_hex) != 32:
        return trace_hex
    return (
        f"{trace_hex[0:8]}-{trace_hex[8:12]}-{trace_hex[12:16]}-"
        f"{trace_hex[16:20]}-{trace_hex[20:32]}"
    )


class TraceIDMiddleware(BaseHTTPMiddleware):
    """Binds trace/request IDs to the logging context for each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = (
            request.headers.get("X-Trace-ID")
            or request.headers.get("X-Request-ID")
        )
        if not trace_id:
            otel_trace_id = get_trace_id_from_context()
            trace_id = _otel_to_uuid(otel_trace_id) if otel_trace_id else generate_trace_id()

        request_id = generate_request_id()
        set_trace_id(trace_id)
        set_request_id(request_id)

        set_span_attribute("app.trace_id", trace_id)
        set_span_attribute("app.request_id", request_id)

        start_time = time.time()
        request.state.start_time = start_time
        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            record_exception(e)
            set_span_status(StatusCode.ERROR, str(e))
            record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=500,
                duration_seconds=process_time,
            )
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int(process_time * 1000),
                exc_info=True,
            )
            raise
        else:
            process_time = time.time() - start_time
            record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration_seconds=process_time,
            )
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                latency_ms=int(process_time * 1000),
            )
            response.headers["X-Trace-ID"] = trace_id
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            set_trace_id(None)
            set_request_id(None)
            set_conversation_id(None)
