"""
Prometheus metrics collection.

Metrics categories:
- RED metrics for HTTP requests
- Chat metrics: requests by outcome, iterations per run, fallback trips
- Tool metrics: invocations, latency and result counts per tool
- Cache metrics: hits/misses per operation, size, evictions
- LLM metrics: request latency, errors, tokens
- Resource metrics: process CPU and memory

Naming follows Prometheus conventions (_total counters, _seconds histograms).
"""
import psutil
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from bizfinder.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=registry,
)

# ============================================================================
# CHAT METRICS
# ============================================================================

chat_requests_total = Counter(
    "chat_requests_total",
    "Total number of chat runs by outcome",
    ["outcome"],  # completed, iteration_limit, search_fallback, cancelled, error
    registry=registry,
)

chat_iterations = Histogram(
    "chat_iterations",
    "Model iterations per chat run",
    buckets=[1, 2, 3, 4, 5, 6, 8, 10],
    registry=registry,
)

chat_search_fallback_trips_total = Counter(
    "chat_search_fallback_trips_total",
    "Times the repeated-search counter reached its threshold",
    registry=registry,
)

# ============================================================================
# TOOL METRICS
# ============================================================================

tool_invocations_total = Counter(
    "tool_invocations_total",
    "Tool invocations by tool and status",
    ["tool", "status"],  # ok, error, not_found
    registry=registry,
)

tool_duration_seconds = Histogram(
    "tool_duration_seconds",
    "Tool handler latency in seconds",
    ["tool"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
    registry=registry,
)

tool_result_count = Histogram(
    "tool_result_count",
    "Number of items returned by a tool",
    ["tool"],
    buckets=[0, 1, 2, 5, 10, 20, 50],
    registry=registry,
)

# ============================================================================
# CACHE METRICS
# ============================================================================

cache_hits_total = Counter(
    "cache_hits_total",
    "Total number of result cache hits",
    ["operation"],
    registry=registry,
)

cache_misses_total = Counter(
    "cache_misses_total",
    "Total number of result cache misses",
    ["operation"],
    registry=registry,
)

cache_entries = Gauge(
    "cache_entries",
    "Entries currently held by the in-process result cache",
    registry=registry,
)

cache_evictions_total = Counter(
    "cache_evictions_total",
    "Result cache evictions by reason",
    ["reason"],  # expired, capacity, flush
    registry=registry,
)

# ============================================================================
# LLM METRICS
# ============================================================================

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "Model API request latency in seconds",
    ["model"],
    buckets=[0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0],
    registry=registry,
)

llm_errors_total = Counter(
    "llm_errors_total",
    "Model API errors by type",
    ["error_type"],  # timeout, http_error, circuit_open, invalid_response
    registry=registry,
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Model tokens consumed",
    ["model", "direction"],  # input, output
    registry=registry,
)

# ============================================================================
# RESOURCE METRICS
# ============================================================================

process_cpu_usage_percent = Gauge(
    "process_cpu_usage_percent",
    "Process CPU usage percentage",
    registry=registry,
)

process_memory_rss_bytes = Gauge(
    "process_memory_rss_bytes",
    "Process resident memory in bytes",
    registry=registry,
)


def normalize_endpoint(path: str) -> str:
    """
    Collapse dynamic path segments to keep label cardinality low.

    /reviews/abc123 -> /reviews/{item_id}
    /reviews/abc123/stats -> /reviews/{item_id}/stats
    """
    if "?" in path:
        path = path.split("?")[0]

    parts = path.split("/")
    if len(parts) >= 3 and parts[1] == "reviews" and parts[2]:
        parts[2] = "{item_id}"
        return "/".join(parts)
    return path


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    normalized_endpoint = normalize_endpoint(endpoint)

    http_requests_total.labels(
        method=method,
        endpoint=normalized_endpoint,
        status=str(status_code),
    ).inc()

    if status_code >= 400:
        http_errors_total.labels(
            method=method,
            endpoint=normalized_endpoint,
            status_code=str(status_code),
        ).inc()

    http_request_duration_seconds.labels(
        method=method,
        endpoint=normalized_endpoint,
    ).observe(duration_seconds)


def record_chat_run(outcome: str, iterations: int) -> None:
    chat_requests_total.labels(outcome=outcome).inc()
    if iterations > 0:
        chat_iterations.observe(iterations)


def record_search_fallback_trip() -> None:
    chat_search_fallback_trips_total.inc()


def record_tool_invocation(
    tool: str,
    status: str,
    duration_seconds: float,
    result_count: int = 0,
) -> None:
    """Record one tool dispatch (latency, outcome and result size)."""
    tool_invocations_total.labels(tool=tool, status=status).inc()
    tool_duration_seconds.labels(tool=tool).observe(duration_seconds)
    if status == "ok":
        tool_result_count.labels(tool=tool).observe(result_count)


def record_cache_hit(operation: str) -> None:
    cache_hits_total.labels(operation=operation).inc()


def record_cache_miss(operation: str) -> None:
    cache_misses_total.labels(operation=operation).inc()


def record_cache_eviction(reason: str, count: int = 1) -> None:
    if count > 0:
        cache_evictions_total.labels(reason=reason).inc(count)


def update_cache_size(size: int) -> None:
    cache_entries.set(size)


def record_llm_request(model: str, duration_seconds: float) -> None:
    llm_request_duration_seconds.labels(model=model).observe(duration_seconds)


def record_llm_error(error_type: str) -> None:
    llm_errors_total.labels(error_type=error_type).inc()


def record_llm_tokens(model: str, input_tokens: int, output_tokens: int) -> None:
    if input_tokens > 0:
        llm_tokens_total.labels(model=model, direction="input").inc(input_tokens)
    if output_tokens > 0:
        llm_tokens_total.labels(model=model, direction="output").inc(output_tokens)


def update_resource_metrics() -> None:
    """Refresh process CPU/memory gauges; called when metrics are scraped."""
    try:
        process = psutil.Process()
        process_cpu_usage_percent.set(process.cpu_percent(interval=None))
        process_memory_rss_bytes.set(process.memory_info().rss)
    except Exception as e:
        logger.warning(
            "metrics_resource_update_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


def get_metrics() -> bytes:
    update_resource_metrics()
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
