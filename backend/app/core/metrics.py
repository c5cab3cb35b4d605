"""
Prometheus metrics collection module.

Metrics Categories:
- RED Metrics: Rate, Errors, Duration of HTTP requests
- Pipeline Metrics: per-stage latency and failures, request outcomes
- LLM Metrics: completion requests, errors, token usage, schema failures
- Resource Metrics: CPU and memory

All metrics follow Prometheus naming conventions:
- Counters: _total suffix
- Histograms: _seconds suffix for duration
- Gauges: No special suffix
"""
import psutil
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

from app.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS - Rate, Errors, Duration
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
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=registry,
)

# ============================================================================
# PIPELINE METRICS
# ============================================================================

pipeline_requests_total = Counter(
    "pipeline_requests_total",
    "Total number of recommendation pipeline runs by outcome",
    ["outcome"],  # "success", "insight_failed", "vectorization_failed", ...
    registry=registry,
)

pipeline_stage_duration_seconds = Histogram(
    "pipeline_stage_duration_seconds",
    "Duration of each recommendation pipeline stage in seconds",
    ["stage"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=registry,
)

pipeline_stage_failures_total = Counter(
    "pipeline_stage_failures_total",
    "Total number of pipeline stage failures",
    ["stage", "reason"],
    registry=registry,
)

recommendation_zero_matches_total = Counter(
    "recommendation_zero_matches_total",
    "Total number of requests where the vector index returned no matches",
    registry=registry,
)

response_persist_failures_total = Counter(
    "response_persist_failures_total",
    "Total number of questionnaire responses that could not be persisted",
    registry=registry,
)

# ============================================================================
# LLM METRICS
# ============================================================================

llm_requests_total = Counter(
    "llm_requests_total",
    "Total number of LLM completion requests",
    ["agent", "model"],
    registry=registry,
)

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "LLM completion request latency in seconds",
    ["agent", "model"],
    buckets=[0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0],
    registry=registry,
)

llm_errors_total = Counter(
    "llm_errors_total",
    "Total number of LLM completion errors",
    ["agent", "error_type"],
    registry=registry,
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Total number of LLM tokens consumed",
    ["agent", "model", "direction"],  # direction: "input" | "output"
    registry=registry,
)

llm_schema_validation_failures_total = Counter(
    "llm_schema_validation_failures_total",
    "Total number of LLM outputs that failed JSON parsing or schema validation",
    ["agent"],
    registry=registry,
)

# ============================================================================
# RESOURCE METRICS
# ============================================================================

system_cpu_usage_percent = Gauge(
    "system_cpu_usage_percent",
    "System CPU usage percentage",
    registry=registry,
)

system_memory_usage_bytes = Gauge(
    "system_memory_usage_bytes",
    "System memory usage in bytes",
    registry=registry,
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path for metrics.

    Strips query strings and trailing slashes to keep label cardinality low.

    Examples:
        /recommend-perfume?x=1 -> /recommend-perfume
        /health/ -> /health
    """
    if "?" in path:
        path = path.split("?")[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record HTTP request metrics (RED metrics).

    Args:
        method: HTTP method (GET, POST, etc.)
        endpoint: Request path
        status_code: HTTP status code
        duration_seconds: Request duration in seconds
    """
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


def record_pipeline_outcome(outcome: str) -> None:
    pipeline_requests_total.labels(outcome=outcome).inc()


def record_stage_duration(stage: str, duration_seconds: float) -> None:
    pipeline_stage_duration_seconds.labels(stage=stage).observe(duration_seconds)


def record_stage_failure(stage: str, reason: str) -> None:
    """
    Record a failed pipeline stage.

    Args:
        stage: Stage name ("insight", "vectorize", "search", "resolve", "record")
        reason: FailureReason value
    """
    pipeline_stage_failures_total.labels(stage=stage, reason=reason).inc()


def record_zero_matches() -> None:
    recommendation_zero_matches_total.inc()


def record_persist_failure() -> None:
    response_persist_failures_total.inc()


def record_llm_request(agent: str, model: str, duration_ms: float) -> None:
    llm_requests_total.labels(agent=agent, model=model).inc()
    llm_request_duration_seconds.labels(agent=agent, model=model).observe(duration_ms / 1000.0)


def record_llm_error(agent: str, error_type: str) -> None:
    llm_errors_total.labels(agent=agent, error_type=error_type).inc()


def record_llm_tokens(
    agent: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
) -> None:
    """
    Record token usage reported by the completion API.

    Args:
        agent: Logical agent name (e.g. "insight")
        model: Model identifier
        input_tokens: Prompt tokens
        output_tokens: Completion tokens
    """
    if input_tokens:
        llm_tokens_total.labels(agent=agent, model=model, direction="input").inc(input_tokens)
    if output_tokens:
        llm_tokens_total.labels(agent=agent, model=model, direction="output").inc(output_tokens)


def record_llm_schema_validation_failure(agent: str) -> None:
    llm_schema_validation_failures_total.labels(agent=agent).inc()


def update_resource_metrics() -> None:
    """
    Update system resource metrics (CPU, memory).

    Called on every scrape of the metrics endpoint.
    """
    try:
        system_cpu_usage_percent.set(psutil.cpu_percent(interval=None))
        system_memory_usage_bytes.set(psutil.virtual_memory().used)
    except Exception as e:
        logger.warning(
            "metrics_resource_update_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


def get_metrics() -> bytes:
    """
    Get Prometheus metrics in text format.
    """
    update_resource_metrics()
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
