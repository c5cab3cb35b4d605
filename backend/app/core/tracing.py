"""
OpenTelemetry distributed tracing configuration.

Features:
- Tracer provider with service resource and optional sampling
- Trace export via OTLP (gRPC) when an endpoint is configured
- One span per pipeline stage (see `stage_span`)
- Integration with structured logging (trace_id in logs)

Configuration:
- OTEL_SERVICE_NAME: Service name (default: perfume_recommender_api)
- OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint (e.g. http://localhost:4317)
- OTEL_TRACES_SAMPLER_ARG: Sampling rate (default: 1.0 for 100% sampling)
"""
import os
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from .logging import get_logger

logger = get_logger(__name__)

_tracer: Optional[Tracer] = None
_tracer_provider: Optional[TracerProvider] = None


def configure_tracing(
    service_name: Optional[str] = None,
    otlp_endpoint: Optional[str] = None,
    sampling_rate: float = 1.0,
    enable_otlp: bool = False,
) -> None:
    """
    Configure OpenTelemetry tracing.

    Args:
        service_name: Service name identifier (defaults to OTEL_SERVICE_NAME or perfume_recommender_api)
        otlp_endpoint: OTLP endpoint URL (defaults to OTEL_EXPORTER_OTLP_ENDPOINT)
        sampling_rate: Sampling rate (0.0 to 1.0, default: 1.0 for 100% sampling)
        enable_otlp: Enable OTLP exporter (default: False)
    """
    global _tracer, _tracer_provider

    service_name = service_name or os.getenv("OTEL_SERVICE_NAME", "perfume_recommender_api")
    otlp_endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    sampling_rate = float(os.getenv("OTEL_TRACES_SAMPLER_ARG", str(sampling_rate)))

    resource = Resource.create({
        "service.name": service_name,
        "service.version": "1.0.0",
    })

    if sampling_rate < 1.0:
        _tracer_provider = TracerProvider(resource=resource, sampler=TraceIdRatioBased(sampling_rate))
    else:
        _tracer_provider = TracerProvider(resource=resource)

    if enable_otlp and otlp_endpoint:
        try:
            otlp_exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
            _tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
            logger.info(
                "tracing_otlp_configured",
                endpoint=otlp_endpoint,
                sampling_rate=sampling_rate,
            )
        except Exception as e:
            logger.warning(
                "tracing_otlp_configuration_failed",
                endpoint=otlp_endpoint,
                error=str(e),
                error_type=type(e).__name__,
                message="Tracing will continue without OTLP export",
            )

    trace.set_tracer_provider(_tracer_provider)
    _tracer = trace.get_tracer(__name__)

    logger.info(
        "tracing_configured",
        service_name=service_name,
        sampling_rate=sampling_rate,
        otlp_enabled=enable_otlp,
    )


def get_tracer() -> Tracer:
    """
    Get the global tracer instance, configuring tracing on first use.
    """
    global _tracer
    if _tracer is None:
        configure_tracing()
    return _tracer


@contextmanager
def stage_span(stage: str, **attributes: Any) -> Iterator[Span]:
    """
    Run a pipeline stage inside its own span named `pipeline.<stage>`.
    """
    with get_tracer().start_as_current_span(f"pipeline.{stage}") as span:
        span.set_attribute("pipeline.stage", stage)
        for key, value in attributes.items():
            span.set_attribute(key, value)
        yield span


def get_trace_id_from_context() -> Optional[str]:
    """
    Get trace ID from current OpenTelemetry span context.

    Returns:
        Trace ID as hex string or None if no active span
    """
    current_span = trace.get_current_span()
    if current_span:
        span_context = current_span.get_span_context()
        if span_context.is_valid:
            return format(span_context.trace_id, "032x")
    return None


def set_span_attribute(key: str, value: Any) -> None:
    current_span = trace.get_current_span()
    if current_span:
        current_span.set_attribute(key, value)


def set_span_status(status_code: StatusCode, description: Optional[str] = None) -> None:
    """
    Set status on the current span.

    Args:
        status_code: Status code (StatusCode.OK, StatusCode.ERROR)
        description: Optional status description
    """
    current_span = trace.get_current_span()
    if current_span:
        current_span.set_status(Status(status_code, description))


def record_exception(exception: Exception) -> None:
    current_span = trace.get_current_span()
    if current_span:
        current_span.record_exception(exception)
        current_span.set_status(Status(StatusCode.ERROR, str(exception)))


def instrument_fastapi(app) -> None:
    """
    Instrument FastAPI application with OpenTelemetry.

    This automatically creates spans for all HTTP requests.
    """
    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("tracing_fastapi_instrumented")
    except Exception as e:
        logger.warning(
            "tracing_fastapi_instrumentation_failed",
            error=str(e),
            error_type=type(e).__name__,
            message="Tracing will continue without automatic FastAPI instrumentation",
        )


def shutdown_tracing() -> None:
    """
    Shutdown tracing and flush all spans.
    """
    if _tracer_provider:
        try:
            _tracer_provider.shutdown()
            logger.info("tracing_shutdown")
        except Exception as e:
            logger.warning(
                "tracing_shutdown_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
