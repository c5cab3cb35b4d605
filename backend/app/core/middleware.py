"""
HTTP middleware.

- CORSHeadersMiddleware: decorates every response with the fixed CORS
  headers expected by the questionnaire front end.
- TraceIDMiddleware: trace ID / request ID propagation, request logging
  and RED metrics.
"""
import time
from typing import Callable
from fastapi import Request, Response, HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .logging import (
    set_trace_id,
    set_request_id,
    generate_trace_id,
    generate_request_id,
    get_logger,
)
from .metrics import record_http_request
from .tracing import (
    get_trace_id_from_context,
    set_span_attribute,
    record_exception,
)

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def apply_cors_headers(response: Response) -> Response:
    """Set the CORS headers on a response and return it."""
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds CORS headers to every response, including error responses.

    The headers are identical for all origins and requests, so there is no
    per-origin negotiation here.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        return apply_cors_headers(response)


def _format_otel_trace_id(otel_trace_id: str) -> str:
    """Convert a 32-char hex trace ID into UUID format."""
    return (
        f"{otel_trace_id[0:8]}-{otel_trace_id[8:12]}-{otel_trace_id[12:16]}"
        f"-{otel_trace_id[16:20]}-{otel_trace_id[20:32]}"
    )


class TraceIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to handle trace ID propagation and request context.

    Extracts trace ID from headers (X-Trace-ID or X-Request-ID) or generates
    a new one. Sets trace ID and request ID in context for structured logging.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and add trace ID context.

        Priority for the trace ID: X-Trace-ID > X-Request-ID > OpenTelemetry
        context > newly generated.
        """
        trace_id = (
            request.headers.get("X-Trace-ID") or
            request.headers.get("X-Request-ID")
        )
        if not trace_id:
            otel_trace_id = get_trace_id_from_context()
            if otel_trace_id and len(otel_trace_id) == 32:
                trace_id = _format_otel_trace_id(otel_trace_id)
            else:
                trace_id = generate_trace_id()

        request_id = generate_request_id()

        set_trace_id(trace_id)
        set_request_id(request_id)
        set_span_attribute("http.route", request.url.path)

        start_time = time.time()
        # Exception handlers read this to compute latency
        request.state.start_time = start_time
        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            latency_ms = int(process_time * 1000)
            set_span_attribute("http.status_code", response.status_code)
            set_span_attribute("http.response.latency_ms", latency_ms)

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
                latency_ms=latency_ms,
            )

            response.headers["X-Trace-ID"] = trace_id
            response.headers["X-Request-ID"] = request_id
            return response

        except HTTPException:
            # Rendered by the app's HTTPException handler
            raise
        except Exception as e:
            process_time = time.time() - start_time
            record_exception(e)
            set_span_attribute("http.status_code", 500)
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
        finally:
            set_trace_id(None)
            set_request_id(None)
