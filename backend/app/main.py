"""
FastAPI application entry point.

Run locally with either:

    uvicorn app.main:app --app-dir backend
    perfume-recommender-api          # console script, see serve()
"""
import os
import time

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings
from .core.logging import configure_logging, get_logger, get_trace_id
from .core.middleware import CORSHeadersMiddleware, TraceIDMiddleware, apply_cors_headers
from .core.tracing import (
    configure_tracing,
    instrument_fastapi,
    shutdown_tracing,
    get_trace_id_from_context,
    record_exception,
    set_span_status,
    StatusCode,
)
from .routes import health, recommend, metrics

# Use JSON output in production (containerized), console output in development
log_level = os.getenv("LOG_LEVEL", "INFO")
json_output = os.getenv("LOG_JSON", "true").lower() == "true"
configure_logging(log_level=log_level, json_output=json_output)

logger = get_logger(__name__)

# OTLP export only when an endpoint is configured
enable_otlp = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "") != ""
configure_tracing(enable_otlp=enable_otlp)

INVALID_BODY_MESSAGE = "Invalid request body."
INTERNAL_ERROR_MESSAGE = "Internal server error"

app = FastAPI(
    title="Perfume Recommendation API",
    description="Questionnaire-driven perfume insight and recommendations",
    version="1.0.0"
)

# Added last so it wraps everything, including trace-id handling
app.add_middleware(TraceIDMiddleware)
app.add_middleware(CORSHeadersMiddleware)

instrument_fastapi(app)


@app.on_event("startup")
async def startup_event():
    """Report configuration problems on application startup."""
    logger.info("app_startup_started")

    settings = get_settings()
    missing = settings.missing_required()
    if missing:
        logger.warning(
            "app_startup_config_missing",
            missing=missing,
            message="Recommendation requests will fail until these variables are set.",
        )
    else:
        logger.info(
            "app_startup_config_ready",
            vectorize_index=settings.vectorize_index,
            top_k=settings.vector_top_k,
        )

    logger.info("app_startup_completed")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup resources on application shutdown."""
    logger.info("app_shutdown_started")
    shutdown_tracing()
    logger.info("app_shutdown_completed")


def _error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    trace_id = get_trace_id() or get_trace_id_from_context()
    response = JSONResponse(
        status_code=status_code,
        content={"error": message, "trace_id": trace_id},
        headers=headers,
    )
    if trace_id:
        response.headers["X-Trace-ID"] = trace_id
    return response


# Error handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP exceptions as {"error": ...}."""
    start_time = getattr(request.state, "start_time", time.time())

    set_span_status(StatusCode.ERROR if exc.status_code >= 500 else StatusCode.OK, str(exc.detail))

    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
        latency_ms=int((time.time() - start_time) * 1000),
    )
    return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed JSON or wrongly typed fields are client errors."""
    logger.warning(
        "request_validation_failed",
        path=request.url.path,
        method=request.method,
        errors=[
            {"loc": list(error.get("loc", ())), "type": error.get("type")}
            for error in exc.errors()
        ],
    )
    return _error_response(400, INVALID_BODY_MESSAGE)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Last-resort handler: sanitized 500, raw detail only in logs."""
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
    # Runs outside the middleware stack, so CORS headers are applied here
    return apply_cors_headers(_error_response(500, INTERNAL_ERROR_MESSAGE))


# Include routers
app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(recommend.router, prefix="/recommend-perfume", tags=["Recommendations"])
app.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])


def serve() -> None:
    """Run the API under uvicorn. HOST and PORT default to 0.0.0.0:8000."""
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=log_level.lower(),
    )
