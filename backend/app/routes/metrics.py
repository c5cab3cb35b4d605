"""
Prometheus scrape endpoint.

GET /metrics
"""
from fastapi import APIRouter, Response

from app.core.metrics import get_metrics, get_metrics_content_type
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def metrics() -> Response:
    """
    HTTP, pipeline-stage, LLM and resource metrics in Prometheus text format.
    """
    try:
        body = get_metrics()
    except Exception as e:
        logger.error(
            "metrics_endpoint_error",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        body = b"# Error collecting metrics\n"
    return Response(content=body, media_type=get_metrics_content_type())
