"""
Health check endpoints.
"""
from fastapi import APIRouter

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "ok",
        "message": "API is running"
    }


@router.get("/config")
async def config_health():
    """
    Report which required environment variables are missing.

    Only variable names are returned, never values.
    """
    settings = get_settings()
    missing = settings.missing_required()

    response = {
        "status": "ok" if not missing else "degraded",
        "missing": missing,
        "vectorize_index": settings.vectorize_index,
        "embedding_model": settings.embedding_model,
        "llm_model": settings.llm_insight_model,
    }
    if missing:
        response["message"] = "Required configuration missing; recommendation requests will fail"
    else:
        response["message"] = "All required configuration present"
    return response
