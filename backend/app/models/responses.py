"""
Response models for API endpoints.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from app.services.ai.schema import Insight


class PerfumeRecommendationResponse(BaseModel):
    """Successful POST /recommend-perfume payload."""
    insight: Insight
    recommendations: List[Dict[str, Any]]


class ErrorResponse(BaseModel):
    """Error payload for every non-2xx response."""
    error: str
    trace_id: Optional[str] = None
