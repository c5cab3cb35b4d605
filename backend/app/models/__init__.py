"""Pydantic models for API requests and responses."""

from .requests import QuestionnaireAnswers
from .responses import ErrorResponse, PerfumeRecommendationResponse

__all__ = ["QuestionnaireAnswers", "ErrorResponse", "PerfumeRecommendationResponse"]
