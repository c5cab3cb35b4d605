"""
Perfume recommendation endpoint.

OPTIONS /recommend-perfume
POST /recommend-perfume
"""
import time
from fastapi import APIRouter, HTTPException, Response

from app.core.logging import get_logger
from app.models.requests import QuestionnaireAnswers
from app.models.responses import ErrorResponse, PerfumeRecommendationResponse
from app.services.recommendation.pipeline import PerfumeRecommendationPipeline, PipelineError

logger = get_logger(__name__)

router = APIRouter()

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred while generating recommendations."


@router.options("", status_code=204)
async def recommend_perfume_options() -> Response:
    """CORS preflight. Headers are added by CORSHeadersMiddleware."""
    return Response(status_code=204)


@router.post(
    "",
    response_model=PerfumeRecommendationResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def recommend_perfume(answers: QuestionnaireAnswers):
    """
    Generate a personalized insight and perfume recommendations.

    Returns the insight together with up to five perfume records, ordered
    by similarity to the generated search query.
    """
    start_time = time.time()
    try:
        pipeline = PerfumeRecommendationPipeline()
        result = await pipeline.run(answers)
    except PipelineError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    except Exception as e:
        latency_ms = int((time.time() - start_time) * 1000)
        logger.error(
            "perfume_recommendation_error",
            error=str(e),
            error_type=type(e).__name__,
            latency_ms=latency_ms,
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=UNEXPECTED_ERROR_MESSAGE)

    logger.info(
        "perfume_recommendation_completed",
        results_count=len(result.recommendations),
        latency_ms=int((time.time() - start_time) * 1000),
    )
    return result
