"""
Perfume recommendation pipeline.

Runs the five stages strictly in sequence for one questionnaire:

    received -> insight_generated -> vectorized -> searched
             -> resolved -> recorded -> responded

Any stage failure moves the pipeline to `errored` and raises PipelineError
carrying the HTTP status and client-facing message. Detail resolution and
persistence failures are tolerated (logged and counted); a missing
name/email at the recording stage is not.

A pipeline instance serves exactly one request.
"""
import time
from enum import Enum
from typing import Awaitable, List, Optional

from app.core.logging import get_logger
from app.core.metrics import (
    record_pipeline_outcome,
    record_stage_duration,
    record_stage_failure,
    record_zero_matches,
)
from app.core.tracing import StatusCode, set_span_status, stage_span
from app.models.requests import QuestionnaireAnswers
from app.models.responses import PerfumeRecommendationResponse
from app.services.ai.agents.insight import InsightGenerationAgent, get_insight_agent
from app.services.catalog.perfumes import PerfumeCatalog, get_perfume_catalog
from app.services.catalog.responses import ResponseRecorder, get_response_recorder
from app.services.result import FailureReason, StageResult
from app.services.search.embedding import EmbeddingService, get_embedding_service
from app.services.search.vector_index import SimilaritySearchService, get_similarity_search_service

logger = get_logger(__name__)

INSIGHT_FAILED_MESSAGE = "Failed to generate insight from AI."
VECTORIZATION_FAILED_MESSAGE = "Failed to convert query to vector."
NO_MATCHES_MESSAGE = "No matching perfumes found."
SEARCH_FAILED_MESSAGE = "Failed to search for matching perfumes."
IDENTITY_REQUIRED_MESSAGE = "name and email are required."


class PipelineState(str, Enum):
    RECEIVED = "received"
    INSIGHT_GENERATED = "insight_generated"
    VECTORIZED = "vectorized"
    SEARCHED = "searched"
    RESOLVED = "resolved"
    RECORDED = "recorded"
    RESPONDED = "responded"
    ERRORED = "errored"


class PipelineError(Exception):
    """A stage failure mapped to an HTTP status and client-facing message."""

    def __init__(
        self,
        status_code: int,
        message: str,
        stage: str,
        reason: Optional[FailureReason] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.stage = stage
        self.reason = reason


class PerfumeRecommendationPipeline:
    """
    Sequences insight generation, vectorization, similarity search, detail
    resolution and response recording for one questionnaire.

    Collaborators default to the module-level factories; tests pass stubs.
    """

    def __init__(
        self,
        insight_agent: Optional[InsightGenerationAgent] = None,
        embedding_service: Optional[EmbeddingService] = None,
        search_service: Optional[SimilaritySearchService] = None,
        catalog: Optional[PerfumeCatalog] = None,
        recorder: Optional[ResponseRecorder] = None,
    ):
        self._insight_agent = insight_agent or get_insight_agent()
        self._embedding_service = embedding_service or get_embedding_service()
        self._search_service = search_service or get_similarity_search_service()
        self._catalog = catalog or get_perfume_catalog()
        self._recorder = recorder or get_response_recorder()
        self.state = PipelineState.RECEIVED
        self.history: List[PipelineState] = [PipelineState.RECEIVED]

    def _transition(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)

    def _fail(
        self,
        outcome: str,
        status_code: int,
        message: str,
        stage: str,
        result: StageResult,
    ) -> PipelineError:
        self._transition(PipelineState.ERRORED)
        record_pipeline_outcome(outcome)
        logger.warning(
            "perfume_pipeline_failed",
            stage=stage,
            reason=result.reason.value if result.reason else None,
            status_code=status_code,
        )
        return PipelineError(status_code, message, stage=stage, reason=result.reason)

    async def _run_stage(self, stage: str, call: Awaitable[StageResult]) -> StageResult:
        start = time.time()
        with stage_span(stage):
            result = await call
            if not result.ok:
                set_span_status(StatusCode.ERROR, result.reason.value)
                record_stage_failure(stage, result.reason.value)
                logger.warning(
                    "pipeline_stage_failed",
                    stage=stage,
                    reason=result.reason.value,
                    detail=result.detail,
                )
        record_stage_duration(stage, time.time() - start)
        return result

    async def run(self, answers: QuestionnaireAnswers) -> PerfumeRecommendationResponse:
        """
        Produce an insight and ranked perfume recommendations.

        Raises:
            PipelineError: 500 on insight/vectorization/search failure,
                404 when the index has no matches, 400 when name or email
                is missing at the recording stage.
        """
        if self.state is not PipelineState.RECEIVED:
            raise RuntimeError("PerfumeRecommendationPipeline instances are single-use")

        try:
            return await self._execute(answers)
        except PipelineError:
            raise
        except Exception:
            self._transition(PipelineState.ERRORED)
            record_pipeline_outcome("error")
            raise

    async def _execute(self, answers: QuestionnaireAnswers) -> PerfumeRecommendationResponse:
        logger.info(
            "perfume_pipeline_started",
            answered_questions=answers.answered_count(),
        )

        insight_result = await self._run_stage("insight", self._insight_agent.generate(answers))
        if not insight_result.ok:
            raise self._fail("insight_failed", 500, INSIGHT_FAILED_MESSAGE, "insight", insight_result)
        insight = insight_result.value
        self._transition(PipelineState.INSIGHT_GENERATED)

        vector_result = await self._run_stage("vectorize", self._embedding_service.embed(insight.query))
        if not vector_result.ok:
            raise self._fail("vectorization_failed", 500, VECTORIZATION_FAILED_MESSAGE, "vectorize", vector_result)
        self._transition(PipelineState.VECTORIZED)

        search_result = await self._run_stage("search", self._search_service.search(vector_result.value))
        if not search_result.ok:
            if search_result.reason is FailureReason.EMPTY_RESULT:
                record_zero_matches()
                raise self._fail("no_matches", 404, NO_MATCHES_MESSAGE, "search", search_result)
            raise self._fail("search_failed", 500, SEARCH_FAILED_MESSAGE, "search", search_result)
        match_ids = search_result.value
        self._transition(PipelineState.SEARCHED)

        details_result = await self._run_stage("resolve", self._catalog.fetch_details(match_ids))
        # Unresolved details still produce a response, with no recommendations
        recommendations = details_result.value if details_result.ok else []
        self._transition(PipelineState.RESOLVED)

        record_result = await self._run_stage(
            "record",
            self._recorder.record(answers.name, answers.email, answers, insight, match_ids),
        )
        if record_result.reason is FailureReason.VALIDATION_ERROR:
            raise self._fail("invalid_identity", 400, IDENTITY_REQUIRED_MESSAGE, "record", record_result)
        self._transition(PipelineState.RECORDED)

        response = PerfumeRecommendationResponse(insight=insight, recommendations=recommendations)
        self._transition(PipelineState.RESPONDED)
        record_pipeline_outcome("success")
        logger.info(
            "perfume_pipeline_completed",
            match_count=len(match_ids),
            recommendation_count=len(recommendations),
            persisted=record_result.ok,
        )
        return response
