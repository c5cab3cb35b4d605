"""
Insight generation agent.

Responsibilities:
- Turn a questionnaire into a prompt
- Call the completion service with fixed sampling parameters
- Parse the (optionally code-fenced) JSON answer into an Insight

Failures never raise: they come back as a failed StageResult so the
pipeline can map them to a response.
"""
from typing import List, Optional

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_llm_schema_validation_failure
from app.models.requests import QuestionnaireAnswers
from app.services.ai.llm_client import (
    LLMClientError,
    LLMNotConfiguredError,
    extract_message_content,
    get_llm_client,
)
from app.services.ai.prompts import build_insight_prompt
from app.services.ai.schema import Insight, OutputParseError, SchemaValidationError, parse_insight_text
from app.services.result import FailureReason, StageResult

logger = get_logger(__name__)

INSIGHT_MAX_TOKENS = 400
INSIGHT_TEMPERATURE = 0.7
INSIGHT_TOP_P = 0.7
INSIGHT_TOP_K = 50
INSIGHT_REPETITION_PENALTY = 1.0
INSIGHT_STOP: List[str] = ["<|end_of_text|>"]


class InsightGenerationAgent:
    """Generates a personalized insight and search query from questionnaire answers."""

    def __init__(self, query_language: Optional[str] = None):
        self.query_language = query_language or get_settings().insight_query_language
        self._llm_client = get_llm_client()

    async def generate(self, answers: QuestionnaireAnswers) -> StageResult[Insight]:
        prompt = build_insight_prompt(answers, query_language=self.query_language)
        messages = [{"role": "user", "content": prompt}]

        try:
            response = await self._llm_client.chat(
                agent="insight",
                messages=messages,
                max_tokens=INSIGHT_MAX_TOKENS,
                temperature=INSIGHT_TEMPERATURE,
                top_p=INSIGHT_TOP_P,
                top_k=INSIGHT_TOP_K,
                repetition_penalty=INSIGHT_REPETITION_PENALTY,
                stop=INSIGHT_STOP,
            )
        except LLMNotConfiguredError as exc:
            logger.error("insight_llm_not_configured", error=str(exc))
            return StageResult.failure(FailureReason.NOT_CONFIGURED, str(exc))
        except LLMClientError as exc:
            logger.warning(
                "insight_llm_call_failed",
                error=str(exc),
                error_type=exc.error_type,
            )
            return StageResult.failure(FailureReason.SERVICE_ERROR, str(exc))

        try:
            content = extract_message_content(response)
        except ValueError as exc:
            record_llm_schema_validation_failure("insight")
            logger.warning("insight_llm_response_malformed", error=str(exc))
            return StageResult.failure(FailureReason.PARSE_ERROR, str(exc))

        try:
            insight = parse_insight_text(content)
        except OutputParseError as exc:
            record_llm_schema_validation_failure("insight")
            logger.warning(
                "insight_llm_invalid_json",
                error=str(exc),
                content_length=len(content),
            )
            return StageResult.failure(FailureReason.PARSE_ERROR, str(exc))
        except SchemaValidationError as exc:
            record_llm_schema_validation_failure("insight")
            logger.warning("insight_llm_schema_invalid", error=str(exc))
            return StageResult.failure(FailureReason.SCHEMA_ERROR, str(exc))

        logger.info(
            "insight_generated",
            persona=insight.persona,
            query_length=len(insight.query),
        )
        return StageResult.success(insight)


def get_insight_agent() -> InsightGenerationAgent:
    """Build an insight agent bound to the global LLM client."""
    return InsightGenerationAgent()
