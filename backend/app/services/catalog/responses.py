"""
Persistence of questionnaire responses in D1.

One row per request in `user_responses`. There is no idempotency key:
submitting the same answers twice stores two rows.
"""
import json
from typing import List, Optional, Sequence

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_persist_failure
from app.models.requests import QuestionnaireAnswers
from app.services.ai.schema import Insight
from app.services.cloudflare import CloudflareAPIError, CloudflareClient, get_cloudflare_client
from app.services.result import FailureReason, StageResult

logger = get_logger(__name__)

USER_RESPONSE_COLUMNS = (
    "name",
    "email",
    "q1", "q2", "q3", "q4", "q5", "q6", "q7", "q8", "q9", "q10",
    "characteristics",
    "ideal_scent",
    "persona",
    "query",
    "recommendations",
)

INSERT_USER_RESPONSE_SQL = (
    f"INSERT INTO user_responses ({', '.join(USER_RESPONSE_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in USER_RESPONSE_COLUMNS)})"
)


def serialize_match_ids(match_ids: Sequence[str]) -> str:
    """Compact JSON array, e.g. '["12","7","3"]'."""
    return json.dumps(list(match_ids), separators=(",", ":"))


def build_user_response_params(
    name: str,
    email: str,
    answers: QuestionnaireAnswers,
    insight: Insight,
    match_ids: Sequence[str],
) -> List[Optional[str]]:
    """Positional params for INSERT_USER_RESPONSE_SQL, in column order."""
    return [
        name,
        email,
        *answers.answers(),
        insight.characteristics,
        insight.ideal_scent,
        insight.persona,
        insight.query,
        serialize_match_ids(match_ids),
    ]


class ResponseRecorder:
    """Stores one questionnaire submission with its insight and matches."""

    def __init__(
        self,
        client: Optional[CloudflareClient] = None,
        database_id: Optional[str] = None,
    ):
        self._client = client or get_cloudflare_client()
        self.database_id = database_id or get_settings().d1_database_id

    async def record(
        self,
        name: Optional[str],
        email: Optional[str],
        answers: QuestionnaireAnswers,
        insight: Insight,
        match_ids: Sequence[str],
    ) -> StageResult[bool]:
        """
        Validate identity and insert the response row.

        Returns:
            success(True) once the row is stored.
            failure(VALIDATION_ERROR) if name or email is empty; nothing is written.
            failure(SERVICE_ERROR / NOT_CONFIGURED) if the write did not happen.
        """
        if not (name and name.strip()) or not (email and email.strip()):
            logger.warning(
                "user_response_identity_missing",
                has_name=bool(name and name.strip()),
                has_email=bool(email and email.strip()),
            )
            return StageResult.failure(FailureReason.VALIDATION_ERROR, "name and email are required")

        if self._client is None or not self.database_id:
            record_persist_failure()
            logger.error("user_response_store_not_configured")
            return StageResult.failure(FailureReason.NOT_CONFIGURED, "D1 database not configured")

        params = build_user_response_params(name, email, answers, insight, match_ids)
        try:
            await self._client.query_database(self.database_id, INSERT_USER_RESPONSE_SQL, params)
        except CloudflareAPIError as exc:
            record_persist_failure()
            logger.error(
                "user_response_save_failed",
                error=str(exc),
                status_code=exc.status_code,
                errors=exc.errors,
            )
            return StageResult.failure(FailureReason.SERVICE_ERROR, str(exc))

        logger.info("user_response_saved", match_count=len(match_ids))
        return StageResult.success(True)


def get_response_recorder() -> ResponseRecorder:
    return ResponseRecorder()
