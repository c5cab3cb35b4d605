"""
Query embedding via Cloudflare Workers AI.

The embedding model (default @cf/baai/bge-base-en-v1.5) returns
`{"shape": [1, dim], "data": [[...]]}`; the first row is the query vector.
"""
from numbers import Real
from typing import Any, List, Optional

from app.core.config import get_settings
from app.core.logging import get_logger
from app.services.cloudflare import CloudflareAPIError, get_cloudflare_client
from app.services.result import FailureReason, StageResult

logger = get_logger(__name__)


def extract_embedding(result: Any) -> List[float]:
    """
    Pull the first vector out of a Workers AI embedding result.

    Raises:
        ValueError if the result does not contain a numeric vector.
    """
    if not isinstance(result, dict):
        raise ValueError("Embedding result is not an object")
    data = result.get("data")
    if not isinstance(data, list) or not data:
        return []
    vector = data[0]
    if not isinstance(vector, list):
        raise ValueError("Embedding data[0] is not a list")
    if not all(isinstance(v, Real) and not isinstance(v, bool) for v in vector):
        raise ValueError("Embedding contains non-numeric values")
    return [float(v) for v in vector]


class EmbeddingService:
    """Converts search queries into embedding vectors."""

    def __init__(self, model: Optional[str] = None):
        self.model = model or get_settings().embedding_model
        self._client = get_cloudflare_client()

    async def embed(self, text: str) -> StageResult[List[float]]:
        """
        Embed a single query string.

        An empty vector is reported as EMPTY_RESULT, never returned as a
        successful zero-length embedding.
        """
        if not text or not text.strip():
            return StageResult.failure(FailureReason.INVALID_INPUT, "query text is empty")
        if self._client is None:
            return StageResult.failure(FailureReason.NOT_CONFIGURED, "Cloudflare client not configured")

        try:
            result = await self._client.run_model(self.model, {"text": text})
        except CloudflareAPIError as exc:
            logger.warning(
                "embedding_request_failed",
                model=self.model,
                error=str(exc),
                status_code=exc.status_code,
            )
            return StageResult.failure(FailureReason.SERVICE_ERROR, str(exc))

        try:
            vector = extract_embedding(result)
        except ValueError as exc:
            logger.warning("embedding_response_malformed", model=self.model, error=str(exc))
            return StageResult.failure(FailureReason.PARSE_ERROR, str(exc))

        if not vector:
            logger.warning("embedding_empty", model=self.model)
            return StageResult.failure(FailureReason.EMPTY_RESULT, "embedding service returned no vector")

        logger.info("embedding_generated", model=self.model, dimension=len(vector))
        return StageResult.success(vector)


def get_embedding_service() -> EmbeddingService:
    return EmbeddingService()
