"""
Similarity search against the Vectorize perfume index.

Match identifiers are returned in the order the index returns them
(similarity descending); no re-ranking happens here.
"""
from typing import Any, List, Optional, Sequence

from app.core.config import MAX_TOP_K, get_settings
from app.core.logging import get_logger
from app.services.cloudflare import CloudflareAPIError, get_cloudflare_client
from app.services.result import FailureReason, StageResult

logger = get_logger(__name__)


def extract_match_ids(result: Any) -> List[str]:
    """
    Read `matches[*].id` from a Vectorize query result.

    Raises:
        ValueError if the result has no match list or a match has no id.
    """
    if not isinstance(result, dict):
        raise ValueError("Vector query result is not an object")
    matches = result.get("matches")
    if matches is None:
        return []
    if not isinstance(matches, list):
        raise ValueError("Vector query matches is not a list")
    ids: List[str] = []
    for match in matches:
        if not isinstance(match, dict) or match.get("id") is None:
            raise ValueError("Vector match without an id")
        ids.append(str(match["id"]))
    return ids


class SimilaritySearchService:
    """Top-K nearest-neighbour lookup for a query vector."""

    def __init__(self, index_name: Optional[str] = None, top_k: Optional[int] = None):
        settings = get_settings()
        self.index_name = index_name or settings.vectorize_index
        self.top_k = min(top_k or settings.vector_top_k, MAX_TOP_K)
        self._client = get_cloudflare_client()

    async def search(self, vector: Sequence[float]) -> StageResult[List[str]]:
        if not vector:
            return StageResult.failure(FailureReason.INVALID_INPUT, "query vector is empty")
        if self._client is None:
            return StageResult.failure(FailureReason.NOT_CONFIGURED, "Cloudflare client not configured")

        try:
            result = await self._client.query_vectors(self.index_name, vector, self.top_k)
        except CloudflareAPIError as exc:
            logger.warning(
                "vector_search_failed",
                index=self.index_name,
                error=str(exc),
                status_code=exc.status_code,
            )
            return StageResult.failure(FailureReason.SERVICE_ERROR, str(exc))

        try:
            match_ids = extract_match_ids(result)
        except ValueError as exc:
            logger.warning("vector_search_response_malformed", index=self.index_name, error=str(exc))
            return StageResult.failure(FailureReason.PARSE_ERROR, str(exc))

        # Never hand more than top_k identifiers downstream
        match_ids = match_ids[: self.top_k]

        if not match_ids:
            logger.info("vector_search_no_matches", index=self.index_name, top_k=self.top_k)
            return StageResult.failure(FailureReason.EMPTY_RESULT, "no matches found")

        logger.info(
            "vector_search_completed",
            index=self.index_name,
            top_k=self.top_k,
            match_ids=match_ids,
        )
        return StageResult.success(match_ids)


def get_similarity_search_service() -> SimilaritySearchService:
    return SimilaritySearchService()
