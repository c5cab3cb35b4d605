"""
Perfume detail lookup in D1.

The `perfumes` table is owned by the catalog; rows are passed through as
opaque dicts. D1 returns rows in storage order, so results are re-sorted
to follow the similarity ranking of the identifiers they were fetched by.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from app.core.config import get_settings
from app.core.logging import get_logger
from app.services.cloudflare import CloudflareAPIError, CloudflareClient, get_cloudflare_client
from app.services.result import FailureReason, StageResult

logger = get_logger(__name__)

PERFUME_TABLE = "perfumes"

PerfumeRecord = Dict[str, Any]


def parse_perfume_ids(match_ids: Sequence[str]) -> List[int]:
    """
    Convert match identifiers to integer keys, dropping any that are not integers.
    """
    perfume_ids: List[int] = []
    for match_id in match_ids:
        try:
            perfume_ids.append(int(match_id))
        except (TypeError, ValueError):
            logger.warning("perfume_id_not_numeric", match_id=match_id)
    return perfume_ids


def build_perfume_details_query(perfume_ids: Sequence[int]) -> Tuple[str, List[int]]:
    """
    Build the parameterized detail query: one `?` per identifier.

    >>> build_perfume_details_query([12, 7, 3])
    ('SELECT * FROM perfumes WHERE id IN (?,?,?)', [12, 7, 3])
    """
    placeholders = ",".join("?" for _ in perfume_ids)
    return f"SELECT * FROM {PERFUME_TABLE} WHERE id IN ({placeholders})", list(perfume_ids)


def extract_rows(envelope: Dict[str, Any]) -> List[PerfumeRecord]:
    """
    Read `result[0].results` from a D1 query envelope.

    Raises:
        ValueError if the envelope does not have that shape.
    """
    result = envelope.get("result")
    if not isinstance(result, list) or not result or not isinstance(result[0], dict):
        raise ValueError("D1 response has no result[0]")
    rows = result[0].get("results")
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise ValueError("D1 result[0].results is not a list")
    if not all(isinstance(row, dict) for row in rows):
        raise ValueError("D1 row is not an object")
    return rows


def order_by_rank(rows: List[PerfumeRecord], perfume_ids: Sequence[int]) -> List[PerfumeRecord]:
    """
    Sort rows by the position of their `id` in `perfume_ids`.

    Rows whose id is missing or not in `perfume_ids` keep their relative
    store order after the ranked rows.
    """
    rank = {}
    for position, perfume_id in enumerate(perfume_ids):
        rank.setdefault(perfume_id, position)
    unranked = len(perfume_ids)

    def sort_key(row: PerfumeRecord) -> int:
        try:
            return rank.get(int(row.get("id")), unranked)
        except (TypeError, ValueError):
            return unranked

    return sorted(rows, key=sort_key)


class PerfumeCatalog:
    """Resolves match identifiers to full perfume records."""

    def __init__(
        self,
        client: Optional[CloudflareClient] = None,
        database_id: Optional[str] = None,
    ):
        self._client = client or get_cloudflare_client()
        self.database_id = database_id or get_settings().d1_database_id

    async def fetch_details(self, match_ids: Sequence[str]) -> StageResult[List[PerfumeRecord]]:
        perfume_ids = parse_perfume_ids(match_ids)
        if not perfume_ids:
            return StageResult.failure(FailureReason.INVALID_INPUT, "no numeric perfume ids to resolve")
        if self._client is None or not self.database_id:
            return StageResult.failure(FailureReason.NOT_CONFIGURED, "D1 database not configured")

        sql, params = build_perfume_details_query(perfume_ids)
        logger.info("perfume_details_fetching", perfume_ids=perfume_ids)

        try:
            envelope = await self._client.query_database(self.database_id, sql, params)
        except CloudflareAPIError as exc:
            logger.warning(
                "perfume_details_fetch_failed",
                error=str(exc),
                status_code=exc.status_code,
                errors=exc.errors,
            )
            return StageResult.failure(FailureReason.SERVICE_ERROR, str(exc))

        try:
            rows = extract_rows(envelope)
        except ValueError as exc:
            logger.warning("perfume_details_response_malformed", error=str(exc))
            return StageResult.failure(FailureReason.PARSE_ERROR, str(exc))

        logger.info(
            "perfume_details_fetched",
            requested=len(perfume_ids),
            resolved=len(rows),
        )
        return StageResult.success(order_by_rank(rows, perfume_ids))


def get_perfume_catalog() -> PerfumeCatalog:
    return PerfumeCatalog()
