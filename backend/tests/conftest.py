"""
Shared fixtures and stubs.

Nothing here performs real HTTP calls.
"""
from typing import Any, Dict, List, Optional, Sequence

import pytest

from app.models.requests import QuestionnaireAnswers
from app.services.ai.schema import Insight
from app.services.cloudflare import CloudflareAPIError


class FakeCloudflareClient:
    """Records calls and replays canned results (or raises a canned error)."""

    def __init__(
        self,
        model_result: Any = None,
        vector_result: Any = None,
        database_envelope: Optional[Dict[str, Any]] = None,
        error: Optional[CloudflareAPIError] = None,
    ):
        self.model_result = model_result
        self.vector_result = vector_result
        self.database_envelope = database_envelope if database_envelope is not None else {
            "success": True,
            "result": [{"results": [], "success": True}],
        }
        self.error = error
        self.model_calls: List[Dict[str, Any]] = []
        self.vector_calls: List[Dict[str, Any]] = []
        self.database_calls: List[Dict[str, Any]] = []

    async def run_model(self, model: str, inputs: Dict[str, Any]) -> Any:
        self.model_calls.append({"model": model, "inputs": inputs})
        if self.error:
            raise self.error
        return self.model_result

    async def query_vectors(self, index_name: str, vector: Sequence[float], top_k: int) -> Any:
        self.vector_calls.append({"index": index_name, "vector": list(vector), "top_k": top_k})
        if self.error:
            raise self.error
        return self.vector_result

    async def query_database(self, database_id: str, sql: str, params: Optional[Sequence[Any]] = None):
        self.database_calls.append({"database_id": database_id, "sql": sql, "params": list(params or [])})
        if self.error:
            raise self.error
        return self.database_envelope


@pytest.fixture
def answers() -> QuestionnaireAnswers:
    return QuestionnaireAnswers(
        name="Sari",
        email="sari@example.com",
        q1="All day",
        q2="Office",
        q3="Calm",
        q4="Vanilla",
        q5="Warm",
        q6="Working",
        q7="Yes",
        q8="Unisex",
        q9="Medium",
        q10="Evening",
    )


@pytest.fixture
def insight() -> Insight:
    return Insight(
        characteristics="Calm and focused, with a warm streak.",
        ideal_scent="A soft vanilla and amber base with a touch of bergamot.",
        persona="Serene",
        query="warm vanilla amber unisex perfume for the office",
    )


class StubStage:
    """
    Stands in for any pipeline stage: returns a fixed StageResult from
    whichever stage method is called and appends its name to `calls`.
    """

    def __init__(self, name: str, calls: List[str], result: Any):
        self.name = name
        self.calls = calls
        self.result = result
        self.args: List[Any] = []

    async def _run(self, *args):
        self.calls.append(self.name)
        self.args.append(args)
        return self.result

    generate = embed = search = fetch_details = record = _run
