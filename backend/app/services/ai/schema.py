"""
Pydantic models for LLM agent outputs.

The insight agent asks the completion service for a JSON object with four
string fields. Models frequently wrap that object in a markdown code fence,
so the raw text goes through `strip_code_fence` before `json.loads`.
"""
import json
import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

# Length limits requested in the prompt; not enforced on the parsed output.
CHARACTERISTICS_MAX_CHARS = 225
IDEAL_SCENT_MAX_CHARS = 300

_LEADING_FENCE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\r?\n?")
_TRAILING_FENCE = re.compile(r"\r?\n?```$")


class Insight(BaseModel):
    """
    Structured interpretation of a questionnaire.

    Schema:
    {
      "characteristics": "short personality summary",
      "ideal_scent": "persuasive description of the ideal perfume and notes",
      "persona": "one-word persona label",
      "query": "search query for the perfume vector index"
    }
    """
    model_config = ConfigDict(extra="ignore")

    characteristics: str = Field(..., description="Personality summary")
    ideal_scent: str = Field(..., description="Ideal perfume description")
    persona: str = Field(..., description="One-word persona label")
    query: str = Field(..., description="Vector search query")

    @field_validator("query")
    @classmethod
    def validate_query(cls, value: str) -> str:
        v = value.strip()
        if not v:
            raise ValueError("query must not be empty")
        return v


class SchemaValidationError(Exception):
    """Raised when LLM output fails JSON parsing or schema validation."""

    def __init__(self, agent: str, message: str, raw_output: Optional[str] = None):
        super().__init__(message)
        self.agent = agent
        self.raw_output = raw_output


class OutputParseError(SchemaValidationError):
    """Raised when LLM output is not valid JSON."""


def strip_code_fence(text: str) -> str:
    """
    Remove a leading ```/```json fence line and a trailing ``` fence.

    Text without fences is returned stripped but otherwise unchanged.
    """
    cleaned = text.strip()
    cleaned = _LEADING_FENCE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def validate_insight_payload(payload: Dict[str, Any]) -> Insight:
    """
    Validate a parsed JSON payload as an Insight.

    Raises:
        SchemaValidationError if validation fails.
    """
    try:
        return Insight.model_validate(payload)
    except ValidationError as exc:
        raise SchemaValidationError(
            agent="insight",
            message=f"Invalid insight payload: {exc}",
        ) from exc


def parse_insight_text(text: str) -> Insight:
    """
    Parse raw completion text (optionally code-fenced JSON) into an Insight.

    Raises:
        OutputParseError if the text is not JSON.
        SchemaValidationError if the JSON does not match the Insight schema.
    """
    cleaned = strip_code_fence(text or "")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise OutputParseError(
            agent="insight",
            message=f"Insight output is not valid JSON: {exc}",
            raw_output=text,
        ) from exc
    return validate_insight_payload(payload)
