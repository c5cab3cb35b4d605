"""
Explicit success/failure result returned by every pipeline stage.

Stages never return bare None or empty lists to signal failure; callers
inspect `ok` and `reason` to decide what happened.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class FailureReason(str, Enum):
    """Why a stage failed."""
    SERVICE_ERROR = "service_error"  # transport / HTTP / API envelope failure
    PARSE_ERROR = "parse_error"  # response not parseable (non-JSON, wrong shape)
    SCHEMA_ERROR = "schema_error"  # parsed, but fields missing or wrong type
    EMPTY_RESULT = "empty_result"  # call succeeded with nothing usable
    VALIDATION_ERROR = "validation_error"  # caller-supplied data rejected
    INVALID_INPUT = "invalid_input"  # upstream stage handed over unusable input
    NOT_CONFIGURED = "not_configured"  # credentials missing


@dataclass(frozen=True)
class StageResult(Generic[T]):
    value: Optional[T] = None
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: FailureReason, detail: Optional[str] = None) -> "StageResult[T]":
        return cls(reason=reason, detail=detail)
