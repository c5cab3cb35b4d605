"""
Request models for API endpoints.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

QUESTION_FIELDS = tuple(f"q{i}" for i in range(1, 11))


class QuestionnaireAnswers(BaseModel):
    """
    Questionnaire submission for POST /recommend-perfume.

    `name` and `email` are optional at the model level: their absence is
    reported by the response recorder, after the insight has been generated.
    Unknown fields are ignored.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    q1: Optional[str] = None
    q2: Optional[str] = None
    q3: Optional[str] = None
    q4: Optional[str] = None
    q5: Optional[str] = None
    q6: Optional[str] = None
    q7: Optional[str] = None
    q8: Optional[str] = None
    q9: Optional[str] = None
    q10: Optional[str] = None

    def answers(self) -> List[Optional[str]]:
        """The ten answers in question order."""
        return [getattr(self, field) for field in QUESTION_FIELDS]

    def answered_count(self) -> int:
        return sum(1 for answer in self.answers() if answer and answer.strip())
