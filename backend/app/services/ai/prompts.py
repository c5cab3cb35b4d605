"""
Prompt templates for the insight agent.
"""
from typing import List, Tuple

from app.models.requests import QuestionnaireAnswers
from app.services.ai.schema import CHARACTERISTICS_MAX_CHARS, IDEAL_SCENT_MAX_CHARS

# Question labels in questionnaire order (q1..q10)
QUESTION_LABELS: Tuple[str, ...] = (
    "Longevity",
    "Occasion",
    "Personality",
    "Favorite aroma",
    "Aroma nuance",
    "Main activity",
    "Special perfume",
    "Perfume gender",
    "Aroma intensity",
    "Time of use",
)

INSIGHT_PROMPT_TEMPLATE = """
Act as a perfume expert who gives the best perfume recommendation for anyone.
Based on {name}'s answers about their perfume preferences:

{answers}

**Your tasks:**
1. **Analyze the user's personality** based on their perfume choices.
2. **Describe their ideal perfume** persuasively.
3. **Write a perfume search query** for a vector database.
4. Make the answer engaging, persuasive, informative and true to the user's preferences; you may address the user by name.

**Expected JSON format** (respond with this JSON object only):
{{
  "characteristics": "A short picture of {name}'s personality... max {characteristics_max} characters",
  "ideal_scent": "A description of the perfume and the notes that may suit them... max {ideal_scent_max} characters",
  "persona": "One word that describes {name}",
  "query": "A short perfume search query in {query_language}"
}}
"""


def format_answers(answers: QuestionnaireAnswers) -> str:
    lines: List[str] = []
    for number, (label, answer) in enumerate(zip(QUESTION_LABELS, answers.answers()), start=1):
        lines.append(f"{number} {label}: {answer or ''}")
    return "\n".join(lines)


def build_insight_prompt(answers: QuestionnaireAnswers, query_language: str = "Indonesian") -> str:
    """Render the insight prompt for one questionnaire submission."""
    return INSIGHT_PROMPT_TEMPLATE.format(
        name=answers.name or "the user",
        answers=format_answers(answers),
        characteristics_max=CHARACTERISTICS_MAX_CHARS,
        ideal_scent_max=IDEAL_SCENT_MAX_CHARS,
        query_language=query_language,
    )
