"""Sales-coaching rubric: prompt template and lenient response parsing."""

import json
import re
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from callcoach.core.logging import get_logger

logger = get_logger(__name__)

RETRIEVED_CHUNKS_PLACEHOLDER = "{{retrieved_chunks}}"
TRANSCRIPT_PLACEHOLDER = "{{sales_call_transcript}}"
NO_TRAINING_MATERIAL = "(no training material provided)"

SALES_COACHING_TEMPLATE = """You are an experienced Sales Coach AI specialized in analyzing B2C and B2B sales conversations.
Your role is to evaluate the salesperson's performance, identify strengths and weaknesses,
and provide highly practical, constructive, and actionable feedback.

## Persona:
- You are empathetic but direct like a senior sales mentor.
- You never give generic advice like "be more confident".
- You ground your evaluation in real sales psychology and the provided training material.
- You ensure your analysis feels tailored to THIS call, not generic.

## Instructions:
1. Carefully read the sales call transcript provided below.
2. Think step by step about the flow of the call (rapport, discovery, pitch, objection handling, closing).
3. Cross-check if the salesperson included the **key knowledge points** from the company's training material:
   {{retrieved_chunks}}
   If they missed any, highlight that in the feedback.
4. Score the salesperson in the following categories on a scale of 1 to 10:
   - Rapport Building & Introduction
   - Understanding Client Needs
   - Product Knowledge & Value Communication
   - Objection Handling
   - Closing & Call-to-Action
5. Provide 2-3 short bullet points of feedback for each category.
   Feedback should be concrete and improvement-oriented.
   Example: Instead of "Improve objection handling", say "When client said 'too expensive',
   you repeated features instead of showing long-term ROI."

## Output Format:
Respond in **strict JSON only**, no extra text. Use this schema:

{
  "overall_score": <average of all category scores>,
  "criteria": {
    "rapport_building": {
      "score": <1-10>,
      "feedback": ["point1", "point2"]
    },
    "understanding_needs": {
      "score": <1-10>,
      "feedback": ["point1", "point2"]
    },
    "product_knowledge": {
      "score": <1-10>,
      "feedback": ["point1", "point2"]
    },
    "objection_handling": {
      "score": <1-10>,
      "feedback": ["point1", "point2"]
    },
    "closing": {
      "score": <1-10>,
      "feedback": ["point1", "point2"]
    }
  },
  "missed_training_points": [
    "list any relevant points from {{retrieved_chunks}} that were not covered"
  ],
  "strengths_summary": "1-2 sentence summary highlighting what the salesperson did well",
  "improvement_summary": "1-2 sentence summary highlighting what needs improvement"
}

## Transcript:
{{sales_call_transcript}}"""

RUBRIC_CRITERIA = (
    "rapport_building",
    "understanding_needs",
    "product_knowledge",
    "objection_handling",
    "closing",
)

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
_BRACED_SPAN = re.compile(r"\{[\s\S]*\}")


class CriterionScore(BaseModel):
    score: float
    feedback: list[str] = Field(default_factory=list)


class SalesCallScore(BaseModel):
    overall_score: float
    criteria: dict[str, CriterionScore]
    missed_training_points: list[str] = Field(default_factory=list)
    strengths_summary: str = ""
    improvement_summary: str = ""

    @property
    def band(self) -> str:
        return score_band(self.overall_score)


def render_rubric(template: str, transcript_text: str, training_material: str = "") -> str:
    chunks = training_material.strip() or NO_TRAINING_MATERIAL
    return template.replace(RETRIEVED_CHUNKS_PLACEHOLDER, chunks).replace(
        TRANSCRIPT_PLACEHOLDER, transcript_text
    )


def extract_json_text(response: str) -> str:
    """The fenced ```json block if present, else the outermost ``{...}`` span."""
    match = _FENCED_JSON.search(response)
    if match:
        return match.group(1)
    match = _BRACED_SPAN.search(response)
    if match:
        return match.group(0)
    return response


def parse_rubric_response(response: str) -> SalesCallScore | None:
    """
    Parse a model response into a SalesCallScore.

    Returns None when no JSON object can be decoded or when
    ``overall_score`` or ``criteria`` is missing or empty. Used for display
    only; the stored response is never altered.
    """
    try:
        parsed: Any = json.loads(extract_json_text(response))
    except json.JSONDecodeError as e:
        logger.debug("rubric_response_not_json", error=str(e))
        return None

    if not isinstance(parsed, dict):
        return None
    if not parsed.get("overall_score") or not parsed.get("criteria"):
        return None

    try:
        return SalesCallScore.model_validate(parsed)
    except PydanticValidationError as e:
        logger.debug("rubric_response_invalid", error=str(e))
        return None


def score_band(score: float) -> str:
    """Display band for a 1-10 score: excellent / good / fair / poor."""
    if score >= 8:
        return "excellent"
    if score >= 6:
        return "good"
    if score >= 4:
        return "fair"
    return "poor"
