"""Analysis strategies: what prompt is sent and how the result is labelled."""

from dataclasses import dataclass
from enum import Enum

from callcoach.core.errors import ValidationError
from callcoach.plugins.analysis.rubric import SALES_COACHING_TEMPLATE, render_rubric


class ResponseShape(str, Enum):
    JSON = "json"
    TEXT = "text"


@dataclass(frozen=True)
class AnalysisStrategy:
    """
    Base strategy.

    ``prompt_template`` is what gets stored with the result;
    ``render`` produces the text actually sent to the model.
    """

    prompt_template: str
    analysis_kind: str
    response_shape: ResponseShape = ResponseShape.TEXT

    @property
    def stored_prompt(self) -> str:
        return self.prompt_template

    def render(self, transcript_text: str) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class SalesCoachingRubric(AnalysisStrategy):
    prompt_template: str = SALES_COACHING_TEMPLATE
    analysis_kind: str = "sales_coaching"
    response_shape: ResponseShape = ResponseShape.JSON
    training_material: str = ""

    def render(self, transcript_text: str) -> str:
        return render_rubric(self.prompt_template, transcript_text, self.training_material)


@dataclass(frozen=True)
class FreeformPrompt(AnalysisStrategy):
    analysis_kind: str = "custom"

    def render(self, transcript_text: str) -> str:
        return f"{self.prompt_template}\n\nTranscription to analyze:\n{transcript_text}"


PRESET_PROMPTS = {
    "summary": "Please provide a concise summary of the main points discussed in this transcription.",
    "sentiment": (
        "Analyze the sentiment and emotional tone of this transcription. "
        "Identify key emotions and overall sentiment."
    ),
    "keywords": (
        "Extract the most important keywords and key phrases from this transcription. "
        "Organize them by relevance."
    ),
    "action_items": "Identify any action items, tasks, or decisions mentioned in this transcription.",
    "insights": (
        "Provide key insights and analysis points from this transcription. "
        "What are the most important takeaways?"
    ),
}


def resolve_strategy(
    kind: str | None = None,
    prompt: str | None = None,
    training_material: str = "",
) -> AnalysisStrategy:
    """
    Map a request to a strategy.

    - no kind, or ``sales_coaching``: the rubric
    - a preset name: that preset's prompt
    - ``custom`` (or any other label) with ``prompt``: a free-form prompt
    """
    if kind in (None, "", "sales_coaching"):
        return SalesCoachingRubric(training_material=training_material)
    if kind in PRESET_PROMPTS:
        return FreeformPrompt(prompt_template=PRESET_PROMPTS[kind], analysis_kind=kind)
    if not prompt or not prompt.strip():
        raise ValidationError("Please enter a custom prompt", analysis_kind=kind)
    return FreeformPrompt(prompt_template=prompt.strip(), analysis_kind=kind)
