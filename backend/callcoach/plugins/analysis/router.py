"""Analysis plugin router."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from callcoach.api.deps import CurrentController, ServicesDep
from callcoach.core.auth.dependencies import CurrentUser
from callcoach.core.records import AnalysisResult
from callcoach.plugins.analysis.rubric import SalesCallScore, parse_rubric_response
from callcoach.plugins.analysis.strategies import PRESET_PROMPTS, resolve_strategy

router = APIRouter()


class AnalyzeRequest(BaseModel):
    transcript_id: UUID | None = None  # Default: the current transcription
    analysis_kind: str | None = None  # Default: sales_coaching
    prompt: str | None = None  # Required for custom kinds


class AnalysisResponse(BaseModel):
    analysis: AnalysisResult
    score: SalesCallScore | None = None
    band: str | None = None


def _with_score(analysis: AnalysisResult) -> AnalysisResponse:
    score = parse_rubric_response(analysis.raw_response_text)
    return AnalysisResponse(analysis=analysis, score=score, band=score.band if score else None)


@router.post("/analyses", response_model=AnalysisResponse, status_code=status.HTTP_201_CREATED)
async def analyze(
    data: AnalyzeRequest,
    controller: CurrentController,
    services: ServicesDep,
) -> AnalysisResponse:
    strategy = resolve_strategy(
        data.analysis_kind,
        data.prompt,
        training_material=services.settings.training_material,
    )
    analysis = await controller.analyze(data.transcript_id, strategy=strategy)
    if analysis is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Transcription or analysis already in progress",
        )
    return _with_score(analysis)


@router.get("/analyses", response_model=list[AnalysisResponse])
async def list_analyses(
    transcript_id: UUID,
    user: CurrentUser,
    services: ServicesDep,
) -> list[AnalysisResponse]:
    """Analysis history of one transcription, newest first."""
    analyses = await services.analysis.list_for_transcript(user.id, transcript_id)
    return [_with_score(a) for a in analyses]


@router.get("/presets")
async def list_presets() -> dict[str, str]:
    """Preset prompts for the free-form analysis mode."""
    return dict(PRESET_PROMPTS)
