"""Transcription plugin router."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from callcoach.api.deps import CurrentController, ServicesDep
from callcoach.core.auth.dependencies import CurrentUser
from callcoach.core.records import Transcript

router = APIRouter()


class TranscribeRequest(BaseModel):
    audio_asset_id: UUID | None = None  # Default: the current audio file


@router.post("/transcriptions", response_model=Transcript, status_code=status.HTTP_201_CREATED)
async def transcribe(data: TranscribeRequest, controller: CurrentController) -> Transcript:
    transcript = await controller.transcribe(data.audio_asset_id)
    if transcript is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Transcription or analysis already in progress",
        )
    return transcript


@router.get("/transcriptions", response_model=list[Transcript])
async def list_transcriptions(
    audio_asset_id: UUID,
    user: CurrentUser,
    services: ServicesDep,
) -> list[Transcript]:
    """All transcriptions of one audio file, newest first."""
    return await services.transcription.list_for_audio_asset(user.id, audio_asset_id)


@router.get("/transcriptions/{transcript_id}", response_model=Transcript)
async def get_transcription(
    transcript_id: UUID,
    user: CurrentUser,
    services: ServicesDep,
) -> Transcript:
    transcript, _ = await services.repository.get_owned_transcript(transcript_id, user.id)
    return transcript
