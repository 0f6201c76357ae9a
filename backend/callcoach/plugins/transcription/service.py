"""Transcription stage: audio asset -> Deepgram -> transcript row."""

import time
from uuid import UUID

from callcoach.core.ai.base import AIProvider
from callcoach.core.errors import CallCoachError, EmptyResultError, PersistenceError
from callcoach.core.events.bus import EventBus
from callcoach.core.events.types import EventType
from callcoach.core.logging import get_logger
from callcoach.core.platform.base import ObjectStore
from callcoach.core.records import Transcript
from callcoach.core.repository import RecordRepository
from callcoach.core.workflow.progress import ProgressReporter

logger = get_logger(__name__)


class TranscriptionStage:
    def __init__(
        self,
        repository: RecordRepository,
        storage: ObjectStore,
        provider: AIProvider,
        event_bus: EventBus | None = None,
        language: str = "en",
        model: str = "nova-2",
    ) -> None:
        self._repository = repository
        self._storage = storage
        self._provider = provider
        self._event_bus = event_bus
        self.language = language
        self.model = model

    async def transcribe(
        self,
        owner_id: UUID,
        audio_asset_id: UUID,
        progress: ProgressReporter,
    ) -> Transcript:
        """
        Transcribe one of ``owner_id``'s audio assets and store the result.

        Raises:
            AuthorizationError: the asset belongs to someone else; the
                provider is not called
            EmptyResultError: the provider recognised no text; nothing is stored
        """
        started = time.perf_counter()

        asset = await self._repository.get_owned_audio_asset(audio_asset_id, owner_id)
        await progress.advance(10, "Audio file located")

        audio = await self._storage.download(asset.storage_path)
        await progress.advance(25, "Audio downloaded")

        await progress.advance(40, "Preparing request")
        logger.info(
            "transcription_requested",
            audio_asset_id=str(asset.id),
            provider=self._provider.name,
            byte_size=len(audio),
        )
        result = await self._provider.transcribe(
            audio, asset.mime_type, language=self.language, model=self.model
        )
        await progress.advance(60, "Transcription received")

        text = result.text.strip()
        word_count = result.word_count or len(text.split())
        await progress.advance(80, "Transcription parsed")

        if not text:
            raise EmptyResultError(
                "No transcription text received", audio_asset_id=str(asset.id)
            )

        row = Transcript.new_row(
            audio_asset_id=asset.id,
            text=text,
            confidence=result.confidence or 0.0,
            word_count=word_count,
            language=result.language or self.language,
            model_name=result.model or self.model,
            processing_time_seconds=round(time.perf_counter() - started, 3),
            raw_response=result.raw_response,
        )
        await progress.advance(90, "Saving transcription")
        try:
            transcript = await self._repository.insert_transcript(row)
        except CallCoachError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save transcription: {e}") from e
        await progress.advance(100, "Transcription saved")

        logger.info(
            "transcript_created",
            transcript_id=str(transcript.id),
            audio_asset_id=str(asset.id),
            word_count=transcript.word_count,
            confidence=transcript.confidence,
        )
        if self._event_bus is not None:
            await self._event_bus.emit(
                EventType.TRANSCRIPT_CREATED,
                source="stage:transcription",
                payload={
                    "transcript_id": str(transcript.id),
                    "audio_asset_id": str(asset.id),
                    "word_count": transcript.word_count,
                },
                user_id=owner_id,
            )
        return transcript

    async def list_for_audio_asset(self, owner_id: UUID, audio_asset_id: UUID) -> list[Transcript]:
        await self._repository.get_owned_audio_asset(audio_asset_id, owner_id)
        return await self._repository.list_transcripts([audio_asset_id])
