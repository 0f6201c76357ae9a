"""Typed access to the workflow tables, including ownership checks."""

from typing import Any
from uuid import UUID

from callcoach.core.errors import AuthorizationError, RecordNotFoundError
from callcoach.core.platform.base import TableStore
from callcoach.core.records import (
    AI_ANALYSES_TABLE,
    AUDIO_FILES_TABLE,
    TRANSCRIPTIONS_TABLE,
    AnalysisResult,
    AudioAsset,
    Transcript,
)


class RecordRepository:
    def __init__(self, tables: TableStore) -> None:
        self._tables = tables

    # === AUDIO ASSETS ===

    async def insert_audio_asset(self, row: dict[str, Any]) -> AudioAsset:
        return AudioAsset.from_row(await self._tables.insert(AUDIO_FILES_TABLE, row))

    async def get_audio_asset(self, audio_asset_id: UUID) -> AudioAsset:
        rows = await self._tables.select(AUDIO_FILES_TABLE, eq={"id": audio_asset_id}, limit=1)
        if not rows:
            raise RecordNotFoundError("Audio file not found", audio_asset_id=str(audio_asset_id))
        return AudioAsset.from_row(rows[0])

    async def get_owned_audio_asset(self, audio_asset_id: UUID, owner_id: UUID) -> AudioAsset:
        """Fetch an asset and verify it belongs to ``owner_id``."""
        asset = await self.get_audio_asset(audio_asset_id)
        if asset.owner_id != owner_id:
            raise AuthorizationError(
                "Unauthorized access to audio file", audio_asset_id=str(audio_asset_id)
            )
        return asset

    async def list_audio_assets(self, owner_id: UUID) -> list[AudioAsset]:
        rows = await self._tables.select(AUDIO_FILES_TABLE, eq={"user_id": owner_id})
        return [AudioAsset.from_row(r) for r in rows]

    async def delete_audio_asset(self, audio_asset_id: UUID) -> None:
        await self._tables.delete(AUDIO_FILES_TABLE, eq={"id": audio_asset_id})

    # === TRANSCRIPTS ===

    async def insert_transcript(self, row: dict[str, Any]) -> Transcript:
        return Transcript.from_row(await self._tables.insert(TRANSCRIPTIONS_TABLE, row))

    async def get_transcript(self, transcript_id: UUID) -> Transcript:
        rows = await self._tables.select(TRANSCRIPTIONS_TABLE, eq={"id": transcript_id}, limit=1)
        if not rows:
            raise RecordNotFoundError("Transcription not found", transcript_id=str(transcript_id))
        return Transcript.from_row(rows[0])

    async def get_owned_transcript(
        self, transcript_id: UUID, owner_id: UUID
    ) -> tuple[Transcript, AudioAsset]:
        """Fetch a transcript and verify ownership through its audio asset."""
        transcript = await self.get_transcript(transcript_id)
        asset = await self.get_audio_asset(transcript.audio_asset_id)
        if asset.owner_id != owner_id:
            raise AuthorizationError(
                "Unauthorized access to transcription", transcript_id=str(transcript_id)
            )
        return transcript, asset

    async def latest_transcript(self, audio_asset_id: UUID) -> Transcript | None:
        rows = await self._tables.select(
            TRANSCRIPTIONS_TABLE, eq={"audio_file_id": audio_asset_id}, limit=1
        )
        return Transcript.from_row(rows[0]) if rows else None

    async def list_transcripts(self, audio_asset_ids: list[UUID]) -> list[Transcript]:
        if not audio_asset_ids:
            return []
        rows = await self._tables.select(
            TRANSCRIPTIONS_TABLE, in_={"audio_file_id": audio_asset_ids}
        )
        return [Transcript.from_row(r) for r in rows]

    # === ANALYSES ===

    async def insert_analysis(self, row: dict[str, Any]) -> AnalysisResult:
        return AnalysisResult.from_row(await self._tables.insert(AI_ANALYSES_TABLE, row))

    async def latest_analysis(self, transcript_id: UUID) -> AnalysisResult | None:
        rows = await self._tables.select(
            AI_ANALYSES_TABLE, eq={"transcription_id": transcript_id}, limit=1
        )
        return AnalysisResult.from_row(rows[0]) if rows else None

    async def list_analyses(self, transcript_ids: list[UUID]) -> list[AnalysisResult]:
        if not transcript_ids:
            return []
        rows = await self._tables.select(AI_ANALYSES_TABLE, in_={"transcription_id": transcript_ids})
        return [AnalysisResult.from_row(r) for r in rows]

    async def delete_for_audio_asset(self, audio_asset_id: UUID) -> None:
        """Delete analyses, transcripts and the asset row, children first."""
        transcripts = await self.list_transcripts([audio_asset_id])
        transcript_ids = [t.id for t in transcripts]
        if transcript_ids:
            await self._tables.delete(AI_ANALYSES_TABLE, in_={"transcription_id": transcript_ids})
            await self._tables.delete(TRANSCRIPTIONS_TABLE, in_={"id": transcript_ids})
        await self.delete_audio_asset(audio_asset_id)
