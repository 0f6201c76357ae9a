"""History of a user's audio files and their results."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel

from callcoach.core.errors import CallCoachError
from callcoach.core.events.bus import EventBus
from callcoach.core.events.types import EventType
from callcoach.core.logging import get_logger
from callcoach.core.platform.base import ObjectStore
from callcoach.core.records import AnalysisResult, AudioAsset, Transcript
from callcoach.core.repository import RecordRepository
from callcoach.plugins.analysis.rubric import parse_rubric_response

if TYPE_CHECKING:
    from callcoach.core.workflow.controller import WorkflowController

logger = get_logger(__name__)

PREVIEW_LENGTH = 150


class RecordStatus(str, Enum):
    COMPLETE = "Complete"
    TRANSCRIBED = "Transcribed"
    UPLOADED = "Uploaded"


class ItemKind(str, Enum):
    ALL = "all"
    AUDIO = "audio"
    TRANSCRIPTION = "transcription"
    ANALYSIS = "analysis"


class Period(str, Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class HistoryRecord(BaseModel):
    """One audio file with its latest transcript and that transcript's latest analysis."""

    audio_asset: AudioAsset
    transcript: Transcript | None = None
    analysis: AnalysisResult | None = None
    status: RecordStatus
    overall_score: float | None = None


class HistoryItem(BaseModel):
    id: UUID
    kind: ItemKind
    title: str
    content: str
    created_at: datetime
    audio_asset_id: UUID


def record_status(transcript: Transcript | None, analysis: AnalysisResult | None) -> RecordStatus:
    if analysis is not None:
        return RecordStatus.COMPLETE
    if transcript is not None:
        return RecordStatus.TRANSCRIBED
    return RecordStatus.UPLOADED


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def _preview(text: str) -> str:
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[:PREVIEW_LENGTH] + "..."


def period_cutoff(period: Period, now: datetime | None = None) -> datetime | None:
    now = now or datetime.now(timezone.utc)
    if period is Period.TODAY:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period is Period.WEEK:
        return now - timedelta(days=7)
    if period is Period.MONTH:
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        # Clamp e.g. March 31 -> February 28/29
        day = now.day
        while True:
            try:
                return now.replace(year=year, month=month, day=day)
            except ValueError:
                day -= 1
    return None


class HistoryService:
    def __init__(
        self,
        repository: RecordRepository,
        storage: ObjectStore,
        event_bus: EventBus | None = None,
    ) -> None:
        self._repository = repository
        self._storage = storage
        self._event_bus = event_bus

    async def list_records(self, owner_id: UUID) -> list[HistoryRecord]:
        """One row per audio file, newest first."""
        assets = await self._repository.list_audio_assets(owner_id)
        transcripts = await self._repository.list_transcripts([a.id for a in assets])

        # Rows come back newest first, so the first one seen per parent is the latest
        latest_transcript: dict[UUID, Transcript] = {}
        for transcript in transcripts:
            latest_transcript.setdefault(transcript.audio_asset_id, transcript)

        analyses = await self._repository.list_analyses(
            [t.id for t in latest_transcript.values()]
        )
        latest_analysis: dict[UUID, AnalysisResult] = {}
        for analysis in analyses:
            latest_analysis.setdefault(analysis.transcript_id, analysis)

        records = []
        for asset in assets:
            transcript = latest_transcript.get(asset.id)
            analysis = latest_analysis.get(transcript.id) if transcript else None
            records.append(self._build_record(asset, transcript, analysis))
        return records

    async def list_items(
        self,
        owner_id: UUID,
        query: str = "",
        kind: ItemKind = ItemKind.ALL,
        period: Period = Period.ALL,
    ) -> list[HistoryItem]:
        """Flat timeline of audio files, transcriptions and analyses, newest first."""
        assets = await self._repository.list_audio_assets(owner_id)
        assets_by_id = {a.id: a for a in assets}
        transcripts = await self._repository.list_transcripts(list(assets_by_id))
        transcripts_by_id = {t.id: t for t in transcripts}
        analyses = await self._repository.list_analyses(list(transcripts_by_id))

        items: list[HistoryItem] = []
        for asset in assets:
            items.append(
                HistoryItem(
                    id=asset.id,
                    kind=ItemKind.AUDIO,
                    title=asset.filename,
                    content=(
                        f"{asset.format.upper()} • {format_file_size(asset.byte_size)} "
                        f"• {asset.source.value}"
                    ),
                    created_at=asset.created_at,
                    audio_asset_id=asset.id,
                )
            )
        for transcript in transcripts:
            asset = assets_by_id[transcript.audio_asset_id]
            items.append(
                HistoryItem(
                    id=transcript.id,
                    kind=ItemKind.TRANSCRIPTION,
                    title=f"Transcription of {asset.filename}",
                    content=_preview(transcript.text),
                    created_at=transcript.created_at,
                    audio_asset_id=asset.id,
                )
            )
        for analysis in analyses:
            asset = assets_by_id[transcripts_by_id[analysis.transcript_id].audio_asset_id]
            items.append(
                HistoryItem(
                    id=analysis.id,
                    kind=ItemKind.ANALYSIS,
                    title=f"{analysis.analysis_kind} Analysis of {asset.filename}",
                    content=_preview(analysis.raw_response_text),
                    created_at=analysis.created_at,
                    audio_asset_id=asset.id,
                )
            )

        needle = query.strip().lower()
        if needle:
            items = [i for i in items if needle in i.title.lower() or needle in i.content.lower()]
        if kind is not ItemKind.ALL:
            items = [i for i in items if i.kind is kind]
        cutoff = period_cutoff(period)
        if cutoff is not None:
            items = [i for i in items if i.created_at >= cutoff]

        items.sort(key=lambda i: i.created_at, reverse=True)
        return items

    async def get_record(self, owner_id: UUID, audio_asset_id: UUID) -> HistoryRecord:
        asset = await self._repository.get_owned_audio_asset(audio_asset_id, owner_id)
        transcript = await self._repository.latest_transcript(asset.id)
        analysis = await self._repository.latest_analysis(transcript.id) if transcript else None
        return self._build_record(asset, transcript, analysis)

    async def open_record(
        self,
        owner_id: UUID,
        audio_asset_id: UUID,
        controller: "WorkflowController",
    ) -> HistoryRecord:
        """Load a past record into the controller as the current item."""
        record = await self.get_record(owner_id, audio_asset_id)
        await controller.restore(record.audio_asset, record.transcript, record.analysis)
        logger.info("history_record_opened", audio_asset_id=str(audio_asset_id))
        return record

    async def delete_record(self, owner_id: UUID, audio_asset_id: UUID) -> None:
        """Delete the asset's analyses, transcripts, row and stored bytes."""
        asset = await self._repository.get_owned_audio_asset(audio_asset_id, owner_id)
        await self._repository.delete_for_audio_asset(asset.id)
        try:
            await self._storage.remove([asset.storage_path])
        except CallCoachError as e:
            # The rows are gone; the stored object is left behind
            logger.error("orphaned_audio_object", storage_path=asset.storage_path, error=str(e))
        logger.info("audio_asset_deleted", audio_asset_id=str(asset.id))

        if self._event_bus is not None:
            await self._event_bus.emit(
                EventType.AUDIO_ASSET_DELETED,
                source="plugin:history",
                payload={"audio_asset_id": str(asset.id)},
                user_id=owner_id,
            )

    @staticmethod
    def _build_record(
        asset: AudioAsset,
        transcript: Transcript | None,
        analysis: AnalysisResult | None,
    ) -> HistoryRecord:
        score: float | None = None
        if analysis is not None:
            parsed = parse_rubric_response(analysis.raw_response_text)
            score = parsed.overall_score if parsed else None
        return HistoryRecord(
            audio_asset=asset,
            transcript=transcript,
            analysis=analysis,
            status=record_status(transcript, analysis),
            overall_score=score,
        )
