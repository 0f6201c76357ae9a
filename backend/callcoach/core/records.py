"""Persisted records produced by the workflow stages.

Each record maps to one platform table. Column names follow the hosted
schema (``audio_files``, ``transcriptions``, ``ai_analyses``); the model
field names are the ones used throughout the code base.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

AUDIO_FILES_TABLE = "audio_files"
TRANSCRIPTIONS_TABLE = "transcriptions"
AI_ANALYSES_TABLE = "ai_analyses"


class AssetSource(str, Enum):
    UPLOAD = "upload"
    RECORDING = "recording"


class _Record(BaseModel):
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # SQLite returns naive timestamps
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)


class AudioAsset(_Record):
    """An uploaded or recorded audio file."""

    id: UUID
    owner_id: UUID
    filename: str
    storage_path: str
    byte_size: int
    duration_seconds: float | None = None
    format: str
    mime_type: str
    source: AssetSource
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AudioAsset":
        return cls(
            id=row["id"],
            owner_id=row["user_id"],
            filename=row["filename"],
            storage_path=row["file_path"],
            byte_size=row["file_size"],
            duration_seconds=row.get("duration"),
            format=row["format"],
            mime_type=row["mime_type"],
            source=row["upload_type"],
            metadata=row.get("metadata") or {},
            created_at=row["created_at"],
        )

    @staticmethod
    def new_row(
        owner_id: UUID,
        filename: str,
        storage_path: str,
        byte_size: int,
        duration_seconds: float | None,
        format: str,
        mime_type: str,
        source: AssetSource,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return {
            "user_id": str(owner_id),
            "filename": filename,
            "file_path": storage_path,
            "file_size": byte_size,
            "duration": duration_seconds,
            "format": format,
            "mime_type": mime_type,
            "upload_type": source.value,
            "metadata": metadata or {},
        }


class Transcript(_Record):
    """Speech-to-text output for one AudioAsset."""

    id: UUID
    audio_asset_id: UUID
    text: str
    confidence: float | None = None
    word_count: int | None = None
    language: str
    model_name: str
    processing_time_seconds: float | None = None
    raw_response: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Transcript":
        return cls(
            id=row["id"],
            audio_asset_id=row["audio_file_id"],
            text=row["transcription_text"],
            confidence=row.get("confidence_score"),
            word_count=row.get("word_count"),
            language=row["language"],
            model_name=row["model"],
            processing_time_seconds=row.get("processing_time"),
            raw_response=row.get("deepgram_response") or {},
            created_at=row["created_at"],
        )

    @staticmethod
    def new_row(
        audio_asset_id: UUID,
        text: str,
        confidence: float | None,
        word_count: int | None,
        language: str,
        model_name: str,
        processing_time_seconds: float | None,
        raw_response: dict[str, Any],
    ) -> dict[str, Any]:
        return {
            "audio_file_id": str(audio_asset_id),
            "transcription_text": text,
            "confidence_score": confidence,
            "word_count": word_count,
            "language": language,
            "model": model_name,
            "processing_time": processing_time_seconds,
            "deepgram_response": raw_response,
        }


class AnalysisResult(_Record):
    """Language-model output for one Transcript.

    ``raw_response_text`` is stored exactly as the provider returned it,
    even when it is not the JSON the rubric asks for.
    """

    id: UUID
    transcript_id: UUID
    rubric_prompt: str
    raw_response_text: str
    model_name: str
    token_count: int | None = None
    processing_time_seconds: float | None = None
    analysis_kind: str
    metadata: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AnalysisResult":
        return cls(
            id=row["id"],
            transcript_id=row["transcription_id"],
            rubric_prompt=row["system_prompt"],
            raw_response_text=row["ai_response"],
            model_name=row["model_used"],
            token_count=row.get("token_count"),
            processing_time_seconds=row.get("processing_time"),
            analysis_kind=row["analysis_type"],
            metadata=row.get("metadata") or {},
            created_at=row["created_at"],
        )

    @staticmethod
    def new_row(
        transcript_id: UUID,
        rubric_prompt: str,
        raw_response_text: str,
        model_name: str,
        token_count: int | None,
        processing_time_seconds: float | None,
        analysis_kind: str,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return {
            "transcription_id": str(transcript_id),
            "system_prompt": rubric_prompt,
            "ai_response": raw_response_text,
            "model_used": model_name,
            "token_count": token_count,
            "processing_time": processing_time_seconds,
            "analysis_type": analysis_kind,
            "metadata": metadata or {},
        }
