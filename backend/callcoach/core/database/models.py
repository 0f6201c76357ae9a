"""Local mirror of the hosted platform tables."""

from sqlalchemy import JSON, Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from callcoach.core.database.base import Base, TimestampMixin, UUIDMixin


class UserAccount(Base, UUIDMixin, TimestampMixin):
    """Password account for the local auth service."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<UserAccount {self.email}>"


class AudioFileRow(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "audio_files"

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(500), nullable=False)
    file_path: Mapped[str] = mapped_column(String(1000), nullable=False, unique=True)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    duration: Mapped[float | None] = mapped_column(Float, nullable=True)
    format: Mapped[str] = mapped_column(String(20), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    upload_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    def __repr__(self) -> str:
        return f"<AudioFileRow {self.filename}>"


class TranscriptionRow(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "transcriptions"

    audio_file_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("audio_files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transcription_text: Mapped[str] = mapped_column(Text, nullable=False)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    word_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deepgram_response: Mapped[dict] = mapped_column(JSON, default=dict)
    language: Mapped[str] = mapped_column(String(20), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    processing_time: Mapped[float | None] = mapped_column(Float, nullable=True)


class AnalysisRow(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "ai_analyses"

    transcription_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("transcriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    system_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    ai_response: Mapped[str] = mapped_column(Text, nullable=False)
    model_used: Mapped[str] = mapped_column(String(100), nullable=False)
    token_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    processing_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    analysis_type: Mapped[str] = mapped_column(String(50), nullable=False)
    extra: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
