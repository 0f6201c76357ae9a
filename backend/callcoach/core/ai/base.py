"""Base AI provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class TranscriptionWord:
    """Word with timestamp."""

    word: str
    start: float  # seconds
    end: float  # seconds
    confidence: float | None = None


@dataclass
class TranscriptionResult:
    """Result of audio transcription."""

    text: str
    language: str
    confidence: float | None = None
    duration: float | None = None  # seconds
    words: list[TranscriptionWord] = field(default_factory=list)
    model: str = ""
    raw_response: dict = field(default_factory=dict)

    @property
    def word_count(self) -> int:
        return len(self.words)


@dataclass
class CompletionResult:
    """Result of a text generation call.

    ``text`` is empty when the provider returned no candidate text.
    """

    text: str
    model: str = ""
    token_count: int | None = None
    safety_ratings: list[dict] = field(default_factory=list)
    raw_response: dict = field(default_factory=dict)


class AIProvider(ABC):
    """Abstract base class for AI providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    async def transcribe(
        self,
        audio_data: bytes,
        mime_type: str,
        language: str | None = None,
        **kwargs: Any,
    ) -> TranscriptionResult:
        """Transcribe audio data (optional)."""
        raise NotImplementedError("Transcription not supported by this provider")

    async def complete(
        self,
        prompt: str,
        **kwargs: Any,
    ) -> CompletionResult:
        """Text completion (optional)."""
        raise NotImplementedError("Text completion not supported by this provider")

    async def aclose(self) -> None:
        """Release HTTP resources."""
