"""AI providers module."""

from callcoach.core.ai.base import (
    AIProvider,
    CompletionResult,
    TranscriptionResult,
    TranscriptionWord,
)
from callcoach.core.ai.deepgram import DeepgramProvider
from callcoach.core.ai.gemini import GeminiProvider

__all__ = [
    "AIProvider",
    "CompletionResult",
    "TranscriptionResult",
    "TranscriptionWord",
    "DeepgramProvider",
    "GeminiProvider",
]
