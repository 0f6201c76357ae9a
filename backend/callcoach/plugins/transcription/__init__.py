"""Transcription plugin."""

from callcoach.plugins.transcription.plugin import TranscriptionPlugin

__all__ = ["TranscriptionPlugin"]
