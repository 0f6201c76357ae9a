"""Transcription plugin implementation."""

from typing import Any

from fastapi import APIRouter

from callcoach.core.plugins.base import BasePlugin, PluginCapabilities, PluginMetadata


class TranscriptionPlugin(BasePlugin):
    """
    Speech-to-text with Deepgram.

    Sends the stored audio bytes with their MIME type and stores the
    transcript, confidence and word count. With auto-chaining on, runs
    once for every new audio file.
    """

    @property
    def metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name="transcription",
            version="1.0.0",
            display_name="Transcription",
            description="Transcribe audio files with Deepgram",
            author="CallCoach",
            priority=20,  # After upload (10)
            dependencies=["upload"],
            color="#3B82F6",  # Blue
            required_env_vars=["DEEPGRAM_API_KEY"],
        )

    @property
    def capabilities(self) -> PluginCapabilities:
        return PluginCapabilities(has_routes=True)

    async def setup(self, settings: dict[str, Any]) -> None:
        self._settings = settings

    def get_router(self) -> APIRouter:
        from callcoach.plugins.transcription.router import router
        return router

    async def healthcheck(self) -> dict[str, Any]:
        return self.provider_health()
