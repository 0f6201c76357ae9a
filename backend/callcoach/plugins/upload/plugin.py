"""Upload plugin implementation."""

from typing import Any

from fastapi import APIRouter

from callcoach.core.plugins.base import BasePlugin, PluginCapabilities, PluginMetadata


class UploadPlugin(BasePlugin):
    """
    Core plugin for audio file upload and storage.

    Handles:
    - MIME type and size validation
    - Storing bytes, then recording the audio file row
    - Serving stored bytes back for playback
    """

    @property
    def metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name="upload",
            version="1.0.0",
            display_name="Audio Upload",
            description="Upload audio files (MP3, WAV, M4A, FLAC, OGG) up to 25MB",
            author="CallCoach",
            priority=10,  # Highest priority - runs first
            dependencies=[],
            color="#F59E0B",  # Amber 500
        )

    @property
    def capabilities(self) -> PluginCapabilities:
        return PluginCapabilities(has_routes=True)

    async def setup(self, settings: dict[str, Any]) -> None:
        """Initialize plugin with settings."""
        self._settings = settings

    def get_router(self) -> APIRouter:
        """Return plugin router."""
        from callcoach.plugins.upload.router import router
        return router
