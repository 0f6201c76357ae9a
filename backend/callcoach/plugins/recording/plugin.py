"""Recording plugin implementation."""

from typing import Any

from fastapi import APIRouter

from callcoach.core.plugins.base import BasePlugin, PluginCapabilities, PluginMetadata


class RecordingPlugin(BasePlugin):
    """
    Microphone recording.

    Start, pause, resume and stop a capture on the default input device,
    then save it as a WAV audio file through the same path as uploads.
    """

    @property
    def metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name="recording",
            version="1.0.0",
            display_name="Audio Recording",
            description="Record a call from the microphone",
            author="CallCoach",
            priority=15,  # After upload (10)
            dependencies=["upload"],
            color="#EF4444",  # Red 500
        )

    @property
    def capabilities(self) -> PluginCapabilities:
        return PluginCapabilities(has_routes=True)

    async def setup(self, settings: dict[str, Any]) -> None:
        self._settings = settings

    def get_router(self) -> APIRouter:
        from callcoach.plugins.recording.router import router
        return router
