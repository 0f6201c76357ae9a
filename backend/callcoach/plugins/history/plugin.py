"""History plugin implementation."""

from typing import Any

from fastapi import APIRouter

from callcoach.core.plugins.base import BasePlugin, PluginCapabilities, PluginMetadata


class HistoryPlugin(BasePlugin):
    """Browse, search, reopen and delete past calls."""

    @property
    def metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name="history",
            version="1.0.0",
            display_name="History",
            description="Past audio files with their transcriptions and analyses",
            author="CallCoach",
            priority=90,
            dependencies=["upload"],
            color="#10B981",  # Emerald
        )

    @property
    def capabilities(self) -> PluginCapabilities:
        return PluginCapabilities(has_routes=True)

    async def setup(self, settings: dict[str, Any]) -> None:
        self._settings = settings

    def get_router(self) -> APIRouter:
        from callcoach.plugins.history.router import router
        return router
