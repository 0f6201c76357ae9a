"""Analysis plugin implementation."""

from typing import Any

from fastapi import APIRouter

from callcoach.core.plugins.base import BasePlugin, PluginCapabilities, PluginMetadata


class AnalysisPlugin(BasePlugin):
    """
    Sales-call coaching with Gemini.

    The default strategy scores the call against a fixed five-category
    rubric and asks for strict JSON. Free-form prompts (summary,
    sentiment, keywords, action items, insights, custom) are also
    available. The response text is stored verbatim either way.
    """

    @property
    def metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name="analysis",
            version="1.0.0",
            display_name="Sales Coaching Analysis",
            description="Score sales calls against a coaching rubric with Gemini",
            author="CallCoach",
            priority=30,  # After transcription (20)
            dependencies=["transcription"],
            color="#8B5CF6",  # Violet
            required_env_vars=["GEMINI_API_KEY"],
        )

    @property
    def capabilities(self) -> PluginCapabilities:
        return PluginCapabilities(has_routes=True)

    async def setup(self, settings: dict[str, Any]) -> None:
        self._settings = settings

    def get_router(self) -> APIRouter:
        from callcoach.plugins.analysis.router import router
        return router

    async def healthcheck(self) -> dict[str, Any]:
        return self.provider_health()
