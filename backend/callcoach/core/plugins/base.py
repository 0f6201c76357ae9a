"""Plugin contract for workflow stages and views."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from fastapi import APIRouter


class PluginState(str, Enum):
    DISCOVERED = "discovered"
    LOADING = "loading"
    ACTIVE = "active"
    DISABLED = "disabled"
    ERROR = "error"


@dataclass
class PluginMetadata:
    """Static description of a plugin, returned from ``plugin.py``."""

    name: str  # Package name and router prefix
    version: str
    display_name: str
    description: str = ""
    author: str = ""

    priority: int = 100  # Lower loads first among ready plugins
    dependencies: list[str] = field(default_factory=list)

    color: str = "#6366F1"  # Stage color in the progress timeline

    required_env_vars: list[str] = field(default_factory=list)


@dataclass
class PluginCapabilities:
    has_routes: bool = False
    has_event_handlers: bool = False


class BasePlugin(ABC):
    """
    A stage or view packaged under ``callcoach.plugins.<name>``.

    Subclasses provide ``metadata``, ``capabilities`` and ``setup()``.
    A plugin with ``has_routes`` returns its router from ``get_router()``;
    it is mounted at ``/api/v1/plugins/<name>``. The stage services
    themselves are built by the service container, so a plugin only
    carries its settings, its routes and its health.
    """

    def __init__(self) -> None:
        self._state = PluginState.DISCOVERED
        self._settings: dict[str, Any] = {}

    @property
    @abstractmethod
    def metadata(self) -> PluginMetadata: ...

    @property
    @abstractmethod
    def capabilities(self) -> PluginCapabilities: ...

    @abstractmethod
    async def setup(self, settings: dict[str, Any]) -> None:
        """Receive this plugin's section of the settings at startup."""

    def get_router(self) -> APIRouter | None:
        return None

    def get_event_handlers(self) -> dict[str, list[Callable]]:
        """Event type -> handlers, subscribed on the bus at startup."""
        return {}

    async def on_startup(self) -> None:
        pass

    async def on_shutdown(self) -> None:
        pass

    async def healthcheck(self) -> dict[str, Any]:
        return {"status": "healthy"}

    def provider_health(self) -> dict[str, Any]:
        """Health for plugins backed by a remote provider.

        Reads ``model`` and ``api_key_configured`` from the plugin settings;
        a missing key reports ``degraded`` rather than failing startup.
        """
        configured = bool(self._settings.get("api_key_configured"))
        return {
            "status": "healthy" if configured else "degraded",
            "model": self._settings.get("model"),
            "api_key_configured": configured,
        }

    @property
    def state(self) -> PluginState:
        return self._state

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def settings(self) -> dict[str, Any]:
        return self._settings
