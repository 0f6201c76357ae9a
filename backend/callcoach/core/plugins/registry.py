"""Plugin registry - central store for all loaded plugins."""

from typing import Callable

from fastapi import APIRouter

from callcoach.core.plugins.base import BasePlugin, PluginState


class PluginRegistry:
    """Central registry for plugins. One instance per application."""

    def __init__(self) -> None:
        self._plugins: dict[str, BasePlugin] = {}

    @property
    def plugins(self) -> dict[str, BasePlugin]:
        """Get copy of plugins dict."""
        return self._plugins.copy()

    def register(self, plugin: BasePlugin) -> None:
        name = plugin.metadata.name

        if name in self._plugins:
            raise ValueError(f"Plugin {name} already registered")

        self._plugins[name] = plugin

    def get(self, name: str) -> BasePlugin | None:
        return self._plugins.get(name)

    def get_active_plugins(self) -> list[BasePlugin]:
        """Get active plugins sorted by priority (lower first)."""
        return sorted(
            (p for p in self._plugins.values() if p.state == PluginState.ACTIVE),
            key=lambda p: p.metadata.priority,
        )

    def collect_routers(self) -> list[tuple[str, APIRouter]]:
        """Collect routers from all active plugins."""
        routers = []
        for plugin in self.get_active_plugins():
            if plugin.capabilities.has_routes:
                router = plugin.get_router()
                if router:
                    routers.append((plugin.name, router))
        return routers

    def collect_event_handlers(self) -> dict[str, list[Callable]]:
        """Merge event handlers from all active plugins."""
        merged: dict[str, list[Callable]] = {}
        for plugin in self.get_active_plugins():
            if plugin.capabilities.has_event_handlers:
                for event_type, handlers in plugin.get_event_handlers().items():
                    merged.setdefault(event_type, []).extend(handlers)
        return merged
