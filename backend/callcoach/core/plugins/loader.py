"""Plugin loader - discovery and dependency-ordered loading of plugins."""

import importlib
import pkgutil
from types import ModuleType
from typing import TYPE_CHECKING

from callcoach.core.events.types import EventSeverity, EventType
from callcoach.core.logging import get_logger
from callcoach.core.plugins.base import BasePlugin, PluginMetadata, PluginState
from callcoach.core.plugins.registry import PluginRegistry

if TYPE_CHECKING:
    from callcoach.core.events.bus import EventBus

logger = get_logger(__name__)

PLUGINS_PACKAGE = "callcoach.plugins"


class PluginLoadError(Exception):
    """Error loading a plugin."""


class PluginDependencyError(Exception):
    """Error resolving plugin dependencies."""


class PluginLoader:
    """
    Responsible for:
    1. Discovery of plugin packages under callcoach.plugins
    2. Loading in dependency order (Kahn's algorithm)
    3. Registration in PluginRegistry
    """

    def __init__(
        self,
        registry: PluginRegistry,
        event_bus: "EventBus",
        package: str = PLUGINS_PACKAGE,
    ) -> None:
        self.registry = registry
        self.event_bus = event_bus
        self.package = package
        self._discovered: dict[str, type[BasePlugin]] = {}

    def discover(self, enabled: list[str] | None = None) -> list[str]:
        """
        Find plugin packages that contain a ``plugin`` module.
        If ``enabled`` is given, only those names are kept.
        """
        self._discovered.clear()
        package = importlib.import_module(self.package)

        for module_info in pkgutil.iter_modules(package.__path__):
            name = module_info.name
            if not module_info.ispkg or name.startswith("_"):
                continue
            if enabled is not None and name not in enabled:
                logger.info("plugin_disabled", plugin_name=name)
                continue

            module_name = f"{self.package}.{name}.plugin"
            try:
                module = importlib.import_module(module_name)
            except ModuleNotFoundError as e:
                if e.name != module_name:
                    raise
                logger.warning("plugin_invalid_structure", plugin_name=name)
                continue

            plugin_class = self._find_plugin_class(module)
            if plugin_class is None:
                logger.warning("plugin_class_missing", plugin_name=name)
                continue

            self._discovered[name] = plugin_class
            logger.info("plugin_discovered", plugin_name=name)

        return list(self._discovered.keys())

    @staticmethod
    def _find_plugin_class(module: ModuleType) -> type[BasePlugin] | None:
        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if (
                isinstance(attr, type)
                and issubclass(attr, BasePlugin)
                and attr is not BasePlugin
                and attr.__module__ == module.__name__
            ):
                return attr
        return None

    async def load_all(self, settings: dict[str, dict]) -> dict[str, BasePlugin]:
        """
        Instantiate, set up and register all discovered plugins.

        Args:
            settings: {plugin_name: {setting_key: value}}
        """
        instances = {name: cls() for name, cls in self._discovered.items()}
        load_order = self.resolve_load_order({n: p.metadata for n, p in instances.items()})

        loaded: dict[str, BasePlugin] = {}
        for name in load_order:
            plugin = instances[name]
            missing = [d for d in plugin.metadata.dependencies if d not in loaded]
            if missing:
                logger.error("plugin_dependency_not_loaded", plugin_name=name, missing=missing)
                continue
            try:
                await self._setup_plugin(plugin, settings.get(name, {}))
            except PluginLoadError as e:
                logger.error("plugin_load_failed", plugin_name=name, error=str(e))
                await self.event_bus.emit(
                    EventType.PLUGIN_ERROR,
                    source="core:plugins",
                    payload={"plugin_name": name, "error": str(e)},
                    severity=EventSeverity.ERROR,
                )
                continue
            loaded[name] = plugin
            self.registry.register(plugin)
            logger.info("plugin_loaded", plugin_name=name)
            await self.event_bus.emit(
                EventType.PLUGIN_LOADED,
                source="core:plugins",
                payload={"plugin_name": name, "version": plugin.metadata.version},
            )

        return loaded

    @staticmethod
    def resolve_load_order(metadata_map: dict[str, PluginMetadata]) -> list[str]:
        """
        Topological sort of plugins by dependencies.
        Raises PluginDependencyError on unknown or circular dependencies.
        """
        in_degree: dict[str, int] = {name: 0 for name in metadata_map}
        graph: dict[str, list[str]] = {name: [] for name in metadata_map}

        for name, meta in metadata_map.items():
            for dep in meta.dependencies:
                if dep not in metadata_map:
                    raise PluginDependencyError(f"Plugin {name} depends on unknown plugin: {dep}")
                graph[dep].append(name)
                in_degree[name] += 1

        # Ready plugins are taken by priority so the order is deterministic
        queue = sorted(
            (name for name, degree in in_degree.items() if degree == 0),
            key=lambda n: (metadata_map[n].priority, n),
        )
        result = []

        while queue:
            current = queue.pop(0)
            result.append(current)

            for dependent in graph[current]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)
            queue.sort(key=lambda n: (metadata_map[n].priority, n))

        if len(result) != len(metadata_map):
            raise PluginDependencyError("Circular dependency detected in plugins")

        return result

    async def _setup_plugin(self, plugin: BasePlugin, settings: dict) -> None:
        plugin._state = PluginState.LOADING
        try:
            await plugin.setup(settings)
        except Exception as e:
            plugin._state = PluginState.ERROR
            raise PluginLoadError(f"Plugin {plugin.name} setup failed: {e}") from e
        plugin._state = PluginState.ACTIVE
