"""Plugin system module."""

from callcoach.core.plugins.base import (
    BasePlugin,
    PluginCapabilities,
    PluginMetadata,
    PluginState,
)
from callcoach.core.plugins.loader import PluginDependencyError, PluginLoader, PluginLoadError
from callcoach.core.plugins.registry import PluginRegistry

__all__ = [
    "BasePlugin",
    "PluginMetadata",
    "PluginCapabilities",
    "PluginState",
    "PluginRegistry",
    "PluginLoader",
    "PluginLoadError",
    "PluginDependencyError",
]
