"""History plugin."""

from callcoach.plugins.history.plugin import HistoryPlugin

__all__ = ["HistoryPlugin"]
