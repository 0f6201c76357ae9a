"""Analysis plugin."""

from callcoach.plugins.analysis.plugin import AnalysisPlugin

__all__ = ["AnalysisPlugin"]
