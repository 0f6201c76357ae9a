"""Recording plugin."""

from callcoach.plugins.recording.plugin import RecordingPlugin

__all__ = ["RecordingPlugin"]
