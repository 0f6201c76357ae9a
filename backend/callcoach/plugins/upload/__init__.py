"""Upload plugin."""

from callcoach.plugins.upload.plugin import UploadPlugin

__all__ = ["UploadPlugin"]
