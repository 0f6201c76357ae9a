"""Unit tests for Upload plugin."""

from uuid import UUID

import pytest

from callcoach.core.errors import ValidationError
from callcoach.plugins.upload.media import file_extension, probe_duration, storage_path_for
from callcoach.plugins.upload.router import encode_filename_rfc2231
from callcoach.plugins.upload.service import UploadedFile, validate_upload

OWNER = UUID("12345678-1234-5678-1234-567812345678")


@pytest.mark.plugin
class TestUploadPluginMetadata:
    """Tests for plugin metadata and configuration."""

    def test_plugin_has_required_metadata(self):
        from callcoach.plugins.upload.plugin import UploadPlugin

        metadata = UploadPlugin().metadata
        assert metadata.name == "upload"
        assert metadata.priority == 10

    def test_plugin_declares_no_dependencies(self):
        """Upload is the base plugin, no dependencies."""
        from callcoach.plugins.upload.plugin import UploadPlugin

        assert UploadPlugin().metadata.dependencies == []

    def test_plugin_has_router(self):
        from callcoach.plugins.upload.plugin import UploadPlugin

        assert UploadPlugin().get_router() is not None


@pytest.mark.plugin
class TestValidation:
    @pytest.mark.parametrize(
        "content_type",
        ["audio/mpeg", "audio/wav", "audio/mp4", "audio/flac", "audio/ogg"],
    )
    def test_accepted_types(self, content_type):
        validate_upload(UploadedFile("call", content_type, b"x"))

    @pytest.mark.parametrize("content_type", ["video/mp4", "text/plain", "audio/x-aiff", ""])
    def test_rejected_types(self, content_type):
        with pytest.raises(ValidationError, match="Invalid file type"):
            validate_upload(UploadedFile("call", content_type, b"x"))

    def test_size_limit_is_inclusive(self):
        validate_upload(UploadedFile("call.mp3", "audio/mpeg", b"x" * 100), max_bytes=100)

        with pytest.raises(ValidationError, match="less than"):
            validate_upload(UploadedFile("call.mp3", "audio/mpeg", b"x" * 101), max_bytes=100)

    def test_default_limit_is_25mb(self):
        with pytest.raises(ValidationError, match="File size must be less than 25MB"):
            validate_upload(UploadedFile("big.mp3", "audio/mpeg", b"\x00" * (25 * 1024 * 1024 + 1)))

    def test_empty_file_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            validate_upload(UploadedFile("call.mp3", "audio/mpeg", b""))


@pytest.mark.plugin
class TestMediaHelpers:
    def test_extension_from_filename(self):
        assert file_extension("Call.MP3", "audio/mpeg") == "mp3"

    def test_extension_falls_back_to_mime(self):
        assert file_extension("call", "audio/mp4") == "m4a"
        assert file_extension("", "application/octet-stream") == "bin"

    def test_storage_paths_are_unique_and_owned(self):
        first = storage_path_for(OWNER, "call.mp3", "audio/mpeg")
        second = storage_path_for(OWNER, "call.mp3", "audio/mpeg")

        assert first != second
        assert first.startswith(f"{OWNER}/")
        assert first.endswith(".mp3")

    def test_probe_wav_duration(self):
        from tests.conftest import make_wav_bytes

        assert probe_duration(make_wav_bytes(seconds=2.0)) == 2.0

    def test_probe_garbage_returns_none(self):
        assert probe_duration(b"not audio at all") is None


@pytest.mark.plugin
class TestContentDisposition:
    def test_ascii_filename(self):
        assert encode_filename_rfc2231("call.mp3") == 'filename="call.mp3"'

    def test_non_ascii_filename(self):
        assert encode_filename_rfc2231("rozmowa-łódź.mp3") == (
            "filename*=UTF-8''rozmowa-%C5%82%C3%B3d%C5%BA.mp3"
        )
