"""Health check, plugin mounting and event endpoints."""

import pytest
from httpx import AsyncClient

from tests.conftest import make_wav_bytes


@pytest.mark.integration
@pytest.mark.asyncio
class TestHealth:
    async def test_health_lists_plugins(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["platform"] == "local"
        assert [p["name"] for p in data["plugins"]] == [
            "upload",
            "recording",
            "transcription",
            "analysis",
            "history",
        ]

    async def test_health_degraded_without_provider_keys(self, test_settings, platform, speech_to_text, language_model):
        from httpx import ASGITransport

        from callcoach.main import create_app, start_application, stop_application

        settings = test_settings.model_copy(update={"deepgram_api_key": ""})
        app = create_app(settings)
        await start_application(
            app, platform=platform, speech_to_text=speech_to_text, language_model=language_model
        )
        try:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                data = (await client.get("/health")).json()
        finally:
            await stop_application(app)

        assert data["status"] == "degraded"
        transcription = next(p for p in data["plugins"] if p["name"] == "transcription")
        assert transcription["status"] == "degraded"

    async def test_disabled_plugin_is_not_mounted(self, test_settings, platform, speech_to_text, language_model):
        from httpx import ASGITransport

        from callcoach.main import create_app, start_application, stop_application

        settings = test_settings.model_copy(update={"plugins_enabled": ["upload", "transcription", "analysis"]})
        app = create_app(settings)
        await start_application(
            app, platform=platform, speech_to_text=speech_to_text, language_model=language_model
        )
        try:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.get("/api/v1/plugins/history/records")
        finally:
            await stop_application(app)

        assert response.status_code == 404


@pytest.mark.integration
@pytest.mark.asyncio
class TestErrorResponses:
    async def test_invalid_upload_type(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/plugins/upload/files",
            headers=auth_headers,
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json() == {
            "detail": "Invalid file type. Please upload an audio file (MP3, WAV, M4A, FLAC, OGG).",
            "kind": "validation",
        }

    async def test_oversize_upload_is_rejected_after_bounded_read(
        self, app, async_client: AsyncClient, auth_headers: dict, monkeypatch
    ):
        from starlette.datastructures import UploadFile

        read_sizes = []
        original_read = UploadFile.read

        async def recording_read(self, size: int = -1) -> bytes:
            read_sizes.append(size)
            return await original_read(self, size)

        monkeypatch.setattr(UploadFile, "read", recording_read)
        app.state.services.upload.max_bytes = 1024 * 1024

        response = await async_client.post(
            "/api/v1/plugins/upload/files",
            headers=auth_headers,
            files={"file": ("call.wav", b"\0" * (3 * 1024 * 1024), "audio/wav")},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "File size must be less than 1MB"
        assert read_sizes == [1024 * 1024 + 1]
        listing = await async_client.get("/api/v1/plugins/upload/files", headers=auth_headers)
        assert listing.json() == []

    async def test_empty_result_is_unprocessable(
        self, app, async_client: AsyncClient, auth_headers: dict, test_user: dict, speech_to_text
    ):
        from uuid import UUID

        speech_to_text.text = ""
        await async_client.post(
            "/api/v1/plugins/upload/files",
            headers=auth_headers,
            files={"file": ("call.wav", make_wav_bytes(), "audio/wav")},
        )
        await app.state.services.sessions.peek(UUID(test_user["id"])).wait_idle()

        response = await async_client.post(
            "/api/v1/plugins/transcription/transcriptions", headers=auth_headers, json={}
        )

        assert response.status_code == 422
        assert response.json() == {"detail": "No transcription text received", "kind": "empty_result"}


@pytest.mark.integration
@pytest.mark.asyncio
class TestEvents:
    async def test_recent_events_are_scoped_to_user(
        self,
        app,
        async_client: AsyncClient,
        auth_headers: dict,
        other_auth_headers: dict,
        test_user: dict,
    ):
        from uuid import UUID

        await async_client.post(
            "/api/v1/plugins/upload/files",
            headers=auth_headers,
            files={"file": ("call.wav", make_wav_bytes(), "audio/wav")},
        )
        await app.state.services.sessions.peek(UUID(test_user["id"])).wait_idle()

        mine = (
            await async_client.get(
                "/api/v1/events/recent",
                headers=auth_headers,
                params={"types": "audio_asset.created,transcript.created,analysis.created"},
            )
        ).json()
        theirs = (
            await async_client.get(
                "/api/v1/events/recent",
                headers=other_auth_headers,
                params={"types": "audio_asset.created"},
            )
        ).json()

        assert {e["type"] for e in mine["events"]} == {
            "audio_asset.created",
            "transcript.created",
            "analysis.created",
        }
        assert theirs["count"] == 0

    async def test_stream_requires_query_token(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/events/stream")

        assert response.status_code == 401
        assert response.json()["detail"] == "Token required"
