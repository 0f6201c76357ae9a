"""
Shared pytest fixtures for CallCoach tests.

These fixtures are available to all tests in the project, including plugin tests.

Usage in plugin tests:
    # In callcoach/plugins/{name}/tests/conftest.py
    from tests.conftest import *  # noqa: F401, F403

Test categories:
    - Unit tests: in-memory objects, no database
    - Plugin tests: stage services against the local platform
    - Integration tests: HTTP clients over httpx.MockTransport, API over ASGITransport
    - E2E tests: upload -> transcription -> analysis -> history through the API

Platform:
    Tests use the local platform on a temporary SQLite file and storage
    directory per test. Deepgram, Gemini and the microphone are replaced
    by the fakes below.
"""

import io
import os
import wave
from collections.abc import AsyncGenerator
from typing import Any, Callable
from uuid import uuid4

import numpy as np
import pytest
import pytest_asyncio
from dotenv import load_dotenv
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

# =============================================================================
# Environment Setup
# =============================================================================

# Load .env file FIRST so environment variables are available for skipif decorators
load_dotenv()

# Override settings BEFORE importing app modules
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("PLATFORM_BACKEND", "local")

# Now import app modules
from callcoach.config import Settings  # noqa: E402
from callcoach.core.ai.base import (  # noqa: E402
    AIProvider,
    CompletionResult,
    TranscriptionResult,
    TranscriptionWord,
)
from callcoach.core.errors import DeviceError  # noqa: E402
from callcoach.core.events.bus import EventBus  # noqa: E402
from callcoach.core.events.types import WorkflowStage  # noqa: E402
from callcoach.core.platform.base import AuthUser, Platform  # noqa: E402
from callcoach.core.platform.local import build_local_platform  # noqa: E402
from callcoach.core.records import AudioAsset, Transcript  # noqa: E402
from callcoach.core.repository import RecordRepository  # noqa: E402
from callcoach.core.workflow.controller import WorkflowController  # noqa: E402
from callcoach.core.workflow.progress import ProgressReporter  # noqa: E402
from callcoach.plugins.analysis.service import AnalysisStage  # noqa: E402
from callcoach.plugins.history.service import HistoryService  # noqa: E402
from callcoach.plugins.recording.devices import (  # noqa: E402
    AudioCallback,
    InputStreamHandle,
    Microphone,
)
from callcoach.plugins.recording.recorder import AudioRecorder  # noqa: E402
from callcoach.plugins.transcription.service import TranscriptionStage  # noqa: E402
from callcoach.plugins.upload.service import AudioAssetWriter, UploadedFile, UploadStage  # noqa: E402

SAMPLE_TRANSCRIPT = "Hello, this is a test call."

SAMPLE_RUBRIC_RESPONSE = """```json
{
  "overall_score": 7,
  "criteria": {
    "rapport_building": {"score": 8, "feedback": ["Warm greeting", "Used the client's name"]},
    "understanding_needs": {"score": 6, "feedback": ["Ask one more discovery question"]},
    "product_knowledge": {"score": 7, "feedback": ["Explained the main plan clearly"]},
    "objection_handling": {"score": 7, "feedback": ["Acknowledged the price concern"]},
    "closing": {"score": 7, "feedback": ["Proposed a follow-up call"]}
  },
  "missed_training_points": ["Annual discount"],
  "strengths_summary": "Friendly and clear.",
  "improvement_summary": "Dig deeper into needs before pitching."
}
```"""


# =============================================================================
# Fakes
# =============================================================================


class FakeSpeechToText(AIProvider):
    """Deepgram stand-in returning a fixed transcript."""

    def __init__(
        self,
        text: str = SAMPLE_TRANSCRIPT,
        confidence: float = 0.92,
        error: Exception | None = None,
    ) -> None:
        self.text = text
        self.confidence = confidence
        self.error = error
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "fake-deepgram"

    async def transcribe(
        self,
        audio_data: bytes,
        mime_type: str,
        language: str | None = None,
        **kwargs: Any,
    ) -> TranscriptionResult:
        self.calls.append(
            {"size": len(audio_data), "mime_type": mime_type, "language": language, **kwargs}
        )
        if self.error is not None:
            raise self.error
        words = [
            TranscriptionWord(word=w, start=float(i), end=float(i + 1), confidence=self.confidence)
            for i, w in enumerate(self.text.split())
        ]
        return TranscriptionResult(
            text=self.text,
            language=language or "en",
            confidence=self.confidence,
            words=words,
            model=kwargs.get("model") or "nova-2",
            raw_response={"results": {"channels": [{"alternatives": [{"transcript": self.text}]}]}},
        )


class FakeLanguageModel(AIProvider):
    """Gemini stand-in returning fixed text."""

    def __init__(self, text: str = SAMPLE_RUBRIC_RESPONSE, error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    @property
    def name(self) -> str:
        return "fake-gemini"

    async def complete(self, prompt: str, **kwargs: Any) -> CompletionResult:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return CompletionResult(
            text=self.text,
            model="gemini-2.0-flash-exp",
            token_count=321,
            safety_ratings=[{"category": "HARM_CATEGORY_HARASSMENT", "probability": "NEGLIGIBLE"}],
            raw_response={"candidates": [{"content": {"parts": [{"text": self.text}]}}]},
        )


class FakeStream(InputStreamHandle):
    def __init__(self, callback: AudioCallback, start_error: Exception | None = None) -> None:
        self.callback = callback
        self.start_error = start_error
        self.started = False
        self.stopped = False
        self.closed = False

    def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def close(self) -> None:
        self.closed = True

    def push(self, seconds: float = 0.1, sample_rate: int = 44100, channels: int = 1) -> None:
        """Simulate the audio thread delivering a block of frames."""
        frames = int(seconds * sample_rate)
        self.callback(np.full((frames, channels), 0.1, dtype="float32"))


class FakeMicrophone(Microphone):
    def __init__(self, fail: bool = False, start_error: Exception | None = None) -> None:
        self.fail = fail
        self.start_error = start_error
        self.streams: list[FakeStream] = []

    @property
    def stream(self) -> FakeStream:
        return self.streams[-1]

    def open(self, sample_rate: int, channels: int, callback: AudioCallback) -> InputStreamHandle:
        if self.fail:
            raise DeviceError("Failed to access microphone. Please check permissions.")
        stream = FakeStream(callback, self.start_error)
        self.streams.append(stream)
        return stream


def make_wav_bytes(seconds: float = 1.0, sample_rate: int = 8000) -> bytes:
    """Silent 16-bit mono WAV."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(b"\x00\x00" * int(seconds * sample_rate))
    return buffer.getvalue()


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a per-test SQLite file and storage directory."""
    return Settings(
        app_env="testing",
        debug=False,
        log_level="WARNING",
        log_to_file=False,
        platform_backend="local",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'callcoach_test.db'}",
        storage_local_path=str(tmp_path / "storage"),
        secret_key="test-secret-key",
        deepgram_api_key="test-deepgram-key",
        gemini_api_key="test-gemini-key",
        auto_chain=True,
        training_material="",
    )


# =============================================================================
# Platform Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def platform(test_settings: Settings) -> AsyncGenerator[Platform, None]:
    """Local platform with fresh tables."""
    instance = await build_local_platform(test_settings)
    yield instance
    await instance.aclose()


@pytest.fixture
def repository(platform: Platform) -> RecordRepository:
    return RecordRepository(platform.tables)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def make_progress(event_bus: EventBus) -> Callable[[WorkflowStage], ProgressReporter]:
    def _make(stage: WorkflowStage) -> ProgressReporter:
        return ProgressReporter(stage, event_bus)

    return _make


# =============================================================================
# Provider Fixtures
# =============================================================================


@pytest.fixture
def speech_to_text() -> FakeSpeechToText:
    return FakeSpeechToText()


@pytest.fixture
def language_model() -> FakeLanguageModel:
    return FakeLanguageModel()


@pytest.fixture
def microphone() -> FakeMicrophone:
    return FakeMicrophone()


@pytest.fixture
def wav_bytes() -> bytes:
    return make_wav_bytes()


# =============================================================================
# Stage Fixtures
# =============================================================================


@pytest.fixture
def writer(platform: Platform, repository: RecordRepository, event_bus: EventBus) -> AudioAssetWriter:
    return AudioAssetWriter(platform.storage, repository, event_bus)


@pytest.fixture
def upload_stage(writer: AudioAssetWriter) -> UploadStage:
    return UploadStage(writer)


@pytest.fixture
def transcription_stage(
    repository: RecordRepository,
    platform: Platform,
    speech_to_text: FakeSpeechToText,
    event_bus: EventBus,
) -> TranscriptionStage:
    return TranscriptionStage(repository, platform.storage, speech_to_text, event_bus)


@pytest.fixture
def analysis_stage(
    repository: RecordRepository,
    language_model: FakeLanguageModel,
    event_bus: EventBus,
) -> AnalysisStage:
    return AnalysisStage(repository, language_model, event_bus)


@pytest.fixture
def history_service(
    repository: RecordRepository,
    platform: Platform,
    event_bus: EventBus,
) -> HistoryService:
    return HistoryService(repository, platform.storage, event_bus)


# =============================================================================
# Authentication Fixtures
# =============================================================================


async def _create_user(platform: Platform, prefix: str) -> dict[str, Any]:
    email = f"{prefix}_{uuid4().hex[:8]}@example.com"
    password = "testpassword123"
    session = await platform.auth.sign_up(email, password)
    assert session is not None
    return {
        "id": str(session.user.id),
        "email": email,
        "password": password,
        "user": session.user,
        "access_token": session.access_token,
    }


@pytest_asyncio.fixture
async def test_user(platform: Platform) -> dict[str, Any]:
    """Create a test user."""
    return await _create_user(platform, "test")


@pytest_asyncio.fixture
async def other_user(platform: Platform) -> dict[str, Any]:
    """A second user, for ownership checks."""
    return await _create_user(platform, "other")


@pytest.fixture
def auth_user(test_user: dict[str, Any]) -> AuthUser:
    return test_user["user"]


# =============================================================================
# Record Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def audio_asset(
    upload_stage: UploadStage,
    auth_user: AuthUser,
    make_progress: Callable[[WorkflowStage], ProgressReporter],
    wav_bytes: bytes,
) -> AudioAsset:
    """An uploaded WAV owned by the test user."""
    return await upload_stage.upload(
        auth_user.id,
        UploadedFile("call.wav", "audio/wav", wav_bytes),
        make_progress(WorkflowStage.UPLOAD),
    )


@pytest_asyncio.fixture
async def transcript(
    transcription_stage: TranscriptionStage,
    audio_asset: AudioAsset,
    auth_user: AuthUser,
    make_progress: Callable[[WorkflowStage], ProgressReporter],
) -> Transcript:
    """Transcript of ``audio_asset`` with the sample text."""
    return await transcription_stage.transcribe(
        auth_user.id, audio_asset.id, make_progress(WorkflowStage.TRANSCRIPTION)
    )


# =============================================================================
# Workflow Fixtures
# =============================================================================


@pytest.fixture
def recorder(
    writer: AudioAssetWriter,
    microphone: FakeMicrophone,
    event_bus: EventBus,
    auth_user: AuthUser,
) -> AudioRecorder:
    # Long tick interval: tests drive the counter with tick()
    return AudioRecorder(
        writer,
        lambda: microphone,
        event_bus=event_bus,
        user_id=auth_user.id,
        tick_interval=3600,
    )


@pytest_asyncio.fixture
async def controller(
    auth_user: AuthUser,
    event_bus: EventBus,
    upload_stage: UploadStage,
    transcription_stage: TranscriptionStage,
    analysis_stage: AnalysisStage,
    recorder: AudioRecorder,
) -> AsyncGenerator[WorkflowController, None]:
    """Controller in manual mode; tests enable auto-chaining explicitly."""
    instance = WorkflowController(
        auth_user,
        event_bus=event_bus,
        upload_stage=upload_stage,
        transcription_stage=transcription_stage,
        analysis_stage=analysis_stage,
        recorder=recorder,
        auto_chain=False,
    )
    yield instance
    await instance.aclose()


# =============================================================================
# Application Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def app(
    test_settings: Settings,
    platform: Platform,
    speech_to_text: FakeSpeechToText,
    language_model: FakeLanguageModel,
    microphone: FakeMicrophone,
) -> AsyncGenerator[FastAPI, None]:
    """Create test application instance.

    Runs the startup sequence directly since lifespan events aren't
    triggered by ASGITransport.
    """
    from callcoach.main import create_app, start_application, stop_application

    app_instance = create_app(test_settings)
    await start_application(
        app_instance,
        platform=platform,
        speech_to_text=speech_to_text,
        language_model=language_model,
        microphone_factory=lambda: microphone,
    )
    yield app_instance
    await stop_application(app_instance)


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def auth_headers(async_client: AsyncClient, test_user: dict) -> dict[str, str]:
    """Get authentication headers for test user."""
    response = await async_client.post(
        "/api/v1/auth/login",
        json={
            "email": test_user["email"],
            "password": test_user["password"],
        },
    )
    assert response.status_code == 200, f"Login failed: {response.text}"
    tokens = response.json()
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest_asyncio.fixture
async def other_auth_headers(async_client: AsyncClient, other_user: dict) -> dict[str, str]:
    response = await async_client.post(
        "/api/v1/auth/login",
        json={"email": other_user["email"], "password": other_user["password"]},
    )
    assert response.status_code == 200, f"Login failed: {response.text}"
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
