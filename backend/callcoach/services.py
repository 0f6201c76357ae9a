"""Application service container.

Wires the platform, the providers and the stage services together and owns
the per-user workflow sessions. Built once at startup and kept on
``app.state.services``; tests build one directly.
"""

from dataclasses import dataclass
from typing import Callable

from callcoach.config import Settings
from callcoach.core.ai.base import AIProvider
from callcoach.core.ai.deepgram import DeepgramProvider
from callcoach.core.ai.gemini import GeminiProvider
from callcoach.core.events.bus import EventBus
from callcoach.core.logging import get_logger
from callcoach.core.platform.base import AuthUser, Platform
from callcoach.core.repository import RecordRepository
from callcoach.core.workflow.controller import WorkflowController
from callcoach.core.workflow.sessions import WorkflowSessions
from callcoach.plugins.analysis.service import AnalysisStage
from callcoach.plugins.analysis.strategies import SalesCoachingRubric
from callcoach.plugins.history.service import HistoryService
from callcoach.plugins.recording.devices import Microphone, SoundDeviceMicrophone
from callcoach.plugins.recording.recorder import AudioRecorder
from callcoach.plugins.transcription.service import TranscriptionStage
from callcoach.plugins.upload.service import AudioAssetWriter, UploadStage

logger = get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    platform: Platform
    event_bus: EventBus
    repository: RecordRepository
    speech_to_text: AIProvider
    language_model: AIProvider
    writer: AudioAssetWriter
    upload: UploadStage
    transcription: TranscriptionStage
    analysis: AnalysisStage
    history: HistoryService
    sessions: WorkflowSessions
    microphone_factory: Callable[[], Microphone]

    def controller_for(self, user: AuthUser) -> WorkflowController:
        return self.sessions.get(user)

    async def aclose(self) -> None:
        await self.sessions.close_all()
        await self.speech_to_text.aclose()
        await self.language_model.aclose()


def build_services(
    settings: Settings,
    platform: Platform,
    event_bus: EventBus,
    speech_to_text: AIProvider | None = None,
    language_model: AIProvider | None = None,
    microphone_factory: Callable[[], Microphone] | None = None,
) -> Services:
    """Build the container. Providers default to Deepgram and Gemini from settings."""
    speech_to_text = speech_to_text or DeepgramProvider.from_settings(settings)
    language_model = language_model or GeminiProvider.from_settings(settings)
    microphone_factory = microphone_factory or SoundDeviceMicrophone

    repository = RecordRepository(platform.tables)
    writer = AudioAssetWriter(platform.storage, repository, event_bus)
    upload = UploadStage(writer, settings.upload_mime_types, settings.upload_max_bytes)
    transcription = TranscriptionStage(
        repository,
        platform.storage,
        speech_to_text,
        event_bus,
        language=settings.deepgram_language,
        model=settings.deepgram_model,
    )
    analysis = AnalysisStage(
        repository,
        language_model,
        event_bus,
        default_strategy=SalesCoachingRubric(training_material=settings.training_material),
    )
    history = HistoryService(repository, platform.storage, event_bus)

    def _controller_factory(user: AuthUser) -> WorkflowController:
        recorder = AudioRecorder(
            writer,
            microphone_factory,
            sample_rate=settings.recording_sample_rate,
            channels=settings.recording_channels,
            event_bus=event_bus,
            user_id=user.id,
        )
        return WorkflowController(
            user,
            event_bus=event_bus,
            upload_stage=upload,
            transcription_stage=transcription,
            analysis_stage=analysis,
            recorder=recorder,
            auto_chain=settings.auto_chain,
        )

    logger.info(
        "services_built",
        platform=platform.name,
        speech_to_text=speech_to_text.name,
        language_model=language_model.name,
    )
    return Services(
        settings=settings,
        platform=platform,
        event_bus=event_bus,
        repository=repository,
        speech_to_text=speech_to_text,
        language_model=language_model,
        writer=writer,
        upload=upload,
        transcription=transcription,
        analysis=analysis,
        history=history,
        sessions=WorkflowSessions(_controller_factory),
        microphone_factory=microphone_factory,
    )
