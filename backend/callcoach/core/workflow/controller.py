"""Workflow controller: per-user orchestration of the workflow stages.

The controller owns the only mutable workflow state. Stages are plain
services that return records; the controller decides which record is
current, tracks running/progress per stage, keeps the shared error slot
and auto-chains Upload -> Transcription -> Analysis.

Observers subscribe on the event bus: every state change emits
``workflow.state_changed`` and every stage emits started/progress/
completed/failed events tagged with the user's id.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar
from uuid import UUID

from callcoach.core.errors import ValidationError
from callcoach.core.events.bus import EventBus, Subscription
from callcoach.core.events.types import Event, EventSeverity, EventType, WorkflowStage
from callcoach.core.logging import get_logger
from callcoach.core.platform.base import AuthUser
from callcoach.core.records import AnalysisResult, AudioAsset, Transcript
from callcoach.core.workflow.progress import ProgressReporter
from callcoach.core.workflow.state import WorkflowState

if TYPE_CHECKING:
    from callcoach.plugins.analysis.service import AnalysisStage
    from callcoach.plugins.analysis.strategies import AnalysisStrategy
    from callcoach.plugins.recording.recorder import AudioRecorder
    from callcoach.plugins.transcription.service import TranscriptionStage
    from callcoach.plugins.upload.service import UploadedFile, UploadStage

logger = get_logger(__name__)

T = TypeVar("T")

# Stages that may not overlap for the same item
_EXCLUSIVE = {
    WorkflowStage.UPLOAD: {WorkflowStage.UPLOAD},
    WorkflowStage.RECORDING: {WorkflowStage.RECORDING},
    WorkflowStage.TRANSCRIPTION: {WorkflowStage.TRANSCRIPTION, WorkflowStage.ANALYSIS},
    WorkflowStage.ANALYSIS: {WorkflowStage.ANALYSIS, WorkflowStage.TRANSCRIPTION},
}


class WorkflowController:
    def __init__(
        self,
        user: AuthUser,
        *,
        event_bus: EventBus,
        upload_stage: "UploadStage",
        transcription_stage: "TranscriptionStage",
        analysis_stage: "AnalysisStage",
        recorder: "AudioRecorder | None" = None,
        auto_chain: bool = True,
    ) -> None:
        self.user = user
        self.auto_chain = auto_chain
        self.recorder = recorder
        self._event_bus = event_bus
        self._upload_stage = upload_stage
        self._transcription_stage = transcription_stage
        self._analysis_stage = analysis_stage
        self._state = WorkflowState()
        # One-shot guards for auto-chaining, keyed by the record that triggered them
        self._auto_transcribed_asset: UUID | None = None
        self._auto_analyzed_transcript: UUID | None = None
        self._tasks: set[asyncio.Task] = set()

    # === GETTERS ===

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def audio_asset(self) -> AudioAsset | None:
        return self._state.audio_asset

    @property
    def transcript(self) -> Transcript | None:
        return self._state.transcript

    @property
    def analysis(self) -> AnalysisResult | None:
        return self._state.analysis

    @property
    def error(self) -> str | None:
        return self._state.error

    def is_running(self, stage: WorkflowStage) -> bool:
        return self._state.status(stage).running

    def snapshot(self) -> dict[str, Any]:
        return {**self._state.snapshot(), "auto_chain": self.auto_chain}

    def on_change(self, handler: Callable[[dict[str, Any]], Any]) -> Subscription:
        """Subscribe to this controller's state snapshots."""

        def _adapter(event: Event) -> Any:
            if event.user_id == self.user.id:
                return handler(event.payload["state"])
            return None

        return self._event_bus.subscribe(EventType.WORKFLOW_STATE_CHANGED, _adapter)

    # === SELECTION ===

    async def select_audio_asset(self, asset: AudioAsset | None) -> None:
        """Make ``asset`` current; clears transcript, analysis and auto guards."""
        self._state.audio_asset = asset
        self._state.transcript = None
        self._state.analysis = None
        self._reset_guards()
        await self._notify()
        self.sync()

    async def restore(
        self,
        asset: AudioAsset,
        transcript: Transcript | None = None,
        analysis: AnalysisResult | None = None,
    ) -> None:
        """Load a past item (asset plus its latest results) as current."""
        self._state.audio_asset = asset
        self._state.transcript = transcript
        self._state.analysis = analysis
        self._state.error = None
        self._reset_guards()
        await self._notify()
        self.sync()

    async def reset(self) -> None:
        self._state.audio_asset = None
        self._state.transcript = None
        self._state.analysis = None
        self._state.error = None
        self._reset_guards()
        await self._notify()

    async def set_auto_chain(self, enabled: bool) -> None:
        self.auto_chain = enabled
        await self._notify()
        self.sync()

    def _reset_guards(self) -> None:
        self._auto_transcribed_asset = None
        self._auto_analyzed_transcript = None

    # === STAGES ===

    async def upload(self, file: "UploadedFile") -> AudioAsset | None:
        """Run the Upload stage; the new asset becomes current."""
        asset = await self._run_stage(
            WorkflowStage.UPLOAD,
            lambda progress: self._upload_stage.upload(self.user.id, file, progress),
        )
        if asset is not None:
            await self.select_audio_asset(asset)
        return asset

    async def save_recording(self) -> AudioAsset | None:
        """Persist the stopped recording; the new asset becomes current."""
        if self.recorder is None:
            raise ValidationError("Recording is not available")
        recorder = self.recorder
        asset = await self._run_stage(
            WorkflowStage.RECORDING,
            lambda progress: recorder.save(self.user.id, progress),
        )
        if asset is not None:
            await self.select_audio_asset(asset)
        return asset

    async def transcribe(self, audio_asset_id: UUID | None = None) -> Transcript | None:
        """Run Transcription for ``audio_asset_id`` (default: current asset).

        Returns None without doing anything if Transcription or Analysis is
        already running.
        """
        if audio_asset_id is None:
            if self._state.audio_asset is None:
                raise ValidationError("No audio file selected")
            audio_asset_id = self._state.audio_asset.id

        transcript = await self._run_stage(
            WorkflowStage.TRANSCRIPTION,
            lambda progress: self._transcription_stage.transcribe(
                self.user.id, audio_asset_id, progress
            ),
        )
        if transcript is None:
            return None

        current = self._state.audio_asset
        if current is not None and current.id == transcript.audio_asset_id:
            self._state.transcript = transcript
            await self._notify()
            self.sync()
        else:
            logger.info(
                "transcript_not_current",
                transcript_id=str(transcript.id),
                audio_asset_id=str(transcript.audio_asset_id),
            )
        return transcript

    async def analyze(
        self,
        transcript_id: UUID | None = None,
        strategy: "AnalysisStrategy | None" = None,
    ) -> AnalysisResult | None:
        """Run Analysis for ``transcript_id`` (default: current transcript)."""
        if transcript_id is None:
            if self._state.transcript is None:
                raise ValidationError("No transcription selected")
            transcript_id = self._state.transcript.id

        analysis = await self._run_stage(
            WorkflowStage.ANALYSIS,
            lambda progress: self._analysis_stage.analyze(
                self.user.id, transcript_id, progress, strategy=strategy
            ),
        )
        if analysis is None:
            return None

        current = self._state.transcript
        if current is not None and current.id == analysis.transcript_id:
            self._state.analysis = analysis
            await self._notify()
        return analysis

    async def _run_stage(
        self,
        stage: WorkflowStage,
        work: Callable[[ProgressReporter], Awaitable[T]],
    ) -> T | None:
        busy = [s for s in _EXCLUSIVE[stage] if self._state.status(s).running]
        if busy:
            logger.info("stage_busy", stage=stage.value, running=[s.value for s in busy])
            return None

        status = self._state.status(stage)
        status.running = True
        status.progress = 0
        self._state.error = None

        def _on_progress(percent: int) -> None:
            status.progress = percent

        reporter = ProgressReporter(stage, self._event_bus, self.user.id, on_change=_on_progress)
        source = f"stage:{stage.value}"
        await self._emit(EventType.STAGE_STARTED, source, {"stage": stage.value})
        await self._notify()

        succeeded = False
        try:
            result = await work(reporter)
            succeeded = True
        except Exception as e:
            self._state.error = str(e) or e.__class__.__name__
            logger.warning("stage_failed", stage=stage.value, error=self._state.error)
            await self._emit(
                EventType.STAGE_FAILED,
                source,
                {"stage": stage.value, "error": self._state.error, "kind": getattr(e, "kind", "error")},
                severity=EventSeverity.ERROR,
            )
            raise
        finally:
            status.running = False
            await reporter.finish(succeeded)
            await self._notify()
            # The selection may have changed while this stage held the slot
            self.sync()

        await self._emit(
            EventType.STAGE_COMPLETED,
            source,
            {"stage": stage.value, "record_id": str(getattr(result, "id", ""))},
            severity=EventSeverity.SUCCESS,
        )
        return result

    # === AUTO-CHAIN ===

    def sync(self) -> asyncio.Task | None:
        """Start the next stage if auto-chaining applies.

        Safe to call any number of times: each asset is auto-transcribed
        at most once and each transcript auto-analyzed at most once until
        the selection changes.
        """
        if not self.auto_chain:
            return None

        state = self._state
        transcribing = self.is_running(WorkflowStage.TRANSCRIPTION)
        analyzing = self.is_running(WorkflowStage.ANALYSIS)

        if (
            state.audio_asset is not None
            and state.transcript is None
            and not transcribing
            and not analyzing
            and self._auto_transcribed_asset != state.audio_asset.id
        ):
            self._auto_transcribed_asset = state.audio_asset.id
            logger.info("auto_transcription_triggered", audio_asset_id=str(state.audio_asset.id))
            return self._spawn(self.transcribe(state.audio_asset.id))

        if (
            state.transcript is not None
            and state.analysis is None
            and not transcribing
            and not analyzing
            and self._auto_analyzed_transcript != state.transcript.id
        ):
            self._auto_analyzed_transcript = state.transcript.id
            logger.info("auto_analysis_triggered", transcript_id=str(state.transcript.id))
            return self._spawn(self.analyze(state.transcript.id))

        return None

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(self._run_background(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_background(self, coro: Awaitable[Any]) -> None:
        try:
            await coro
        except Exception as e:
            # Already recorded in the error slot by _run_stage
            logger.info("auto_stage_failed", error=str(e))

    async def wait_idle(self) -> None:
        """Wait until all auto-chained stages (including follow-ups) finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self.recorder is not None:
            await self.recorder.close()

    # === NOTIFICATIONS ===

    async def _notify(self) -> None:
        await self._emit(
            EventType.WORKFLOW_STATE_CHANGED,
            "core:workflow",
            {"state": self.snapshot()},
            severity=EventSeverity.DEBUG,
        )

    async def _emit(
        self,
        event_type: EventType,
        source: str,
        payload: dict[str, Any],
        severity: EventSeverity = EventSeverity.INFO,
    ) -> None:
        await self._event_bus.emit(
            event_type,
            source=source,
            payload=payload,
            user_id=self.user.id,
            severity=severity,
        )
