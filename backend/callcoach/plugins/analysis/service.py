"""Analysis stage: transcript -> Gemini -> analysis row."""

import time
from uuid import UUID

from callcoach.core.ai.base import AIProvider
from callcoach.core.errors import CallCoachError, EmptyResultError, PersistenceError
from callcoach.core.events.bus import EventBus
from callcoach.core.events.types import EventType
from callcoach.core.logging import get_logger
from callcoach.core.records import AnalysisResult
from callcoach.core.repository import RecordRepository
from callcoach.core.workflow.progress import ProgressReporter
from callcoach.plugins.analysis.strategies import AnalysisStrategy, SalesCoachingRubric

logger = get_logger(__name__)


class AnalysisStage:
    def __init__(
        self,
        repository: RecordRepository,
        provider: AIProvider,
        event_bus: EventBus | None = None,
        default_strategy: AnalysisStrategy | None = None,
    ) -> None:
        self._repository = repository
        self._provider = provider
        self._event_bus = event_bus
        self.default_strategy = default_strategy or SalesCoachingRubric()

    async def analyze(
        self,
        owner_id: UUID,
        transcript_id: UUID,
        progress: ProgressReporter,
        strategy: AnalysisStrategy | None = None,
    ) -> AnalysisResult:
        """
        Run ``strategy`` (default: the sales-coaching rubric) over a transcript.

        The response text is stored exactly as returned. Ownership is checked
        through the transcript's audio asset.
        """
        strategy = strategy or self.default_strategy
        await progress.advance(10, "Loading transcription")

        transcript, _ = await self._repository.get_owned_transcript(transcript_id, owner_id)
        await progress.advance(30, "Transcription loaded")

        started = time.perf_counter()
        prompt = strategy.render(transcript.text)
        await progress.advance(50, "Analyzing")
        logger.info(
            "analysis_requested",
            transcript_id=str(transcript.id),
            analysis_kind=strategy.analysis_kind,
            provider=self._provider.name,
        )

        result = await self._provider.complete(prompt)
        processing_time = round(time.perf_counter() - started, 3)
        await progress.advance(80, "Analysis received")

        if not result.text:
            raise EmptyResultError(
                "No analysis response received", transcript_id=str(transcript.id)
            )

        await progress.advance(90, "Saving analysis")
        row = AnalysisResult.new_row(
            transcript_id=transcript.id,
            rubric_prompt=strategy.stored_prompt,
            raw_response_text=result.text,
            model_name=result.model,
            token_count=result.token_count or 0,
            processing_time_seconds=processing_time,
            analysis_kind=strategy.analysis_kind,
            metadata={
                "gemini_response": result.raw_response,
                "safety_ratings": result.safety_ratings,
            },
        )
        try:
            analysis = await self._repository.insert_analysis(row)
        except CallCoachError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save analysis: {e}") from e
        await progress.advance(100, "Analysis saved")

        logger.info(
            "analysis_created",
            analysis_id=str(analysis.id),
            transcript_id=str(transcript.id),
            analysis_kind=analysis.analysis_kind,
            token_count=analysis.token_count,
        )
        if self._event_bus is not None:
            await self._event_bus.emit(
                EventType.ANALYSIS_CREATED,
                source="stage:analysis",
                payload={
                    "analysis_id": str(analysis.id),
                    "transcript_id": str(transcript.id),
                    "analysis_kind": analysis.analysis_kind,
                },
                user_id=owner_id,
            )
        return analysis

    async def list_for_transcript(self, owner_id: UUID, transcript_id: UUID) -> list[AnalysisResult]:
        """Analysis history of one transcript, newest first."""
        await self._repository.get_owned_transcript(transcript_id, owner_id)
        return await self._repository.list_analyses([transcript_id])
