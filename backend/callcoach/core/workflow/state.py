"""In-memory workflow state for one user."""

from dataclasses import dataclass, field
from typing import Any

from callcoach.core.events.types import WorkflowStage
from callcoach.core.records import AnalysisResult, AudioAsset, Transcript


@dataclass
class StageStatus:
    running: bool = False
    progress: int = 0


def _stage_statuses() -> dict[WorkflowStage, StageStatus]:
    return {stage: StageStatus() for stage in WorkflowStage}


@dataclass
class WorkflowState:
    """Current selection, shared error slot and per-stage status."""

    audio_asset: AudioAsset | None = None
    transcript: Transcript | None = None
    analysis: AnalysisResult | None = None
    error: str | None = None
    stages: dict[WorkflowStage, StageStatus] = field(default_factory=_stage_statuses)

    def status(self, stage: WorkflowStage) -> StageStatus:
        return self.stages[stage]

    def snapshot(self) -> dict[str, Any]:
        return {
            "audio_asset": self.audio_asset.model_dump(mode="json") if self.audio_asset else None,
            "transcript": self.transcript.model_dump(mode="json") if self.transcript else None,
            "analysis": self.analysis.model_dump(mode="json") if self.analysis else None,
            "error": self.error,
            "stages": {
                stage.value: {"running": status.running, "progress": status.progress}
                for stage, status in self.stages.items()
            },
        }
