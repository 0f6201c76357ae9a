"""Per-invocation progress reporting."""

from typing import Callable
from uuid import UUID

from callcoach.core.events.bus import EventBus
from callcoach.core.events.types import EventType, ProgressUpdate, WorkflowStage


class ProgressReporter:
    """Tracks one stage invocation's progress and publishes it.

    Progress never goes backwards: ``advance`` with a lower value than the
    current one is ignored. ``finish`` publishes a terminal update and
    resets the value to 0.
    """

    def __init__(
        self,
        stage: WorkflowStage,
        event_bus: EventBus | None = None,
        user_id: UUID | None = None,
        on_change: Callable[[int], None] | None = None,
    ) -> None:
        self.stage = stage
        self._event_bus = event_bus
        self._user_id = user_id
        self._on_change = on_change
        self._percent = 0
        self.history: list[int] = []

    @property
    def percent(self) -> int:
        return self._percent

    async def advance(self, percent: int, message: str = "") -> None:
        percent = max(0, min(100, percent))
        if percent < self._percent:
            return
        self._percent = percent
        self.history.append(percent)
        if self._on_change is not None:
            self._on_change(percent)
        await self._publish(ProgressUpdate(stage=self.stage, percent=percent, message=message))

    async def finish(self, succeeded: bool, message: str = "") -> None:
        self._percent = 0
        if self._on_change is not None:
            self._on_change(0)
        await self._publish(
            ProgressUpdate(
                stage=self.stage,
                percent=0,
                terminal=True,
                succeeded=succeeded,
                message=message,
            )
        )

    async def _publish(self, update: ProgressUpdate) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.emit(
            EventType.STAGE_PROGRESS,
            source=f"stage:{self.stage.value}",
            payload={"progress": update.model_dump(mode="json")},
            user_id=self._user_id,
        )
