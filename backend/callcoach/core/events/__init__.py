"""Event system module."""

from callcoach.core.events.types import (
    Event,
    EventSeverity,
    EventType,
    ProgressUpdate,
    WorkflowStage,
)
from callcoach.core.events.bus import EventBus, Subscription, get_event_bus

__all__ = [
    "Event",
    "EventType",
    "EventSeverity",
    "ProgressUpdate",
    "WorkflowStage",
    "EventBus",
    "Subscription",
    "get_event_bus",
]
