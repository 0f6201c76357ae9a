"""Event types and models."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Core event types in the system."""

    # Record events
    AUDIO_ASSET_CREATED = "audio_asset.created"
    AUDIO_ASSET_DELETED = "audio_asset.deleted"
    TRANSCRIPT_CREATED = "transcript.created"
    ANALYSIS_CREATED = "analysis.created"

    # Stage lifecycle
    STAGE_STARTED = "stage.started"
    STAGE_PROGRESS = "stage.progress"
    STAGE_COMPLETED = "stage.completed"
    STAGE_FAILED = "stage.failed"

    # Workflow controller
    WORKFLOW_STATE_CHANGED = "workflow.state_changed"

    # Recorder
    RECORDING_STATE_CHANGED = "recording.state_changed"

    # User events
    USER_LOGIN = "user.login"
    USER_LOGOUT = "user.logout"
    USER_CREATED = "user.created"

    # Plugin events
    PLUGIN_LOADED = "plugin.loaded"
    PLUGIN_ERROR = "plugin.error"

    # System events
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"


class EventSeverity(str, Enum):
    """Event severity for timeline visualization."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class Event(BaseModel):
    """Event model for the event bus."""

    id: UUID = Field(default_factory=uuid4)
    type: str  # Event type string (EventType value or plugin-defined)
    source: str  # Origin: "core:auth", "stage:transcription", "plugin:history"
    payload: dict[str, Any] = Field(default_factory=dict)
    severity: EventSeverity = EventSeverity.INFO
    user_id: UUID | None = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class WorkflowStage(str, Enum):
    """Stages tracked by the workflow controller."""

    UPLOAD = "upload"
    RECORDING = "recording"
    TRANSCRIPTION = "transcription"
    ANALYSIS = "analysis"


class ProgressUpdate(BaseModel):
    """Progress notification for a single stage invocation.

    ``terminal`` is True on the last update of an invocation; the percent
    reported with it is 0 because the stage has reset its progress.
    """

    stage: WorkflowStage
    percent: int = Field(ge=0, le=100)
    terminal: bool = False
    message: str = ""
    succeeded: bool | None = None
