"""Workflow orchestration."""

from callcoach.core.workflow.controller import WorkflowController
from callcoach.core.workflow.progress import ProgressReporter
from callcoach.core.workflow.sessions import WorkflowSessions
from callcoach.core.workflow.state import StageStatus, WorkflowState

__all__ = [
    "ProgressReporter",
    "StageStatus",
    "WorkflowController",
    "WorkflowSessions",
    "WorkflowState",
]
