"""One workflow controller per signed-in user."""

from typing import Callable
from uuid import UUID

from callcoach.core.logging import get_logger
from callcoach.core.platform.base import AuthUser
from callcoach.core.workflow.controller import WorkflowController

logger = get_logger(__name__)


class WorkflowSessions:
    def __init__(self, factory: Callable[[AuthUser], WorkflowController]) -> None:
        self._factory = factory
        self._controllers: dict[UUID, WorkflowController] = {}

    def get(self, user: AuthUser) -> WorkflowController:
        controller = self._controllers.get(user.id)
        if controller is None:
            controller = self._factory(user)
            self._controllers[user.id] = controller
            logger.debug("workflow_session_created", user_id=str(user.id))
        return controller

    def peek(self, user_id: UUID) -> WorkflowController | None:
        return self._controllers.get(user_id)

    async def end(self, user_id: UUID) -> None:
        """Drop a user's controller (on sign-out), cancelling its work."""
        controller = self._controllers.pop(user_id, None)
        if controller is not None:
            await controller.aclose()

    async def close_all(self) -> None:
        for user_id in list(self._controllers):
            await self.end(user_id)

    def __len__(self) -> int:
        return len(self._controllers)
