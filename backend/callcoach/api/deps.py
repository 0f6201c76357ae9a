"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from callcoach.core.auth.dependencies import CurrentUser
from callcoach.core.workflow.controller import WorkflowController
from callcoach.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


def get_controller(user: CurrentUser, services: ServicesDep) -> WorkflowController:
    """The signed-in user's workflow controller."""
    return services.controller_for(user)


CurrentController = Annotated[WorkflowController, Depends(get_controller)]
