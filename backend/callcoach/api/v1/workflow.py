"""Workflow state endpoints for the view layer."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from callcoach.api.deps import CurrentController

router = APIRouter()


class AutoChainRequest(BaseModel):
    enabled: bool


@router.get("")
async def get_workflow(controller: CurrentController) -> dict[str, Any]:
    """Current selection, error slot and per-stage running/progress."""
    return controller.snapshot()


@router.post("/reset")
async def reset_workflow(controller: CurrentController) -> dict[str, Any]:
    await controller.reset()
    return controller.snapshot()


@router.put("/auto-chain")
async def set_auto_chain(data: AutoChainRequest, controller: CurrentController) -> dict[str, Any]:
    await controller.set_auto_chain(data.enabled)
    return controller.snapshot()


@router.post("/sync")
async def sync_workflow(controller: CurrentController) -> dict[str, Any]:
    """Start the next auto-chained stage if one is due."""
    controller.sync()
    return controller.snapshot()
