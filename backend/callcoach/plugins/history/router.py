"""History plugin router."""

from uuid import UUID

from fastapi import APIRouter, status

from callcoach.api.deps import CurrentController, ServicesDep
from callcoach.core.auth.dependencies import CurrentUser
from callcoach.plugins.history.service import HistoryItem, HistoryRecord, ItemKind, Period

router = APIRouter()


@router.get("/records", response_model=list[HistoryRecord])
async def list_records(user: CurrentUser, services: ServicesDep) -> list[HistoryRecord]:
    """One row per audio file with status Complete / Transcribed / Uploaded."""
    return await services.history.list_records(user.id)


@router.get("/items", response_model=list[HistoryItem])
async def list_items(
    user: CurrentUser,
    services: ServicesDep,
    query: str = "",
    kind: ItemKind = ItemKind.ALL,
    period: Period = Period.ALL,
) -> list[HistoryItem]:
    return await services.history.list_items(user.id, query=query, kind=kind, period=period)


@router.get("/records/{audio_asset_id}", response_model=HistoryRecord)
async def get_record(audio_asset_id: UUID, user: CurrentUser, services: ServicesDep) -> HistoryRecord:
    return await services.history.get_record(user.id, audio_asset_id)


@router.post("/records/{audio_asset_id}/open", response_model=HistoryRecord)
async def open_record(
    audio_asset_id: UUID,
    controller: CurrentController,
    services: ServicesDep,
) -> HistoryRecord:
    """Make a past record the current workflow item."""
    return await services.history.open_record(controller.user.id, audio_asset_id, controller)


@router.delete("/records/{audio_asset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    audio_asset_id: UUID,
    controller: CurrentController,
    services: ServicesDep,
) -> None:
    await services.history.delete_record(controller.user.id, audio_asset_id)
    current = controller.audio_asset
    if current is not None and current.id == audio_asset_id:
        await controller.reset()
