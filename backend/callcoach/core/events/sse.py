"""SSE (Server-Sent Events) endpoint for real-time stage progress and events."""

import asyncio
import json
from typing import Annotated, AsyncGenerator
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sse_starlette.sse import EventSourceResponse

from callcoach.core.auth.dependencies import CurrentUser, CurrentUserFromQueryToken
from callcoach.core.events.bus import EventBus, get_event_bus
from callcoach.core.events.types import Event

router = APIRouter()

KEEPALIVE_SECONDS = 15


async def event_generator(
    event_bus: EventBus,
    user_id: UUID,
    event_types: list[str] | None = None,
    minutes: int = 5,
) -> AsyncGenerator[dict, None]:
    """
    Generator for SSE events belonging to one user.

    SSE format:
    event: <event_type>
    data: <json_payload>
    id: <event_id>
    """
    queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=100)
    event_bus.register_sse_client(queue)

    try:
        # Replay oldest first so the client sees them in order
        recent = event_bus.get_recent_events(
            minutes=minutes, event_types=event_types, user_id=user_id
        )
        for event in reversed(recent):
            yield format_sse_event(event)

        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield {"event": "keepalive", "data": ""}
                continue

            if event.user_id is not None and event.user_id != user_id:
                continue
            if event_types and event.type not in event_types:
                continue

            yield format_sse_event(event)

    finally:
        event_bus.unregister_sse_client(queue)


def format_sse_event(event: Event) -> dict:
    """Format event for SSE."""
    event_data = {
        "id": str(event.id),
        "type": event.type,
        "data": event.payload,
        "timestamp": event.timestamp.isoformat(),
    }

    return {
        "event": event.type,
        "data": json.dumps(event_data, default=str),
        "id": str(event.id),
        "retry": 5000,
    }


@router.get("/stream")
async def stream_events(
    user: CurrentUserFromQueryToken,
    event_bus: Annotated[EventBus, Depends(get_event_bus)],
    types: str | None = Query(None, description="Comma-separated event types"),
    minutes: int = Query(5, ge=1, le=60, description="Initial history in minutes"),
) -> EventSourceResponse:
    """
    SSE stream of the caller's workflow events.

    EventSource cannot send headers, so the access token is passed as the
    ``token`` query parameter.
    """
    event_types = types.split(",") if types else None

    return EventSourceResponse(
        event_generator(event_bus, user.id, event_types, minutes),
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/recent")
async def get_recent_events(
    user: CurrentUser,
    event_bus: Annotated[EventBus, Depends(get_event_bus)],
    minutes: int = Query(5, ge=1, le=60),
    types: str | None = Query(None),
    source: str | None = Query(None),
) -> dict:
    """REST endpoint for recent events history."""
    event_types = types.split(",") if types else None

    events = event_bus.get_recent_events(
        minutes=minutes,
        event_types=event_types,
        source_filter=source,
        user_id=user.id,
    )

    return {
        "events": [e.model_dump(mode="json") for e in events],
        "count": len(events),
    }
