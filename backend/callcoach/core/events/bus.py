"""Event bus with cancellable subscriptions and SSE fan-out."""

import asyncio
import inspect
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable
from uuid import UUID

from fastapi import Request

from callcoach.core.events.types import Event, EventSeverity, EventType, ProgressUpdate
from callcoach.core.logging import get_logger

logger = get_logger(__name__)

WILDCARD = "*"


class Subscription:
    """Handle returned by ``EventBus.subscribe``; ``cancel()`` detaches the handler."""

    def __init__(self, bus: "EventBus", key: str, handler: Callable[[Event], Any]) -> None:
        self._bus = bus
        self._key = key
        self._handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._bus.unsubscribe(self._key, self._handler)
            self._active = False


class EventBus:
    """
    Central event bus with:
    - Pub/sub for handlers (sync or async)
    - Ring buffer of recent events for SSE catch-up
    - Per-client SSE queues

    One instance is created per application and injected where needed;
    tests build their own.
    """

    def __init__(
        self,
        buffer_max_size: int = 1000,
        buffer_max_age: timedelta = timedelta(minutes=15),
    ) -> None:
        self._subscribers: dict[str, list[Callable[[Event], Any]]] = defaultdict(list)
        self._sse_clients: set[asyncio.Queue] = set()
        self._event_buffer: list[Event] = []
        self._buffer_max_size = buffer_max_size
        self._buffer_max_age = buffer_max_age

    # === SUBSCRIPTION ===

    def subscribe(
        self,
        event_type: str | EventType,
        handler: Callable[[Event], Any],
    ) -> Subscription:
        """Subscribe a handler to an event type."""
        key = event_type.value if isinstance(event_type, EventType) else event_type
        self._subscribers[key].append(handler)
        logger.debug("handler_subscribed", event_type=key)
        return Subscription(self, key, handler)

    def unsubscribe(
        self,
        event_type: str | EventType,
        handler: Callable[[Event], Any],
    ) -> None:
        """Unsubscribe a handler from an event type."""
        key = event_type.value if isinstance(event_type, EventType) else event_type
        if handler in self._subscribers[key]:
            self._subscribers[key].remove(handler)

    def subscribe_all(self, handler: Callable[[Event], Any]) -> Subscription:
        """Subscribe to all events (wildcard)."""
        return self.subscribe(WILDCARD, handler)

    def subscribe_progress(
        self,
        handler: Callable[[ProgressUpdate], Any],
        user_id: UUID | None = None,
    ) -> Subscription:
        """Subscribe to stage progress as ``ProgressUpdate`` objects.

        If ``user_id`` is given, updates for other users are skipped.
        """

        async def _adapter(event: Event) -> None:
            if user_id is not None and event.user_id != user_id:
                return
            update = ProgressUpdate.model_validate(event.payload["progress"])
            result = handler(update)
            if inspect.isawaitable(result):
                await result

        return self.subscribe(EventType.STAGE_PROGRESS, _adapter)

    def subscriber_count(self, event_type: str | EventType) -> int:
        key = event_type.value if isinstance(event_type, EventType) else event_type
        return len(self._subscribers.get(key, []))

    # === EMISSION ===

    async def emit(
        self,
        event_type: str | EventType,
        source: str,
        payload: dict[str, Any],
        user_id: UUID | None = None,
        severity: EventSeverity = EventSeverity.INFO,
    ) -> Event:
        """
        Emit an event:
        1. Create Event object
        2. Call all subscribers
        3. Add to SSE buffer
        4. Push to all SSE clients
        """
        type_str = event_type.value if isinstance(event_type, EventType) else event_type

        event = Event(
            type=type_str,
            source=source,
            payload=payload,
            user_id=user_id,
            severity=severity,
        )

        # Copy so handlers may cancel their own subscription while running
        handlers = list(self._subscribers.get(type_str, [])) + list(
            self._subscribers.get(WILDCARD, [])
        )

        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # A broken subscriber must not break the emitting stage
                logger.error("event_handler_failed", event_type=type_str, error=str(e))

        self._add_to_buffer(event)
        await self._push_to_sse_clients(event)

        logger.debug("event_emitted", event_type=type_str, source=source)
        return event

    # === BUFFER MANAGEMENT ===

    def _add_to_buffer(self, event: Event) -> None:
        """Add event to ring buffer."""
        self._event_buffer.append(event)

        if len(self._event_buffer) > self._buffer_max_size:
            self._event_buffer = self._event_buffer[-self._buffer_max_size:]

        cutoff = datetime.utcnow() - self._buffer_max_age
        self._event_buffer = [e for e in self._event_buffer if e.timestamp > cutoff]

    def get_recent_events(
        self,
        minutes: int = 5,
        event_types: list[str] | None = None,
        source_filter: str | None = None,
        user_id: UUID | None = None,
    ) -> list[Event]:
        """Get recent events from buffer, newest first."""
        cutoff = datetime.utcnow() - timedelta(minutes=minutes)

        events = [e for e in self._event_buffer if e.timestamp > cutoff]

        if event_types:
            events = [e for e in events if e.type in event_types]

        if source_filter:
            events = [e for e in events if source_filter in e.source]

        if user_id is not None:
            events = [e for e in events if e.user_id in (None, user_id)]

        return sorted(events, key=lambda e: e.timestamp, reverse=True)

    # === SSE MANAGEMENT ===

    def register_sse_client(self, client_queue: asyncio.Queue) -> None:
        self._sse_clients.add(client_queue)

    def unregister_sse_client(self, client_queue: asyncio.Queue) -> None:
        self._sse_clients.discard(client_queue)

    async def _push_to_sse_clients(self, event: Event) -> None:
        """Push event to all SSE clients; drop clients whose queue is full."""
        dead_clients: set[asyncio.Queue] = set()

        for client_queue in self._sse_clients:
            try:
                client_queue.put_nowait(event)
            except asyncio.QueueFull:
                dead_clients.add(client_queue)

        for dead in dead_clients:
            self._sse_clients.discard(dead)


def get_event_bus(request: Request) -> EventBus:
    """FastAPI dependency: the application's EventBus."""
    return request.app.state.event_bus
