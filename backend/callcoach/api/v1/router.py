"""Main API router aggregator."""

from fastapi import APIRouter

from callcoach.api.v1 import auth, workflow
from callcoach.core.events.sse import router as events_router

api_router = APIRouter()

# Core routes
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(workflow.router, prefix="/workflow", tags=["workflow"])
api_router.include_router(events_router, prefix="/events", tags=["events"])
