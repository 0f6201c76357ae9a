"""Platform services: auth, object storage and tables."""

import httpx

from callcoach.config import Settings
from callcoach.core.platform.base import (
    AuthService,
    AuthSession,
    AuthUser,
    ObjectStore,
    Platform,
    TableStore,
)


async def build_platform(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Platform:
    """Build the platform selected by ``settings.platform_backend``."""
    if settings.platform_backend == "supabase":
        from callcoach.core.platform.supabase import build_supabase_platform

        return build_supabase_platform(settings, transport=transport)
    if settings.platform_backend == "local":
        from callcoach.core.platform.local import build_local_platform

        return await build_local_platform(settings)
    raise ValueError(f"Unknown platform backend: {settings.platform_backend}")


__all__ = [
    "AuthService",
    "AuthSession",
    "AuthUser",
    "ObjectStore",
    "Platform",
    "TableStore",
    "build_platform",
]
