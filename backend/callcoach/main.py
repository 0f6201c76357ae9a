"""FastAPI application factory."""

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from callcoach import __version__
from callcoach.api.v1.router import api_router
from callcoach.config import Settings, get_settings
from callcoach.core.ai.base import AIProvider
from callcoach.core.errors import CallCoachError
from callcoach.core.events.bus import EventBus
from callcoach.core.events.types import EventSeverity, EventType
from callcoach.core.logging import LoggingMiddleware, get_logger, setup_logging
from callcoach.core.platform import Platform, build_platform
from callcoach.core.plugins.loader import PluginLoader
from callcoach.core.plugins.registry import PluginRegistry
from callcoach.plugins.recording.devices import Microphone
from callcoach.services import build_services

logger = get_logger(__name__)


def plugin_settings_from(settings: Settings) -> dict[str, dict[str, Any]]:
    """Per-plugin settings passed to ``BasePlugin.setup``."""
    return {
        "upload": {
            "max_bytes": settings.upload_max_bytes,
            "mime_types": list(settings.upload_mime_types),
        },
        "recording": {
            "sample_rate": settings.recording_sample_rate,
            "channels": settings.recording_channels,
        },
        "transcription": {
            "model": settings.deepgram_model,
            "language": settings.deepgram_language,
            "api_key_configured": bool(settings.deepgram_api_key),
        },
        "analysis": {
            "model": settings.gemini_model,
            "api_key_configured": bool(settings.gemini_api_key),
        },
        "history": {},
    }


async def start_application(
    app: FastAPI,
    platform: Platform | None = None,
    speech_to_text: AIProvider | None = None,
    language_model: AIProvider | None = None,
    microphone_factory: Callable[[], Microphone] | None = None,
) -> None:
    """Build services, load plugins and mount their routers on ``app``."""
    settings: Settings = app.state.settings

    # 1. Initialize core services
    event_bus = EventBus()
    platform = platform or await build_platform(settings)
    services = build_services(
        settings,
        platform,
        event_bus,
        speech_to_text=speech_to_text,
        language_model=language_model,
        microphone_factory=microphone_factory,
    )

    # 2. Load plugins
    registry = PluginRegistry()
    loader = PluginLoader(registry, event_bus)
    discovered = loader.discover(enabled=settings.plugins_enabled)
    logger.info("plugins_discovered", plugins=discovered)
    await loader.load_all(plugin_settings_from(settings))

    # 3. Mount plugin routers
    for plugin_name, router in registry.collect_routers():
        prefix = f"/api/v1/plugins/{plugin_name}"
        app.include_router(router, prefix=prefix, tags=[f"plugin:{plugin_name}"])
        logger.info("plugin_router_mounted", plugin_name=plugin_name, prefix=prefix)

    # 4. Register event handlers from plugins
    for event_type, handlers in registry.collect_event_handlers().items():
        for handler in handlers:
            event_bus.subscribe(event_type, handler)

    # 5. Call startup hooks
    for plugin in registry.get_active_plugins():
        await plugin.on_startup()

    # 6. Store in app state
    app.state.event_bus = event_bus
    app.state.platform = platform
    app.state.services = services
    app.state.plugin_registry = registry
    app.state.start_time = time.time()

    active = registry.get_active_plugins()
    await event_bus.emit(
        event_type=EventType.SYSTEM_STARTUP,
        source="system",
        payload={
            "app_name": settings.app_name,
            "environment": settings.app_env,
            "platform": platform.name,
            "plugins_loaded": len(active),
            "plugin_names": [p.name for p in active],
        },
        severity=EventSeverity.SUCCESS,
    )
    logger.info(
        "application_started_successfully",
        app_name=settings.app_name,
        platform=platform.name,
        plugins_loaded=len(active),
    )


async def stop_application(app: FastAPI) -> None:
    settings: Settings = app.state.settings
    event_bus: EventBus = app.state.event_bus
    registry: PluginRegistry = app.state.plugin_registry

    await event_bus.emit(
        event_type=EventType.SYSTEM_SHUTDOWN,
        source="system",
        payload={
            "app_name": settings.app_name,
            "uptime_seconds": time.time() - app.state.start_time,
            "reason": "graceful_shutdown",
        },
        severity=EventSeverity.WARNING,
    )

    for plugin in registry.get_active_plugins():
        try:
            await asyncio.wait_for(plugin.on_shutdown(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("plugin_shutdown_timeout", plugin_name=plugin.name)

    await app.state.services.aclose()
    await app.state.platform.aclose()
    logger.info("application_shutdown_complete", app_name=settings.app_name)


def create_app(
    settings: Settings | None = None,
    platform: Platform | None = None,
    speech_to_text: AIProvider | None = None,
    language_model: AIProvider | None = None,
    microphone_factory: Callable[[], Microphone] | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    The optional arguments replace the settings-driven defaults; tests
    use them to inject a local platform and fake providers.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Initialize structured logging FIRST
        setup_logging(
            log_level=settings.log_level,
            log_format=settings.log_format,
            is_development=settings.is_development,
            logs_dir=settings.logs_dir,
            log_to_file=settings.log_to_file,
            log_file_max_bytes=settings.log_file_max_bytes,
            log_file_backup_count=settings.log_file_backup_count,
        )
        logger.info("application_starting", app_name=settings.app_name, environment=settings.app_env)

        await start_application(
            app,
            platform=platform,
            speech_to_text=speech_to_text,
            language_model=language_model,
            microphone_factory=microphone_factory,
        )
        yield
        await stop_application(app)

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Sales-call coaching: upload or record, transcribe, analyze",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (adds correlation IDs and request context)
    app.add_middleware(LoggingMiddleware)

    @app.exception_handler(CallCoachError)
    async def callcoach_error_handler(request: Request, exc: CallCoachError) -> JSONResponse:
        logger.info(
            "request_failed",
            path=request.url.path,
            kind=exc.kind,
            status_code=exc.status_code,
            error=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Core API routes
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint - NO AUTH REQUIRED."""
        registry: PluginRegistry | None = getattr(request.app.state, "plugin_registry", None)
        plugins_data = []
        overall_status = "healthy"
        if registry is not None:
            for plugin in registry.get_active_plugins():
                health = await plugin.healthcheck()
                if health.get("status") != "healthy":
                    overall_status = "degraded"
                plugins_data.append(
                    {
                        "name": plugin.metadata.name,
                        "display_name": plugin.metadata.display_name,
                        "version": plugin.metadata.version,
                        "priority": plugin.metadata.priority,
                        "color": plugin.metadata.color,
                        **health,
                    }
                )

        start_time = getattr(request.app.state, "start_time", None)
        return {
            "status": overall_status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(time.time() - start_time, 2) if start_time else 0.0,
            "version": __version__,
            "environment": settings.app_env,
            "platform": settings.platform_backend,
            "plugins": plugins_data,
        }

    return app


app = create_app()
