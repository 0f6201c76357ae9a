"""Structured logging configuration using structlog.

- Development: colored console output
- Production: JSON lines for log aggregation

Usage:
    from callcoach.core.logging import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("transcription_completed", transcript_id="...", word_count=6)
"""

import logging
import re
import sys
import time
import uuid
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

from callcoach.core.logging_filters import EventFilter, NonEventFilter

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level(level_name: str) -> int:
    """Convert log level name to logging constant."""
    return LOG_LEVELS.get(level_name.upper(), logging.INFO)


SENSITIVE_KEYS = frozenset(
    {"api_key", "apikey", "authorization", "password", "secret_key", "access_token", "refresh_token"}
)
_URL_KEY_PARAM = re.compile(r"([?&]key=)[^&\s]+")


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credential values and the Gemini ``key=`` query parameter."""
    for key, value in event_dict.items():
        if key.lower() in SENSITIVE_KEYS and value:
            event_dict[key] = "***"
        elif isinstance(value, str) and "key=" in value:
            event_dict[key] = _URL_KEY_PARAM.sub(r"\1***", value)
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]


def _json_formatter() -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=_shared_processors(),
    )


def _console_formatter() -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        ),
        foreign_pre_chain=_shared_processors(),
    )


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "auto",
    is_development: bool = True,
    logs_dir: str | None = None,
    log_to_file: bool = False,
    log_file_max_bytes: int = 10 * 1024 * 1024,
    log_file_backup_count: int = 5,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: 'auto' (based on environment), 'console', or 'json'
        is_development: Whether running in development mode
        logs_dir: Directory for log files (if log_to_file is True)
        log_to_file: Whether to also write logs to files
        log_file_max_bytes: Max size of each log file before rotation
        log_file_backup_count: Number of backup files to keep
    """
    level = get_log_level(log_level)

    if log_format == "auto":
        use_json = not is_development
    else:
        use_json = log_format == "json"

    structlog.configure(
        processors=_shared_processors() + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = _json_formatter() if use_json else _console_formatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_to_file and logs_dir:
        # backend.log gets everything except events; event.log gets events only
        _add_rotating_handler(
            root_logger,
            path=Path(logs_dir) / "backend.log",
            log_filter=NonEventFilter(),
            level=level,
            max_bytes=log_file_max_bytes,
            backup_count=log_file_backup_count,
        )
        _add_rotating_handler(
            root_logger,
            path=Path(logs_dir) / "event.log",
            log_filter=EventFilter(),
            level=level,
            max_bytes=log_file_max_bytes,
            backup_count=log_file_backup_count,
        )

    _configure_library_loggers(level)


def _add_rotating_handler(
    logger: logging.Logger,
    path: Path,
    log_filter: logging.Filter,
    level: int,
    max_bytes: int,
    backup_count: int,
) -> None:
    """Add a rotating JSON file handler."""
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(_json_formatter())
    handler.setLevel(level)
    handler.addFilter(log_filter)
    logger.addHandler(handler)


def _configure_library_loggers(app_level: int) -> None:
    """Set appropriate log levels for third-party libraries."""
    noisy_loggers = [
        "uvicorn.access",
        "uvicorn.error",
        "sqlalchemy.engine",
        "sqlalchemy.pool",
        "aiosqlite",
        "httpx",
        "httpcore",
        "asyncio",
    ]

    min_level = max(logging.WARNING, app_level)

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(min_level)

    # uvicorn.error should always show errors
    logging.getLogger("uvicorn.error").setLevel(logging.ERROR)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Example:
        logger = get_logger(__name__)
        logger.info("audio_asset_created", audio_asset_id="...", byte_size=5242880)
        logger.error("deepgram_request_failed", status_code=500)
    """
    return structlog.stdlib.get_logger(name)


class LoggingMiddleware:
    """
    ASGI middleware for request logging.

    Adds correlation ID and request context to all logs within a request.
    Skips health checks and the SSE stream.
    """

    SKIP_PATHS = {"/health", "/api/v1/health", "/api/v1/events/stream"}

    def __init__(self, app: Any) -> None:
        self.app = app
        self.logger = get_logger("http")

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")

        if path in self.SKIP_PATHS:
            await self.app(scope, receive, send)
            return

        correlation_id = str(uuid.uuid4())[:8]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            path=path,
            method=scope.get("method", ""),
        )

        status_code = 500
        started = time.perf_counter()

        async def send_wrapper(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            log_method = self.logger.info if status_code < 400 else self.logger.warning
            log_method(
                "request_completed",
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            structlog.contextvars.clear_contextvars()
