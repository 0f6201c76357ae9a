"""Database configuration and models for the local backend."""

from callcoach.core.database.base import Base, TimestampMixin, UUIDMixin
from callcoach.core.database.session import (
    create_engine,
    create_session_factory,
    create_tables,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "create_engine",
    "create_session_factory",
    "create_tables",
]
