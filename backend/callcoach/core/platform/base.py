"""Contracts for the storage/auth/database platform."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
from uuid import UUID


@dataclass
class AuthUser:
    """Authenticated identity."""

    id: UUID
    email: str


@dataclass
class AuthSession:
    """Tokens returned by a successful sign-in."""

    access_token: str
    user: AuthUser
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int | None = None


class AuthService(ABC):
    """Password auth: sign-up, sign-in, sign-out, token lookup, reset."""

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> AuthSession | None:
        """Create an account.

        Returns None when the account must be confirmed by email before a
        session is issued.
        """
        ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Raises AuthenticationError on bad credentials."""
        ...

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:
        ...

    @abstractmethod
    async def get_user(self, access_token: str) -> AuthUser:
        """Resolve a token to its user. Raises AuthenticationError."""
        ...

    @abstractmethod
    async def reset_password(self, email: str) -> None:
        ...


class ObjectStore(ABC):
    """Blob storage keyed by path inside one bucket."""

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Store bytes. Never overwrites; raises PersistenceError on conflict."""
        ...

    @abstractmethod
    async def download(self, path: str) -> bytes:
        ...

    @abstractmethod
    async def remove(self, paths: list[str]) -> None:
        ...


class TableStore(ABC):
    """Row access for the application tables.

    Rows are plain dicts keyed by column name. Filters are equality
    (``eq``) and membership (``in_``) on columns.
    """

    @abstractmethod
    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it with generated ``id`` and ``created_at``."""
        ...

    @abstractmethod
    async def select(
        self,
        table: str,
        *,
        eq: dict[str, Any] | None = None,
        in_: dict[str, list[Any]] | None = None,
        order_by: str | None = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def delete(
        self,
        table: str,
        *,
        eq: dict[str, Any] | None = None,
        in_: dict[str, list[Any]] | None = None,
    ) -> None:
        ...


@dataclass
class Platform:
    """The three platform services plus their shutdown hook."""

    auth: AuthService
    storage: ObjectStore
    tables: TableStore
    name: str = "local"
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for close in self.closers:
            await close()
