"""Local platform: SQLAlchemy tables, filesystem objects, bcrypt/JWT auth.

Used for development and tests. It implements the same contracts as the
Supabase platform so stages cannot tell them apart.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Table, delete, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from callcoach.config import Settings
from callcoach.core.auth.jwt import TokenIssuer
from callcoach.core.auth.password import hash_password, verify_password
from callcoach.core.database.base import Base
from callcoach.core.database.models import UserAccount
from callcoach.core.database.session import create_engine, create_session_factory, create_tables
from callcoach.core.errors import AuthenticationError, PersistenceError, ValidationError
from callcoach.core.logging import get_logger
from callcoach.core.platform.base import (
    AuthService,
    AuthSession,
    AuthUser,
    ObjectStore,
    Platform,
    TableStore,
)

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


class LocalAuth(AuthService):
    """Accounts in the ``users`` table; tokens are self-issued JWTs."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], issuer: TokenIssuer) -> None:
        self._session_factory = session_factory
        self._issuer = issuer
        self._revoked: set[str] = set()

    def _session_for(self, user: UserAccount) -> AuthSession:
        user_id = UUID(user.id)
        return AuthSession(
            access_token=self._issuer.create_access_token(user_id, user.email),
            refresh_token=self._issuer.create_refresh_token(user_id, user.email),
            expires_in=int(self._issuer.access_expire.total_seconds()),
            user=AuthUser(id=user_id, email=user.email),
        )

    async def sign_up(self, email: str, password: str) -> AuthSession | None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters"
            )
        email = email.lower()
        async with self._session_factory() as session:
            existing = await session.execute(select(UserAccount).where(UserAccount.email == email))
            if existing.scalar_one_or_none() is not None:
                raise ValidationError("User already registered")

            user = UserAccount(email=email, hashed_password=hash_password(password))
            session.add(user)
            await session.commit()
            await session.refresh(user)

        logger.info("local_user_created", user_id=user.id)
        # Local accounts need no email confirmation
        return self._session_for(user)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserAccount).where(UserAccount.email == email.lower())
            )
            user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid login credentials")
        if not user.is_active:
            raise AuthenticationError("User is inactive")
        return self._session_for(user)

    async def sign_out(self, access_token: str) -> None:
        claims = self._issuer.verify_token(access_token)
        if claims is not None:
            self._revoked.add(claims["jti"])

    async def get_user(self, access_token: str) -> AuthUser:
        claims = self._issuer.verify_token(access_token)
        if claims is None or claims.get("jti") in self._revoked:
            raise AuthenticationError("Invalid or expired token")
        return AuthUser(id=UUID(claims["sub"]), email=claims.get("email", ""))

    async def reset_password(self, email: str) -> None:
        # No mail transport locally; the request is accepted and logged
        logger.info("local_password_reset_requested", email=email)


class LocalStorage(ObjectStore):
    """Objects as files under a root directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        full_path = (self._root / path).resolve()
        if self._root not in full_path.parents:
            raise ValidationError(f"Invalid storage path: {path}")
        return full_path

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        full_path = self._resolve(path)
        if full_path.exists():
            raise PersistenceError(f"Upload failed: {path} already exists")
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(full_path.write_bytes, data)
        except OSError as e:
            raise PersistenceError(f"Upload failed: {e}") from e

    async def download(self, path: str) -> bytes:
        full_path = self._resolve(path)
        try:
            return await asyncio.to_thread(full_path.read_bytes)
        except OSError as e:
            raise PersistenceError(f"Failed to download audio file: {e}") from e

    async def remove(self, paths: list[str]) -> None:
        for path in paths:
            full_path = self._resolve(path)
            try:
                full_path.unlink(missing_ok=True)
            except OSError as e:
                raise PersistenceError(f"Failed to remove stored file: {e}") from e


class LocalTables(TableStore):
    """Core-level access to the mirrored tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _table(name: str) -> Table:
        try:
            return Base.metadata.tables[name]
        except KeyError:
            raise PersistenceError(f"Unknown table: {name}") from None

    @staticmethod
    def _where(table: Table, eq: dict[str, Any] | None, in_: dict[str, list[Any]] | None) -> list:
        clauses = []
        for column, value in (eq or {}).items():
            clauses.append(table.c[column] == (str(value) if isinstance(value, UUID) else value))
        for column, values in (in_ or {}).items():
            clauses.append(
                table.c[column].in_([str(v) if isinstance(v, UUID) else v for v in values])
            )
        return clauses

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        sa_table = self._table(table)
        values = {"id": str(uuid4()), "created_at": datetime.utcnow(), **row}
        try:
            async with self._session_factory() as session:
                await session.execute(insert(sa_table).values(values))
                await session.commit()
                result = await session.execute(
                    select(sa_table).where(sa_table.c["id"] == values["id"])
                )
                return dict(result.mappings().one())
        except IntegrityError as e:
            raise PersistenceError(f"Insert into {table} violated a constraint", table=table) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Insert into {table} failed: {e}", table=table) from e

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
        sa_table = self._table(table)
        query = select(sa_table).where(*self._where(sa_table, eq, in_))
        if order_by:
            column = sa_table.c[order_by]
            query = query.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            query = query.limit(limit)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return [dict(m) for m in result.mappings().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Query on {table} failed: {e}", table=table) from e

    async def delete(
        self,
        table: str,
        *,
        eq: dict[str, Any] | None = None,
        in_: dict[str, list[Any]] | None = None,
    ) -> None:
        sa_table = self._table(table)
        clauses = self._where(sa_table, eq, in_)
        if not clauses:
            raise ValidationError("Refusing to delete without a filter")
        try:
            async with self._session_factory() as session:
                await session.execute(delete(sa_table).where(*clauses))
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Delete from {table} failed: {e}", table=table) from e


async def build_local_platform(settings: Settings) -> Platform:
    """Create the local platform and make sure its tables exist."""
    engine = create_engine(settings.database_url)
    await create_tables(engine)
    session_factory = create_session_factory(engine)

    issuer = TokenIssuer(
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        access_expire_minutes=settings.jwt_access_token_expire_minutes,
        refresh_expire_days=settings.jwt_refresh_token_expire_days,
    )

    return Platform(
        auth=LocalAuth(session_factory, issuer),
        storage=LocalStorage(settings.storage_local_path),
        tables=LocalTables(session_factory),
        name="local",
        closers=[engine.dispose],
    )
