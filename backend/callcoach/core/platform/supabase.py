"""Supabase platform over its REST APIs (GoTrue, Storage, PostgREST).

Auth calls use the anon key; storage and table calls use the service key,
so ownership is enforced by the stages rather than by row-level security.
"""

from typing import Any
from urllib.parse import quote
from uuid import UUID

import httpx

from callcoach.config import Settings
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


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return (
            body.get("msg")
            or body.get("message")
            or body.get("error_description")
            or body.get("error")
            or response.text
        )
    return response.text


def _parse_user(data: dict[str, Any]) -> AuthUser:
    return AuthUser(id=UUID(data["id"]), email=data.get("email") or "")


def _parse_session(data: dict[str, Any]) -> AuthSession:
    return AuthSession(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        token_type=data.get("token_type", "bearer"),
        expires_in=data.get("expires_in"),
        user=_parse_user(data["user"]),
    )


class SupabaseAuth(AuthService):
    """GoTrue endpoints under ``/auth/v1``."""

    def __init__(self, client: httpx.AsyncClient, anon_key: str) -> None:
        self._client = client
        self._anon_key = anon_key

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {access_token or self._anon_key}",
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise PersistenceError(f"Auth service unreachable: {e}") from e

    async def sign_up(self, email: str, password: str) -> AuthSession | None:
        response = await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        if response.status_code >= 400:
            raise ValidationError(f"Sign up failed: {_error_text(response)}")

        data = response.json()
        if "access_token" not in data:
            # Email confirmation pending: user created, no session yet
            logger.info("supabase_signup_confirmation_required", email=email)
            return None
        return _parse_session(data)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        if response.status_code >= 400:
            raise AuthenticationError(_error_text(response) or "Invalid login credentials")
        return _parse_session(response.json())

    async def sign_out(self, access_token: str) -> None:
        response = await self._request(
            "POST", "/auth/v1/logout", headers=self._headers(access_token)
        )
        if response.status_code >= 400 and response.status_code not in (401, 403):
            raise PersistenceError(f"Sign out failed: {_error_text(response)}")

    async def get_user(self, access_token: str) -> AuthUser:
        response = await self._request(
            "GET", "/auth/v1/user", headers=self._headers(access_token)
        )
        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid or expired token")
        if response.status_code >= 400:
            raise PersistenceError(f"User lookup failed: {_error_text(response)}")
        return _parse_user(response.json())

    async def reset_password(self, email: str) -> None:
        response = await self._request(
            "POST",
            "/auth/v1/recover",
            json={"email": email},
            headers=self._headers(),
        )
        if response.status_code >= 400:
            raise ValidationError(f"Password reset failed: {_error_text(response)}")


class SupabaseStorage(ObjectStore):
    """Storage API for a single bucket."""

    def __init__(self, client: httpx.AsyncClient, service_key: str, bucket: str) -> None:
        self._client = client
        self._service_key = service_key
        self._bucket = bucket

    def _headers(self) -> dict[str, str]:
        return {"apikey": self._service_key, "Authorization": f"Bearer {self._service_key}"}

    def _object_url(self, path: str) -> str:
        return f"/storage/v1/object/{self._bucket}/{quote(path)}"

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        headers = {
            **self._headers(),
            "Content-Type": content_type,
            "Cache-Control": "max-age=3600",
            "x-upsert": "false",
        }
        try:
            response = await self._client.post(self._object_url(path), content=data, headers=headers)
        except httpx.HTTPError as e:
            raise PersistenceError(f"Upload failed: {e}") from e
        if response.status_code >= 400:
            raise PersistenceError(f"Upload failed: {_error_text(response)}")

    async def download(self, path: str) -> bytes:
        try:
            response = await self._client.get(self._object_url(path), headers=self._headers())
        except httpx.HTTPError as e:
            raise PersistenceError(f"Failed to download audio file: {e}") from e
        if response.status_code >= 400:
            raise PersistenceError(f"Failed to download audio file: {_error_text(response)}")
        return response.content

    async def remove(self, paths: list[str]) -> None:
        if not paths:
            return
        try:
            response = await self._client.request(
                "DELETE",
                f"/storage/v1/object/{self._bucket}",
                json={"prefixes": paths},
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise PersistenceError(f"Failed to remove stored files: {e}") from e
        if response.status_code >= 400:
            raise PersistenceError(f"Failed to remove stored files: {_error_text(response)}")


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _filter_params(
    eq: dict[str, Any] | None,
    in_: dict[str, list[Any]] | None,
) -> list[tuple[str, str]]:
    params: list[tuple[str, str]] = []
    for column, value in (eq or {}).items():
        params.append((column, f"eq.{_format_value(value)}"))
    for column, values in (in_ or {}).items():
        joined = ",".join(_format_value(v) for v in values)
        params.append((column, f"in.({joined})"))
    return params


class SupabaseTables(TableStore):
    """PostgREST access under ``/rest/v1``."""

    def __init__(self, client: httpx.AsyncClient, service_key: str) -> None:
        self._client = client
        self._service_key = service_key

    def _headers(self, **extra: str) -> dict[str, str]:
        return {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
            **extra,
        }

    async def _request(self, method: str, table: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, f"/rest/v1/{table}", **kwargs)
        except httpx.HTTPError as e:
            raise PersistenceError(f"Database request failed: {e}", table=table) from e
        if response.status_code >= 400:
            raise PersistenceError(
                f"Database request failed: {_error_text(response)}", table=table
            )
        return response

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "POST",
            table,
            json=row,
            headers=self._headers(Prefer="return=representation"),
        )
        rows = response.json()
        if not rows:
            raise PersistenceError("Insert returned no row", table=table)
        return rows[0]

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
        if in_ is not None and any(len(v) == 0 for v in in_.values()):
            return []
        params = [("select", "*")] + _filter_params(eq, in_)
        if order_by:
            params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        response = await self._request("GET", table, params=params, headers=self._headers())
        return response.json()

    async def delete(
        self,
        table: str,
        *,
        eq: dict[str, Any] | None = None,
        in_: dict[str, list[Any]] | None = None,
    ) -> None:
        if in_ is not None and any(len(v) == 0 for v in in_.values()):
            return
        params = _filter_params(eq, in_)
        if not params:
            raise ValidationError("Refusing to delete without a filter")
        await self._request("DELETE", table, params=params, headers=self._headers())


def build_supabase_platform(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Platform:
    """Create the Supabase-backed platform sharing one HTTP client."""
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set for the supabase backend")

    client = httpx.AsyncClient(
        base_url=settings.supabase_url.rstrip("/"),
        timeout=settings.provider_timeout_seconds,
        transport=transport,
    )
    service_key = settings.supabase_service_key or settings.supabase_anon_key

    return Platform(
        auth=SupabaseAuth(client, settings.supabase_anon_key),
        storage=SupabaseStorage(client, service_key, settings.supabase_storage_bucket),
        tables=SupabaseTables(client, service_key),
        name="supabase",
        closers=[client.aclose],
    )
