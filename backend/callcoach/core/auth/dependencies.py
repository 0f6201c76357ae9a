"""FastAPI dependencies for authentication."""

from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from callcoach.core.errors import AuthenticationError
from callcoach.core.platform.base import AuthUser, Platform

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)


def get_platform(request: Request) -> Platform:
    return request.app.state.platform


async def get_access_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> str:
    """Raw bearer token. Raises 401 if absent."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


async def _resolve_user(platform: Platform, token: str) -> AuthUser:
    try:
        return await platform.auth.get_user(token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_user(
    platform: Annotated[Platform, Depends(get_platform)],
    token: Annotated[str, Depends(get_access_token)],
) -> AuthUser:
    """
    Get current user from the bearer token.
    Raises 401 if not authenticated.
    """
    return await _resolve_user(platform, token)


async def get_user_from_query_token(
    platform: Annotated[Platform, Depends(get_platform)],
    token: str | None = Query(None, description="Access token"),
) -> AuthUser:
    """
    Get current user from query parameter token.
    Used for SSE endpoints where EventSource doesn't support custom headers.
    """
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token required",
        )
    return await _resolve_user(platform, token)


# Type aliases for dependency injection
AccessToken = Annotated[str, Depends(get_access_token)]
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
CurrentUserFromQueryToken = Annotated[AuthUser, Depends(get_user_from_query_token)]
PlatformDep = Annotated[Platform, Depends(get_platform)]
