"""Authentication API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr

from callcoach.api.deps import ServicesDep
from callcoach.core.auth.dependencies import AccessToken, CurrentUser, PlatformDep
from callcoach.core.events.bus import EventBus, get_event_bus
from callcoach.core.events.types import EventSeverity, EventType
from callcoach.core.platform.base import AuthSession

router = APIRouter()


class CredentialsRequest(BaseModel):
    email: EmailStr
    password: str


class ResetPasswordRequest(BaseModel):
    email: EmailStr


class UserResponse(BaseModel):
    id: str
    email: str


class SessionResponse(BaseModel):
    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int | None = None
    user: UserResponse


class SignUpResponse(BaseModel):
    session: SessionResponse | None = None
    message: str


class MessageResponse(BaseModel):
    message: str


def _session_response(session: AuthSession) -> SessionResponse:
    return SessionResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        token_type=session.token_type,
        expires_in=session.expires_in,
        user=UserResponse(id=str(session.user.id), email=session.user.email),
    )


@router.post("/signup", response_model=SignUpResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(
    data: CredentialsRequest,
    platform: PlatformDep,
    event_bus: Annotated[EventBus, Depends(get_event_bus)],
) -> SignUpResponse:
    """Create an account. No session is returned when email confirmation is required."""
    session = await platform.auth.sign_up(data.email, data.password)
    if session is None:
        return SignUpResponse(message="Check your email for the confirmation link")

    await event_bus.emit(
        event_type=EventType.USER_CREATED,
        source="api:auth",
        payload={"user_id": str(session.user.id), "email": session.user.email},
        user_id=session.user.id,
    )
    return SignUpResponse(session=_session_response(session), message="Account created")


@router.post("/login", response_model=SessionResponse)
async def login(
    data: CredentialsRequest,
    platform: PlatformDep,
    event_bus: Annotated[EventBus, Depends(get_event_bus)],
) -> SessionResponse:
    """Authenticate user and return tokens."""
    session = await platform.auth.sign_in(data.email, data.password)

    await event_bus.emit(
        event_type=EventType.USER_LOGIN,
        source="api:auth",
        payload={"user_id": str(session.user.id), "email": session.user.email},
        user_id=session.user.id,
        severity=EventSeverity.INFO,
    )
    return _session_response(session)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: AccessToken,
    current_user: CurrentUser,
    platform: PlatformDep,
    services: ServicesDep,
    event_bus: Annotated[EventBus, Depends(get_event_bus)],
) -> None:
    """Revoke the session and drop the user's workflow state."""
    await platform.auth.sign_out(token)
    await services.sessions.end(current_user.id)

    await event_bus.emit(
        event_type=EventType.USER_LOGOUT,
        source="api:auth",
        payload={"user_id": str(current_user.id)},
        user_id=current_user.id,
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: CurrentUser) -> UserResponse:
    """Get current user information."""
    return UserResponse(id=str(current_user.id), email=current_user.email)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def reset_password(data: ResetPasswordRequest, platform: PlatformDep) -> MessageResponse:
    await platform.auth.reset_password(data.email)
    return MessageResponse(message="Password reset email sent")
