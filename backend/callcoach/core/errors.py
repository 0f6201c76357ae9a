"""Error taxonomy shared by all workflow stages.

Every stage raises one of these classes. The API layer maps them to HTTP
responses through ``kind`` and ``status_code``; the workflow controller
stores ``str(exc)`` in its shared error slot.
"""

from typing import Any


class CallCoachError(Exception):
    """Base class for all domain errors."""

    kind: str = "error"
    status_code: int = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "kind": self.kind}


class ValidationError(CallCoachError):
    """Input rejected before any remote call (bad MIME type, size, state)."""

    kind = "validation"
    status_code = 400


class AuthenticationError(CallCoachError):
    """No valid session."""

    kind = "authentication"
    status_code = 401


class AuthorizationError(CallCoachError):
    """The record exists but belongs to someone else."""

    kind = "authorization"
    status_code = 403


class DeviceError(CallCoachError):
    """Microphone unavailable or permission denied."""

    kind = "device"
    status_code = 409


class ProviderError(CallCoachError):
    """Speech-to-text or language-model provider failed or returned garbage."""

    kind = "provider"
    status_code = 502


class EmptyResultError(CallCoachError):
    """Provider answered but with no usable text."""

    kind = "empty_result"
    status_code = 422


class PersistenceError(CallCoachError):
    """Storage or table write/read failure."""

    kind = "persistence"
    status_code = 500


class RecordNotFoundError(PersistenceError):
    """Requested row does not exist."""

    kind = "not_found"
    status_code = 404
