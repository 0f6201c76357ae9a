"""Authentication module."""

from callcoach.core.auth.dependencies import (
    get_current_user,
    get_platform,
    get_user_from_query_token,
)
from callcoach.core.auth.jwt import TokenIssuer
from callcoach.core.auth.password import hash_password, verify_password

__all__ = [
    "TokenIssuer",
    "get_current_user",
    "get_platform",
    "get_user_from_query_token",
    "hash_password",
    "verify_password",
]
