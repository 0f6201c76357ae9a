"""JWT token utilities for the local auth service."""

from datetime import datetime, timedelta
from uuid import UUID, uuid4

from jose import JWTError, jwt


class TokenIssuer:
    """Issues and verifies HS256 access/refresh tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_expire_minutes: int = 60,
        refresh_expire_days: int = 7,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.access_expire = timedelta(minutes=access_expire_minutes)
        self.refresh_expire = timedelta(days=refresh_expire_days)

    def _encode(self, user_id: UUID, email: str, token_type: str, expires: timedelta) -> str:
        to_encode = {
            "sub": str(user_id),
            "email": email,
            "exp": datetime.utcnow() + expires,
            "type": token_type,
            "jti": uuid4().hex,
        }
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def create_access_token(self, user_id: UUID, email: str) -> str:
        return self._encode(user_id, email, "access", self.access_expire)

    def create_refresh_token(self, user_id: UUID, email: str) -> str:
        return self._encode(user_id, email, "refresh", self.refresh_expire)

    def verify_token(self, token: str, token_type: str = "access") -> dict | None:
        """
        Verify a token and return its claims.
        Returns None if the token is invalid, expired or of the wrong type.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError:
            return None

        if payload.get("sub") is None or payload.get("type") != token_type:
            return None
        return payload
