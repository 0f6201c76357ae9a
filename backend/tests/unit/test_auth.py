"""Unit tests for authentication module."""

from uuid import UUID

import pytest

USER_ID = UUID("12345678-1234-5678-1234-567812345678")


@pytest.mark.unit
class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_hash_password_returns_string(self):
        """Password hash should be a string."""
        from callcoach.core.auth.password import hash_password

        hashed = hash_password("mypassword")
        assert isinstance(hashed, str)
        assert len(hashed) > 0

    def test_hash_password_different_each_time(self):
        """Same password should produce different hashes (salt)."""
        from callcoach.core.auth.password import hash_password

        assert hash_password("mypassword") != hash_password("mypassword")

    def test_verify_password_correct(self):
        from callcoach.core.auth.password import hash_password, verify_password

        hashed = hash_password("mypassword123")
        assert verify_password("mypassword123", hashed) is True

    def test_verify_password_incorrect(self):
        from callcoach.core.auth.password import hash_password, verify_password

        hashed = hash_password("correctpassword")
        assert verify_password("wrongpassword", hashed) is False

    def test_verify_password_malformed_hash(self):
        """A corrupted stored hash fails verification instead of raising."""
        from callcoach.core.auth.password import verify_password

        assert verify_password("anything", "not-a-bcrypt-hash") is False


@pytest.mark.unit
class TestTokenIssuer:
    """Tests for JWT token creation and validation."""

    @pytest.fixture
    def issuer(self):
        from callcoach.core.auth.jwt import TokenIssuer

        return TokenIssuer(secret_key="unit-test-secret")

    def test_create_access_token(self, issuer):
        token = issuer.create_access_token(USER_ID, "rep@example.com")
        # JWT format: header.payload.signature
        assert token.count(".") == 2

    def test_verify_access_token(self, issuer):
        token = issuer.create_access_token(USER_ID, "rep@example.com")
        claims = issuer.verify_token(token)

        assert claims is not None
        assert UUID(claims["sub"]) == USER_ID
        assert claims["email"] == "rep@example.com"

    def test_tokens_are_unique(self, issuer):
        first = issuer.create_access_token(USER_ID, "rep@example.com")
        second = issuer.create_access_token(USER_ID, "rep@example.com")
        assert issuer.verify_token(first)["jti"] != issuer.verify_token(second)["jti"]

    def test_refresh_token_rejected_as_access(self, issuer):
        token = issuer.create_refresh_token(USER_ID, "rep@example.com")
        assert issuer.verify_token(token, token_type="access") is None
        assert issuer.verify_token(token, token_type="refresh") is not None

    def test_expired_token_returns_none(self):
        from callcoach.core.auth.jwt import TokenIssuer

        issuer = TokenIssuer(secret_key="unit-test-secret", access_expire_minutes=-1)
        token = issuer.create_access_token(USER_ID, "rep@example.com")
        assert issuer.verify_token(token) is None

    def test_wrong_secret_returns_none(self, issuer):
        from callcoach.core.auth.jwt import TokenIssuer

        token = TokenIssuer(secret_key="other-secret").create_access_token(USER_ID, "rep@example.com")
        assert issuer.verify_token(token) is None

    def test_invalid_token_returns_none(self, issuer):
        assert issuer.verify_token("invalid.token.here") is None


@pytest.mark.unit
class TestLocalAuth:
    """Local auth service against a temporary database."""

    @pytest.mark.asyncio
    async def test_sign_up_returns_session(self, platform):
        session = await platform.auth.sign_up("New.Rep@Example.com", "secret123")

        assert session is not None
        assert session.user.email == "new.rep@example.com"
        user = await platform.auth.get_user(session.access_token)
        assert user.id == session.user.id

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, platform):
        from callcoach.core.errors import ValidationError

        with pytest.raises(ValidationError, match="at least 6"):
            await platform.auth.sign_up("rep@example.com", "123")

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, platform, test_user):
        from callcoach.core.errors import ValidationError

        with pytest.raises(ValidationError, match="already registered"):
            await platform.auth.sign_up(test_user["email"], "anotherpass")

    @pytest.mark.asyncio
    async def test_wrong_password_rejected(self, platform, test_user):
        from callcoach.core.errors import AuthenticationError

        with pytest.raises(AuthenticationError, match="Invalid login credentials"):
            await platform.auth.sign_in(test_user["email"], "wrongpassword")

    @pytest.mark.asyncio
    async def test_signed_out_token_is_revoked(self, platform, test_user):
        from callcoach.core.errors import AuthenticationError

        await platform.auth.sign_out(test_user["access_token"])

        with pytest.raises(AuthenticationError):
            await platform.auth.get_user(test_user["access_token"])
