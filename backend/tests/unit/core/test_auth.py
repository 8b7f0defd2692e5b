"""
Tests for JWT token handling.

WHY: Tokens carry the user id that resolves every request to a company.
1. Tokens round-trip their claims
2. Expired tokens raise a distinct error
3. Tampered or foreign tokens are rejected
"""

import pytest
from datetime import timedelta
from jose import jwt

from app.core.auth import create_access_token, verify_token
from app.core.config import settings
from app.core.exceptions import TokenExpiredError, TokenInvalidError


class TestCreateAccessToken:
    """Test token creation."""

    def test_claims_round_trip(self):
        token = create_access_token({"user_id": 42})

        payload = verify_token(token)

        assert payload["user_id"] == 42
        assert {"exp", "iat", "nbf"} <= payload.keys()

    def test_default_expiration(self):
        payload = verify_token(create_access_token({"user_id": 1}))

        assert payload["exp"] - payload["iat"] == settings.JWT_EXPIRATION_MINUTES * 60

    def test_custom_expiration(self):
        payload = verify_token(create_access_token({"user_id": 1}, timedelta(minutes=5)))

        assert payload["exp"] - payload["iat"] == 300

    def test_input_not_mutated(self):
        data = {"user_id": 1}
        create_access_token(data)

        assert data == {"user_id": 1}


class TestVerifyToken:
    """Test token verification failures."""

    def test_expired_token(self):
        token = create_access_token({"user_id": 1}, timedelta(seconds=-10))

        with pytest.raises(TokenExpiredError):
            verify_token(token)

    def test_wrong_secret(self):
        token = jwt.encode({"user_id": 1}, "some-other-secret", algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(TokenInvalidError):
            verify_token(token)

    def test_malformed_token(self):
        with pytest.raises(TokenInvalidError) as exc_info:
            verify_token("not-a-jwt")

        assert exc_info.value.status_code == 401
