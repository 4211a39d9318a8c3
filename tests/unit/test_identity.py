"""
Unit tests for the bearer token identity adapter.
"""

import time

import jwt
import pytest

from ticketing.models.identity import UserRole
from ticketing.security import (
    InvalidTokenError,
    TokenExpiredError,
    TokenIdentityProvider,
    extract_bearer_token,
)

SECRET = "test-secret-key-with-at-least-32-bytes"


def mint(claims=None, secret=SECRET, expires_in=3600):
    payload = {
        "userId": "user-1",
        "email": "jane@example.com",
        "userType": "organizer",
        "exp": int(time.time()) + expires_in,
    }
    payload.update(claims or {})
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def provider() -> TokenIdentityProvider:
    return TokenIdentityProvider(secret_key=SECRET)


class TestTokenIdentityProvider:
    """Test cases for token verification."""

    def test_verify_valid_token(self, provider):
        identity = provider.verify(mint())

        assert identity.subject_id == "user-1"
        assert identity.email == "jane@example.com"
        assert identity.role == UserRole.ORGANIZER
        assert not identity.is_admin

    def test_verify_accepts_bearer_prefix(self, provider):
        identity = provider.verify(f"Bearer {mint({'userType': 'admin'})}")

        assert identity.is_admin

    def test_expired_token(self, provider):
        with pytest.raises(TokenExpiredError):
            provider.verify(mint(expires_in=-3600))

    def test_wrong_secret(self, provider):
        with pytest.raises(InvalidTokenError):
            provider.verify(mint(secret="another-secret-key-with-at-least-32-bytes"))

    def test_malformed_token(self, provider):
        with pytest.raises(InvalidTokenError):
            provider.verify("not-a-jwt")

    def test_empty_token(self, provider):
        with pytest.raises(InvalidTokenError):
            provider.verify("")

    def test_missing_claim(self, provider):
        token = jwt.encode({"userId": "user-1", "userType": "admin"}, SECRET, algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            provider.verify(token)

    def test_unknown_role(self, provider):
        with pytest.raises(InvalidTokenError):
            provider.verify(mint({"userType": "superuser"}))

    def test_secret_required(self):
        with pytest.raises(ValueError):
            TokenIdentityProvider(secret_key="")


class TestExtractBearerToken:
    """Test cases for Authorization header parsing."""

    def test_capitalized_header(self):
        assert extract_bearer_token({"Authorization": "Bearer abc.def"}) == "abc.def"

    def test_lowercase_header(self):
        assert extract_bearer_token({"authorization": "Bearer abc.def"}) == "abc.def"

    @pytest.mark.parametrize("headers", [None, {}, {"Authorization": "Basic dXNlcg=="}, {"Authorization": "Bearer "}])
    def test_no_token(self, headers):
        assert extract_bearer_token(headers) is None
