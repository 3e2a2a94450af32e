"""Tests for session credential helpers.

JWT issuance and verification, cookie transport, and request
authentication.
"""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import jwt
import pytest
from pydantic import SecretStr

from practice_perfect.core.auth import (
    authenticate_request,
    clear_auth_cookie,
    create_session_token,
    decode_session_token,
    extract_session_token,
    session_ttl,
    set_auth_cookie,
)
from practice_perfect.core.config import settings
from practice_perfect.core.errors import UnauthenticatedError
from tests.conftest import TEST_AUTH_SECRET, create_test_session_token

_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000042")
_EMAIL = "ada@example.com"


def _request(cookies: dict | None = None, headers: dict | None = None) -> Mock:
    request = Mock()
    request.cookies = cookies or {}
    request.headers = headers or {}
    return request


class TestCreateSessionToken:
    """Tests for create_session_token()."""

    def test_contains_required_claims(self):
        """JWT has sub, email, aud, iss, exp, iat claims."""
        token = create_session_token(
            user_id=_USER_ID, email=_EMAIL, secret=TEST_AUTH_SECRET
        )
        payload = jwt.decode(
            token,
            TEST_AUTH_SECRET,
            algorithms=["HS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
        assert payload["sub"] == str(_USER_ID)
        assert payload["email"] == _EMAIL
        for claim in ("aud", "iss", "exp", "iat"):
            assert claim in payload, f"Missing claim: {claim}"

    def test_default_lifetime_is_thirty_days(self):
        """Expiry is iat plus the session TTL."""
        now = datetime(2026, 1, 1, tzinfo=UTC)
        token = create_session_token(
            user_id=_USER_ID, email=_EMAIL, secret=TEST_AUTH_SECRET, now=now
        )
        payload = jwt.decode(
            token,
            TEST_AUTH_SECRET,
            algorithms=["HS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
            options={"verify_exp": False},
        )
        assert payload["exp"] - payload["iat"] == int(session_ttl().total_seconds())
        assert session_ttl() == timedelta(days=30)


class TestDecodeSessionToken:
    """Tests for decode_session_token()."""

    def test_round_trips_identity(self):
        """Decoding a fresh credential yields the same user and email."""
        token = create_session_token(
            user_id=_USER_ID, email=_EMAIL, secret=TEST_AUTH_SECRET
        )
        claims = decode_session_token(token, secret=TEST_AUTH_SECRET)
        assert claims.user_id == _USER_ID
        assert claims.email == _EMAIL
        assert claims.expires_at > claims.issued_at

    def test_rejects_wrong_secret(self):
        """A credential signed with another secret is rejected."""
        token = create_session_token(
            user_id=_USER_ID, email=_EMAIL, secret="another-secret-" * 4
        )
        with pytest.raises(UnauthenticatedError):
            decode_session_token(token, secret=TEST_AUTH_SECRET)

    def test_rejects_tampered_signature(self):
        """Changing one signature character invalidates the credential."""
        token = create_session_token(
            user_id=_USER_ID, email=_EMAIL, secret=TEST_AUTH_SECRET
        )
        header, payload, signature = token.split(".")
        # Flip the first character; the last one may carry padding bits only
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        with pytest.raises(UnauthenticatedError):
            decode_session_token(
                f"{header}.{payload}.{flipped}", secret=TEST_AUTH_SECRET
            )

    def test_rejects_expired(self):
        """A credential past exp is rejected."""
        token = create_test_session_token(
            _USER_ID,
            email=_EMAIL,
            iat=datetime.now(UTC) - timedelta(days=31),
            expires_delta=timedelta(seconds=-1),
        )
        with pytest.raises(UnauthenticatedError):
            decode_session_token(token, secret=TEST_AUTH_SECRET)

    def test_rejects_wrong_audience(self):
        """A credential minted for another audience is rejected."""
        token = create_test_session_token(_USER_ID, audience="someone-else")
        with pytest.raises(UnauthenticatedError):
            decode_session_token(token, secret=TEST_AUTH_SECRET)

    def test_rejects_missing_email_claim(self):
        """All required claims must be present."""
        now = datetime.now(UTC)
        token = jwt.encode(
            {
                "sub": str(_USER_ID),
                "aud": settings.auth_audience,
                "iss": settings.auth_issuer,
                "iat": now,
                "exp": now + timedelta(hours=1),
            },
            TEST_AUTH_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(UnauthenticatedError):
            decode_session_token(token, secret=TEST_AUTH_SECRET)

    def test_rejects_non_uuid_subject(self):
        """A sub claim that is not a UUID is rejected."""
        now = datetime.now(UTC)
        token = jwt.encode(
            {
                "sub": "not-a-uuid",
                "email": _EMAIL,
                "aud": settings.auth_audience,
                "iss": settings.auth_issuer,
                "iat": now,
                "exp": now + timedelta(hours=1),
            },
            TEST_AUTH_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(UnauthenticatedError):
            decode_session_token(token, secret=TEST_AUTH_SECRET)

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c", "Bearer x"])
    def test_rejects_malformed(self, garbage):
        """Strings that are not JWTs are rejected."""
        with pytest.raises(UnauthenticatedError):
            decode_session_token(garbage, secret=TEST_AUTH_SECRET)


class TestAuthCookie:
    """Tests for set_auth_cookie() / clear_auth_cookie()."""

    def test_sets_httponly_lax_cookie(self):
        """Cookie is httpOnly, SameSite=Lax, path=/, 30-day max age."""
        response = Mock()
        set_auth_cookie(response, "jwt-value")

        kwargs = response.set_cookie.call_args.kwargs
        assert kwargs["key"] == "auth_token"
        assert kwargs["value"] == "jwt-value"
        assert kwargs["httponly"] is True
        assert kwargs["samesite"] == "lax"
        assert kwargs["path"] == "/"
        assert kwargs["max_age"] == 30 * 24 * 60 * 60

    def test_secure_flag_follows_environment(self, monkeypatch):
        """Secure flag defaults to on in production only."""
        response = Mock()
        monkeypatch.setattr(settings, "auth_cookie_secure", None)

        monkeypatch.setattr(settings, "environment", "development")
        set_auth_cookie(response, "jwt-value")
        assert response.set_cookie.call_args.kwargs["secure"] is False

        monkeypatch.setattr(settings, "environment", "production")
        set_auth_cookie(response, "jwt-value")
        assert response.set_cookie.call_args.kwargs["secure"] is True

    def test_clear_matches_set_attributes(self):
        """Deletion uses the same name, path, and domain as set."""
        response = Mock()
        clear_auth_cookie(response)

        kwargs = response.delete_cookie.call_args.kwargs
        assert kwargs["key"] == "auth_token"
        assert kwargs["path"] == "/"
        assert kwargs["httponly"] is True
        assert kwargs["domain"] is None


class TestExtractSessionToken:
    """Tests for extract_session_token()."""

    def test_reads_cookie(self):
        request = _request(cookies={"auth_token": "from-cookie"})
        assert extract_session_token(request) == "from-cookie"

    def test_reads_bearer_header(self):
        request = _request(headers={"authorization": "Bearer from-header"})
        assert extract_session_token(request) == "from-header"

    def test_bearer_scheme_is_case_insensitive(self):
        request = _request(headers={"authorization": "bearer from-header"})
        assert extract_session_token(request) == "from-header"

    def test_cookie_wins_over_header(self):
        request = _request(
            cookies={"auth_token": "from-cookie"},
            headers={"authorization": "Bearer from-header"},
        )
        assert extract_session_token(request) == "from-cookie"

    def test_ignores_other_schemes(self):
        request = _request(headers={"authorization": "Basic dXNlcjpwYXNz"})
        assert extract_session_token(request) is None

    def test_returns_none_when_absent(self):
        assert extract_session_token(_request()) is None


class TestAuthenticateRequest:
    """Tests for authenticate_request()."""

    @pytest.fixture(autouse=True)
    def _test_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "auth_secret", SecretStr(TEST_AUTH_SECRET))

    def test_anonymous_request_returns_none(self):
        assert authenticate_request(_request()) is None

    def test_valid_credential_returns_claims(self):
        token = create_test_session_token(_USER_ID, email=_EMAIL)
        claims = authenticate_request(_request(cookies={"auth_token": token}))
        assert claims is not None
        assert claims.user_id == _USER_ID
        assert claims.email == _EMAIL

    def test_invalid_credential_raises(self):
        with pytest.raises(UnauthenticatedError):
            authenticate_request(_request(cookies={"auth_token": "garbage"}))
