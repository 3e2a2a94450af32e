"""Session credentials: JWT issuance, verification, and cookie transport.

Pipeline:
- create_session_token: sign {sub, email, iat, exp, aud, iss} with HS256
- decode_session_token: verify signature and claims, or UnauthenticatedError
- set_auth_cookie / clear_auth_cookie: httpOnly cookie transport
- extract_session_token: read the credential from cookie or Bearer header
- authenticate_request: extract + decode, None for anonymous requests

Credentials are self-contained. There is no server-side revocation list,
so logout only clears the client cookie.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Request, Response

from practice_perfect.core.config import settings
from practice_perfect.core.errors import UnauthenticatedError

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"
_BEARER_PREFIX = "bearer "
_REQUIRED_CLAIMS = ["sub", "email", "iat", "exp", "aud", "iss"]


@dataclass(frozen=True)
class SessionClaims:
    """Verified identity carried by a session credential.

    Attributes:
        user_id: UUID of the authenticated user.
        email: Email address at the time the credential was minted.
        issued_at: Credential issue time (UTC).
        expires_at: Credential expiry time (UTC).
    """

    user_id: uuid.UUID
    email: str
    issued_at: datetime
    expires_at: datetime


def session_ttl() -> timedelta:
    """Lifetime of a session credential and its cookie."""
    return timedelta(days=settings.session_ttl_days)


def create_session_token(
    *,
    user_id: uuid.UUID | str,
    email: str,
    secret: str,
    now: datetime | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session JWT.

    Args:
        user_id: User UUID for the sub claim.
        email: User email for the email claim.
        secret: HMAC signing secret.
        now: Issue time. Defaults to the current time.
        expires_delta: Time until expiration. Defaults to session_ttl().

    Returns:
        Encoded JWT string.
    """
    issued_at = now or datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "email": email,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "iat": issued_at,
        "exp": issued_at + (expires_delta or session_ttl()),
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def decode_session_token(token: str, *, secret: str) -> SessionClaims:
    """Verify a session JWT and return its claims.

    Security: Every failure (malformed, bad signature, expired, wrong
    audience or issuer, missing or invalid claims) collapses to the same
    UnauthenticatedError. The reason is logged at debug level only.

    Args:
        token: Encoded JWT string.
        secret: HMAC signing secret.

    Returns:
        SessionClaims for the authenticated user.

    Raises:
        UnauthenticatedError: If the token is not a valid, unexpired credential.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[_ALGORITHM],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
            options={"require": _REQUIRED_CLAIMS},
        )
        return SessionClaims(
            user_id=uuid.UUID(payload["sub"]),
            email=str(payload["email"]),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
        )
    except (jwt.InvalidTokenError, KeyError, TypeError, ValueError) as exc:
        logger.debug("Rejected session credential: %s", type(exc).__name__)
        raise UnauthenticatedError() from exc


def set_auth_cookie(response: Response, token: str) -> None:
    """Set the httpOnly session cookie on a response.

    Security: httpOnly keeps the credential away from page scripts.
    SameSite=Lax still sends it on top-level navigation, which the magic
    link redirect relies on.

    Args:
        response: FastAPI response object.
        token: Session JWT.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=int(session_ttl().total_seconds()),
        domain=settings.auth_cookie_domain or None,
    )


def clear_auth_cookie(response: Response) -> None:
    """Expire the session cookie.

    Attributes must match set_auth_cookie() for the browser to delete it.
    """
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.auth_cookie_samesite,
        domain=settings.auth_cookie_domain or None,
    )


def extract_session_token(request: Request) -> str | None:
    """Read the raw session credential from a request.

    The cookie wins when both are present. The Authorization header path
    serves installed-PWA clients that cannot keep cookies reliably.

    Returns:
        Token string, or None if the request carries no credential.
    """
    cookie_token = request.cookies.get(settings.auth_cookie_name)
    if cookie_token:
        return cookie_token

    header = request.headers.get("authorization", "")
    if header.lower().startswith(_BEARER_PREFIX):
        bearer_token = header[len(_BEARER_PREFIX) :].strip()
        if bearer_token:
            return bearer_token

    return None


def authenticate_request(request: Request) -> SessionClaims | None:
    """Authenticate an inbound request.

    Returns:
        SessionClaims, or None when the request is anonymous.

    Raises:
        UnauthenticatedError: If a credential is present but invalid.
    """
    token = extract_session_token(request)
    if token is None:
        return None
    return decode_session_token(token, secret=settings.auth_secret.get_secret_value())
