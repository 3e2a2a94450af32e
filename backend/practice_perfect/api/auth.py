"""Passwordless sign-in + session endpoints.

Endpoints:
- POST /auth/login: email a magic link and one-time code
- GET /auth/verify: verify a magic link token, set cookie, redirect
- POST /auth/verify-code: verify a one-time code, set cookie, return user
- POST /auth/logout: clear auth cookie
- GET /auth/me: return the current user, or null
- PUT /auth/profile: update the display name
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse
from starlette.responses import Response

from practice_perfect.api.deps import (
    CurrentUser,
    DbSession,
    Issuer,
    OptionalUser,
    Verifier,
)
from practice_perfect.core.auth import clear_auth_cookie, set_auth_cookie
from practice_perfect.core.config import settings
from practice_perfect.core.errors import InvalidInputError, UnauthenticatedError
from practice_perfect.core.rate_limiting import limiter
from practice_perfect.models.user import User
from practice_perfect.repositories.user_repository import UserRepository
from practice_perfect.schemas.auth import (
    CurrentUserResponse,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    ProfileResponse,
    UpdateProfileRequest,
    UserPayload,
    VerifyCodeRequest,
    VerifyCodeResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _user_payload(user: User) -> UserPayload:
    return UserPayload.model_validate(user)


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
@limiter.limit(settings.rate_limit_login_ip)
async def login(
    request: Request,  # noqa: ARG001
    body: LoginRequest,
    issuer: Issuer,
) -> LoginResponse:
    """Send a sign-in email with a magic link and a one-time code.

    Security: The response is identical for known and unknown emails.
    Rate limit: per IP here, plus a per-email window in the issuer.
    """
    await issuer.issue(body.email)
    return LoginResponse()


# ===================================================================
# GET /auth/verify
# ===================================================================


@router.get("/verify")
@limiter.limit(settings.rate_limit_verify_ip)
async def verify_link(
    request: Request,  # noqa: ARG001
    token: Annotated[str, Query(min_length=1, max_length=256)],
    verifier: Verifier,
    email: Annotated[str | None, Query(max_length=255)] = None,
) -> RedirectResponse:
    """Verify a magic link token, set the session cookie, and redirect.

    The link carries the email too, but a token alone is enough: the
    email is resolved from the stored artifact. Failures return the
    401 error envelope and never set a cookie.
    """
    result = await verifier.verify(email, token=token)

    response = RedirectResponse(url=settings.app_url, status_code=307)
    set_auth_cookie(response, result.session_token)
    # Prevent token leakage via Referer header
    response.headers["Referrer-Policy"] = "no-referrer"
    return response


# ===================================================================
# POST /auth/verify-code
# ===================================================================


@router.post("/verify-code")
@limiter.limit(settings.rate_limit_verify_ip)
async def verify_code(
    request: Request,  # noqa: ARG001
    response: Response,
    body: VerifyCodeRequest,
    verifier: Verifier,
) -> VerifyCodeResponse:
    """Verify a one-time code and start a session.

    Sets the auth cookie and also returns the credential for clients
    that send it as a bearer token.
    """
    result = await verifier.verify(body.email, code=body.code)
    set_auth_cookie(response, result.session_token)
    return VerifyCodeResponse(
        user=_user_payload(result.user),
        token=result.session_token,
    )


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(response: Response) -> LogoutResponse:
    """Clear the auth cookie.

    No auth required. Credentials are stateless, so a copied credential
    stays valid until it expires.
    """
    clear_auth_cookie(response)
    return LogoutResponse()


# ===================================================================
# GET /auth/me
# ===================================================================


@router.get("/me")
async def get_me(user: OptionalUser) -> CurrentUserResponse:
    """Return the signed-in user, or ``{"user": null}`` for anonymous requests."""
    if user is None:
        return CurrentUserResponse(user=None)
    return CurrentUserResponse(user=_user_payload(user))


# ===================================================================
# PUT /auth/profile
# ===================================================================


@router.put("/profile")
async def update_profile(
    body: UpdateProfileRequest,
    user: CurrentUser,
    db: DbSession,
) -> ProfileResponse:
    """Update the signed-in user's display name."""
    trimmed_name = body.display_name.strip()
    if not trimmed_name:
        raise InvalidInputError("Display name must not be empty")

    updated = await UserRepository.update(db, user.id, display_name=trimmed_name)
    if updated is None:
        raise UnauthenticatedError()
    await db.commit()

    return ProfileResponse(user=_user_payload(updated))
