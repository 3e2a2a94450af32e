"""Shared dependencies for API endpoints.

Database sessions, request authentication, and the sign-in services.

WHY DEPENDENCY INJECTION:
- Handlers never reach for a global engine or secret
- Tests swap the database via app.dependency_overrides[get_db]
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from practice_perfect.core.auth import authenticate_request
from practice_perfect.core.config import settings
from practice_perfect.core.database import get_db
from practice_perfect.core.errors import UnauthenticatedError
from practice_perfect.core.rate_limiting import issue_throttle, verify_throttle
from practice_perfect.models.user import User
from practice_perfect.repositories.user_repository import UserRepository
from practice_perfect.services.sign_in_issuer import SignInIssuer
from practice_perfect.services.sign_in_verifier import SignInVerifier

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_optional_user(request: Request, db: DbSession) -> User | None:
    """Resolve the signed-in user, or None.

    Missing, malformed, expired, and forged credentials all yield None, as
    does a credential for a user that no longer exists. Read endpoints use
    this so "not signed in" is never an error.
    """
    try:
        claims = authenticate_request(request)
    except UnauthenticatedError:
        return None
    if claims is None:
        return None
    return await UserRepository.get_by_id(db, claims.user_id)


async def get_current_user(request: Request, db: DbSession) -> User:
    """Resolve the signed-in user for endpoints that require one.

    Raises:
        UnauthenticatedError: If the request is anonymous, the credential is
            invalid, or the user no longer exists.
    """
    claims = authenticate_request(request)
    if claims is None:
        raise UnauthenticatedError()
    user = await UserRepository.get_by_id(db, claims.user_id)
    if user is None:
        raise UnauthenticatedError()
    return user


def get_sign_in_issuer(db: DbSession) -> SignInIssuer:
    """Build a SignInIssuer bound to the request's session."""
    return SignInIssuer(db, throttle=issue_throttle)


def get_sign_in_verifier(db: DbSession) -> SignInVerifier:
    """Build a SignInVerifier bound to the request's session."""
    return SignInVerifier(
        db,
        secret=settings.auth_secret.get_secret_value(),
        throttle=verify_throttle,
    )


# Reusable type aliases for dependency injection
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
CurrentUser = Annotated[User, Depends(get_current_user)]
Issuer = Annotated[SignInIssuer, Depends(get_sign_in_issuer)]
Verifier = Annotated[SignInVerifier, Depends(get_sign_in_verifier)]
