"""Sign-in verifier: consumes artifacts and issues session credentials.

Verification unifies signup and login: a valid artifact for an unseen
email creates the account.

Flow:
1. Conditionally delete every artifact for the email, counting the rows
   that match the submitted secret and are unexpired.
2. Zero matches -> roll back (siblings restored) -> InvalidOrExpiredError.
3. Find or create the user, commit.
4. Mint a session credential.

Security: Wrong value, wrong email, expired, and already-consumed artifacts
all produce the same InvalidOrExpiredError.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from practice_perfect.core.auth import create_session_token
from practice_perfect.core.email import normalize_email
from practice_perfect.core.errors import (
    InvalidInputError,
    InvalidOrExpiredError,
    UpstreamStoreError,
)
from practice_perfect.core.rate_limiting import EmailThrottle
from practice_perfect.core.tokens import hash_secret
from practice_perfect.models.user import User
from practice_perfect.repositories.user_repository import (
    UserRepository,
    default_display_name,
)
from practice_perfect.repositories.verification_artifact_repository import (
    VerificationArtifactRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedSignIn:
    """Result of a successful verification.

    Attributes:
        user: The signed-in user (created if new).
        session_token: Signed session credential for the user.
    """

    user: User
    session_token: str


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SignInVerifier:
    """Verifies sign-in artifacts and mints session credentials.

    Args:
        db: Async database session. The verifier owns the transaction.
        secret: Session credential signing secret.
        throttle: Optional per-email attempt limiter.
        clock: Source of the current time.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        secret: str,
        throttle: EmailThrottle | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._secret = secret
        self._throttle = throttle
        self._clock = clock

    async def verify(
        self,
        email: str | None,
        *,
        token: str | None = None,
        code: str | None = None,
    ) -> VerifiedSignIn:
        """Verify a magic link token or a one-time code.

        Args:
            email: Target email. Required with ``code``; optional with
                ``token`` (resolved from the token when absent).
            token: Magic link token from the email link.
            code: One-time code typed by the user.

        Returns:
            VerifiedSignIn with the user and a fresh session credential.

        Raises:
            InvalidInputError: If not exactly one of token / code is given,
                a code is given without an email, or the email is malformed.
            RateLimitedError: If the email exceeded its verification window.
            InvalidOrExpiredError: If no valid artifact matches.
            UpstreamStoreError: If the database fails.
        """
        if (token is None) == (code is None):
            raise InvalidInputError("Provide either a token or a code")

        normalized = normalize_email(email) if email else None
        if code is not None and normalized is None:
            raise InvalidInputError("Email is required to verify a code")

        if self._throttle is not None and normalized is not None:
            self._throttle.hit(normalized)

        try:
            user = await self._consume_and_resolve_user(
                normalized, token=token, code=code
            )
        except SQLAlchemyError as exc:
            await self._db.rollback()
            logger.exception("Database failure during sign-in verification")
            raise UpstreamStoreError() from exc

        session_token = create_session_token(
            user_id=user.id,
            email=user.email,
            secret=self._secret,
            now=self._clock(),
        )
        return VerifiedSignIn(user=user, session_token=session_token)

    async def _consume_and_resolve_user(
        self,
        email: str | None,
        *,
        token: str | None,
        code: str | None,
    ) -> User:
        """Consume the matching artifact and find or create the user."""
        now = self._clock()

        if token is not None:
            token_hash = hash_secret(token)
            if email is None:
                email = await VerificationArtifactRepository.get_email_for_token(
                    self._db, token_hash=token_hash
                )
                if email is None:
                    raise InvalidOrExpiredError()
            matched = await VerificationArtifactRepository.consume(
                self._db, email=email, now=now, token_hash=token_hash
            )
        else:
            matched = await VerificationArtifactRepository.consume(
                self._db, email=email, now=now, code_hash=hash_secret(code)
            )

        if matched == 0:
            await self._db.rollback()
            raise InvalidOrExpiredError()

        user = await UserRepository.get_by_email(self._db, email)
        if user is None:
            user = await UserRepository.create(
                self._db,
                email=email,
                display_name=default_display_name(email),
            )
            logger.info("Created user %s on first sign-in", user.id)

        await self._db.commit()
        return user
