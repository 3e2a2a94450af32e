"""Sign-in issuer: creates and emails magic link tokens and one-time codes.

Each call stores one new artifact for the email and sends it. Earlier
artifacts for the same email stay valid until one of them is consumed,
so "resend" never breaks a code the user already has.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from practice_perfect.core.config import settings
from practice_perfect.core.email import normalize_email, send_sign_in_email
from practice_perfect.core.errors import UpstreamStoreError
from practice_perfect.core.rate_limiting import EmailThrottle
from practice_perfect.core.tokens import (
    generate_sign_in_code,
    generate_sign_in_token,
    hash_secret,
)
from practice_perfect.repositories.verification_artifact_repository import (
    VerificationArtifactRepository,
)

logger = logging.getLogger(__name__)

SendSignInEmail = Callable[..., Awaitable[None]]


@dataclass(frozen=True)
class IssuedArtifact:
    """Plain secrets of a freshly issued artifact.

    Attributes:
        email: Normalized target email.
        token: Magic link token.
        code: One-time numeric code.
        expires_at: Expiry timestamp (UTC).
    """

    email: str
    token: str
    code: str
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SignInIssuer:
    """Issues sign-in artifacts and dispatches them by email.

    Args:
        db: Async database session. The issuer commits its own write.
        send_email: Mail collaborator. Defaults to the Resend sender.
        throttle: Optional per-email attempt limiter.
        ttl: Artifact lifetime. Defaults to SIGN_IN_TTL_MINUTES.
        code_length: Digits in the one-time code. Defaults to SIGN_IN_CODE_LENGTH.
        clock: Source of the current time.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        send_email: SendSignInEmail | None = None,
        throttle: EmailThrottle | None = None,
        ttl: timedelta | None = None,
        code_length: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._send_email = send_email or send_sign_in_email
        self._throttle = throttle
        self._ttl = ttl or timedelta(minutes=settings.sign_in_ttl_minutes)
        self._code_length = code_length or settings.sign_in_code_length
        self._clock = clock

    async def issue(self, email: str) -> IssuedArtifact:
        """Create a sign-in artifact for ``email`` and email it.

        The artifact is committed before the email is sent. A delivery
        failure leaves it in place so a later resend does not race it.

        Args:
            email: Address to sign in.

        Returns:
            IssuedArtifact with the plain token and code.

        Raises:
            InvalidInputError: If the email is malformed.
            RateLimitedError: If the email exceeded its issuance window.
            UpstreamStoreError: If the artifact cannot be stored.
            DeliveryFailedError: If the email cannot be sent.
        """
        normalized = normalize_email(email)
        if self._throttle is not None:
            self._throttle.hit(normalized)

        token = generate_sign_in_token()
        code = generate_sign_in_code(self._code_length)
        expires_at = self._clock() + self._ttl

        try:
            await VerificationArtifactRepository.create(
                self._db,
                email=normalized,
                token_hash=hash_secret(token),
                code_hash=hash_secret(code),
                expires_at=expires_at,
            )
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            logger.exception("Failed to store sign-in artifact")
            raise UpstreamStoreError() from exc

        await self._send_email(
            to_email=normalized,
            token=token,
            code=code,
            expires_in_minutes=int(self._ttl.total_seconds() // 60),
        )
        logger.debug("Issued sign-in artifact for %s", normalized)

        return IssuedArtifact(
            email=normalized,
            token=token,
            code=code,
            expires_at=expires_at,
        )
