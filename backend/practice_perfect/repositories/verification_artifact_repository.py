"""Repository for VerificationArtifact operations.

Single-use sign-in artifacts stored as hashed secrets with a time-limited
expiry. Consumption is a conditional delete, never a read-then-delete.
"""

from datetime import UTC, datetime

from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from practice_perfect.models.verification_artifact import VerificationArtifact


class VerificationArtifactRepository:
    """Stateless repository for VerificationArtifact table operations.

    All methods are static, with no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        token_hash: str,
        code_hash: str,
        expires_at: datetime,
    ) -> VerificationArtifact:
        """Store a new sign-in artifact.

        Args:
            db: Async database session.
            email: Target email address (already normalized).
            token_hash: SHA-256 digest of the magic link token.
            code_hash: SHA-256 digest of the one-time code.
            expires_at: Artifact expiry timestamp.

        Returns:
            Created VerificationArtifact.

        Raises:
            sqlalchemy.exc.IntegrityError: If token_hash already exists.
        """
        artifact = VerificationArtifact(
            email=email,
            token_hash=token_hash,
            code_hash=code_hash,
            expires_at=expires_at,
        )
        db.add(artifact)
        await db.flush()
        return artifact

    @staticmethod
    async def get_email_for_token(
        db: AsyncSession,
        *,
        token_hash: str,
    ) -> str | None:
        """Resolve the target email of a magic link token.

        Used only to find which email a link belongs to; validity is
        decided by consume().

        Args:
            db: Async database session.
            token_hash: SHA-256 digest of the magic link token.

        Returns:
            Email address if the token exists, None otherwise.
        """
        stmt = select(VerificationArtifact.email).where(
            VerificationArtifact.token_hash == token_hash,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def consume(
        db: AsyncSession,
        *,
        email: str,
        now: datetime,
        token_hash: str | None = None,
        code_hash: str | None = None,
    ) -> int:
        """Delete every artifact for ``email`` and count the valid matches.

        One DELETE ... RETURNING statement removes all rows for the email
        and reports, per row, whether it matched the submitted secret and
        was still unexpired. The row locks taken by this statement make a
        concurrent consume for the same email wait, then see no rows.

        A return value of zero means nothing matched; the caller must roll
        back so the deleted siblings are restored.

        Args:
            db: Async database session.
            email: Target email address.
            now: Current time for the expiry check.
            token_hash: Digest of a submitted magic link token.
            code_hash: Digest of a submitted one-time code.

        Returns:
            Number of deleted rows that matched and were unexpired.

        Raises:
            ValueError: Unless exactly one of token_hash / code_hash is given.
        """
        if (token_hash is None) == (code_hash is None):
            msg = "Exactly one of token_hash or code_hash is required"
            raise ValueError(msg)

        if token_hash is not None:
            secret_matches = VerificationArtifact.token_hash == token_hash
        else:
            secret_matches = VerificationArtifact.code_hash == code_hash

        stmt = (
            delete(VerificationArtifact)
            .where(VerificationArtifact.email == email)
            .returning(
                and_(secret_matches, VerificationArtifact.expires_at > now).label(
                    "matched"
                )
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return sum(1 for matched in result.scalars() if matched)

    @staticmethod
    async def delete_expired(db: AsyncSession, *, now: datetime | None = None) -> int:
        """Delete all expired artifacts (periodic cleanup).

        Args:
            db: Async database session.
            now: Cutoff time. Defaults to the current time.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(VerificationArtifact).where(
            VerificationArtifact.expires_at <= (now or datetime.now(UTC)),
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
