"""Verification artifact model - magic link token + one-time code.

One row per sign-in request. Several rows may coexist for an email until
one is consumed (which deletes them all) or they expire.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from practice_perfect.models.base import Base


class VerificationArtifact(Base):
    """Outstanding sign-in artifact.

    Secrets are stored as SHA-256 digests. A row is valid only while
    ``now < expires_at``.

    Attributes:
        id: UUID primary key.
        email: Target email address (lower-cased).
        token_hash: Digest of the magic link token. Globally unique.
        code_hash: Digest of the numeric one-time code.
        expires_at: Expiry timestamp.
        created_at: Issue timestamp.
    """

    __tablename__ = "verification_artifacts"
    __table_args__ = (
        Index("idx_verification_artifacts_email", "email"),
        Index("idx_verification_artifacts_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    code_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
