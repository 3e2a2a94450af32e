"""SQLAlchemy ORM models for Practice Perfect auth.

All models are exported from this module for convenient imports:
    from practice_perfect.models import User, VerificationArtifact

- user.py: User (account record)
- verification_artifact.py: VerificationArtifact (magic link token + code)
"""

from practice_perfect.models.base import Base, TimestampMixin
from practice_perfect.models.user import User
from practice_perfect.models.verification_artifact import VerificationArtifact

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "VerificationArtifact",
]
