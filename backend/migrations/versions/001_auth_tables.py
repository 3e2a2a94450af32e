"""Create auth tables: users, verification_artifacts.

Revision ID: 001_auth_tables
Revises:
Create Date: 2026-10-19

- users: one row per email, created on first successful sign-in.
- verification_artifacts: hashed magic link token + one-time code per
  sign-in request, deleted on consumption or by the expiry sweeper.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_auth_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # =========================================================================
    # users
    # =========================================================================
    op.create_table(
        "users",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # =========================================================================
    # verification_artifacts
    # =========================================================================
    op.create_table(
        "verification_artifacts",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("code_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "idx_verification_artifacts_email", "verification_artifacts", ["email"]
    )
    op.create_index(
        "idx_verification_artifacts_expires_at",
        "verification_artifacts",
        ["expires_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "idx_verification_artifacts_expires_at",
        table_name="verification_artifacts",
    )
    op.drop_index(
        "idx_verification_artifacts_email", table_name="verification_artifacts"
    )
    op.drop_table("verification_artifacts")
    op.drop_table("users")
