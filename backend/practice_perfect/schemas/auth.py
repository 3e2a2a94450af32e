"""Auth request/response schemas.

Request bodies reject unknown fields. Response payloads use the camelCase
keys the web client reads (``displayName``).
"""

import uuid

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# =============================================================================
# Request Schemas
# =============================================================================


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class VerifyCodeRequest(BaseModel):
    """Request body for POST /auth/verify-code."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    code: str = Field(min_length=4, max_length=10, pattern=r"^\d+$")


class UpdateProfileRequest(BaseModel):
    """Request body for PUT /auth/profile."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    display_name: str = Field(alias="displayName", max_length=255)


# =============================================================================
# Response Schemas
# =============================================================================


class UserPayload(BaseModel):
    """Public view of a user account."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    email: str
    display_name: str | None = Field(default=None, alias="displayName")


class LoginResponse(BaseModel):
    """Empty body: the response never reveals whether the email is known."""


class VerifyCodeResponse(BaseModel):
    """Body for a successful code verification.

    The token is echoed for clients that send it back in an
    ``Authorization: Bearer`` header instead of relying on the cookie.
    """

    user: UserPayload
    token: str


class LogoutResponse(BaseModel):
    """Body for POST /auth/logout."""

    success: bool = True


class CurrentUserResponse(BaseModel):
    """Body for GET /auth/me. ``user`` is null for anonymous requests."""

    user: UserPayload | None


class ProfileResponse(BaseModel):
    """Body for PUT /auth/profile."""

    user: UserPayload
