"""Pydantic request/response schemas for API endpoints."""

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

__all__ = [
    "CurrentUserResponse",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "ProfileResponse",
    "UpdateProfileRequest",
    "UserPayload",
    "VerifyCodeRequest",
    "VerifyCodeResponse",
]
