"""Pydantic request/response schemas for API endpoints."""

from remaster_auth.schemas.auth import (
    AuthPayload,
    AuthTokens,
    ChangeEmailRequest,
    ChangeForgotPasswordRequest,
    ChangePasswordRequest,
    ChangeUsernameRequest,
    FieldError,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshTokenError,
    RefreshTokenResponse,
    RegisterRequest,
    UserOut,
    UserPayload,
    VerifyEmailRequest,
)

__all__ = [
    "AuthPayload",
    "AuthTokens",
    "ChangeEmailRequest",
    "ChangeForgotPasswordRequest",
    "ChangePasswordRequest",
    "ChangeUsernameRequest",
    "FieldError",
    "ForgotPasswordRequest",
    "LoginRequest",
    "RefreshTokenError",
    "RefreshTokenResponse",
    "RegisterRequest",
    "UserOut",
    "UserPayload",
    "VerifyEmailRequest",
]
