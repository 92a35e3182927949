"""Auth API request/response schemas.

Request bodies use ConfigDict(extra="forbid") to reject unexpected fields.
Response payloads mirror the shape clients already consume: field errors
travel inside the payload (HTTP 200), never as a transport failure.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from remaster_auth.core.errors import FieldValidationError
from remaster_auth.core.tokens import IssuedToken

# bcrypt ignores anything past 72 bytes; 128 chars keeps request bodies bounded
_MAX_PASSWORD_LEN = 128
_MAX_USERNAME_LEN = 255
_MAX_CODE_LEN = 64


# ===================================================================
# Request models
# ===================================================================


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    username: str = Field(min_length=1, max_length=_MAX_USERNAME_LEN)
    password: str = Field(min_length=1, max_length=_MAX_PASSWORD_LEN)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=_MAX_PASSWORD_LEN)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /auth/change-password."""

    model_config = ConfigDict(extra="forbid")

    old_password: str = Field(min_length=1, max_length=_MAX_PASSWORD_LEN)
    new_password: str = Field(min_length=1, max_length=_MAX_PASSWORD_LEN)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /auth/forgot-password."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class ChangeForgotPasswordRequest(BaseModel):
    """Request body for POST /auth/change-forgot-password."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    token: str = Field(min_length=1, max_length=_MAX_CODE_LEN)
    password: str = Field(min_length=1, max_length=_MAX_PASSWORD_LEN)


class VerifyEmailRequest(BaseModel):
    """Request body for POST /auth/verify-email."""

    model_config = ConfigDict(extra="forbid")

    token: str = Field(min_length=1, max_length=_MAX_CODE_LEN)


class ChangeUsernameRequest(BaseModel):
    """Request body for PATCH /users/me/username."""

    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1, max_length=_MAX_USERNAME_LEN)


class ChangeEmailRequest(BaseModel):
    """Request body for PATCH /users/me/email."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


# ===================================================================
# Response models
# ===================================================================


class UserOut(BaseModel):
    """Public view of a user. Never includes password_hash or token_version."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    verified: bool
    created_at: datetime | None = None


class FieldError(BaseModel):
    field: str
    message: str

    @classmethod
    def from_exception(cls, exc: FieldValidationError) -> "FieldError":
        return cls(field=exc.field, message=exc.message)


class AuthTokens(BaseModel):
    """Access token as returned in response bodies.

    Attributes:
        access_token: Bearer token for the Authorization header.
        expires_in: Seconds until the access token expires.
    """

    access_token: str
    expires_in: int

    @classmethod
    def from_issued(cls, access: IssuedToken) -> "AuthTokens":
        return cls(access_token=access.token, expires_in=access.expires_in)


class AuthPayload(BaseModel):
    """Result of flows that sign the user in (register, login, reset)."""

    errors: list[FieldError] | None = None
    user: UserOut | None = None
    auth: AuthTokens | None = None


class UserPayload(BaseModel):
    """Result of flows that update the signed-in user."""

    errors: list[FieldError] | None = None
    user: UserOut | None = None


class RefreshTokenResponse(BaseModel):
    """Success body of POST /refresh_token."""

    ok: bool = True
    access_token: str
    expires_in: int
    user: UserOut


class RefreshTokenError(BaseModel):
    """Failure body of POST /refresh_token (status 401)."""

    error: str
