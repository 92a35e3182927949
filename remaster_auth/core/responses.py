"""Response envelope models.

Two shapes leave this API:
- {"data": ...} for plain results (logout, forgot-password, user lists)
- {"error": {...}} for transport-level failures (401, 400, 503, 500)

Credential flows that fail on a user-correctable field use neither; they
return a payload with an ``errors`` list (see schemas.auth).
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Success envelope.

    Usage:
        @router.get("/auth/me")
        async def get_me(user: OptionalUser) -> DataResponse[UserOut | None]:
            return DataResponse(data=UserOut.model_validate(user))
    """

    data: T


class ErrorDetail(BaseModel):
    """Body of the error envelope.

    Attributes:
        code: Machine-readable error code (e.g., "UNAUTHORIZED").
        message: Human-readable message. Never names the failing check.
        details: Optional field-level errors.
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Error envelope: ``{"error": {"code", "message", "details"}}``."""

    error: ErrorDetail

    @classmethod
    def of(
        cls, code: str, message: str, details: list[dict] | None = None
    ) -> dict:
        """Build the envelope and dump it for a JSONResponse body."""
        return cls(
            error=ErrorDetail(code=code, message=message, details=details)
        ).model_dump()
