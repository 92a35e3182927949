"""User profile endpoints.

All routes require a bearer access token.
"""

from fastapi import APIRouter

from remaster_auth.api.deps import CurrentUser, DbSession
from remaster_auth.core.errors import FieldValidationError
from remaster_auth.core.responses import DataResponse
from remaster_auth.schemas.auth import (
    ChangeEmailRequest,
    ChangeUsernameRequest,
    FieldError,
    UserOut,
    UserPayload,
)
from remaster_auth.services import credentials

router = APIRouter()


@router.get("")
async def list_users(
    _user: CurrentUser,
    db: DbSession,
) -> DataResponse[list[UserOut]]:
    """List all users."""
    users = await credentials.list_users(db)
    return DataResponse(data=[UserOut.model_validate(u) for u in users])


@router.patch("/me/username")
async def change_username(
    body: ChangeUsernameRequest,
    user: CurrentUser,
    db: DbSession,
) -> UserPayload:
    """Change the signed-in user's username."""
    try:
        updated = await credentials.change_username(db, user, username=body.username)
    except FieldValidationError as exc:
        return UserPayload(errors=[FieldError.from_exception(exc)])
    return UserPayload(user=UserOut.model_validate(updated))


@router.patch("/me/email")
async def change_email(
    body: ChangeEmailRequest,
    user: CurrentUser,
    db: DbSession,
) -> UserPayload:
    """Change the signed-in user's email address."""
    try:
        updated = await credentials.change_email(db, user, email=body.email)
    except FieldValidationError as exc:
        return UserPayload(errors=[FieldError.from_exception(exc)])
    return UserPayload(user=UserOut.model_validate(updated))
