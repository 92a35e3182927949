"""Shared dependencies for API endpoints.

Authentication: access tokens arrive in ``Authorization: Bearer <token>``.
Refresh tokens never do; they travel only in the ``qid`` cookie and are
read by the refresh endpoint alone.

WHY DEPENDENCY INJECTION:
- Consistent auth across all endpoints
- Codec, code store and email dispatcher swap out in tests
  via app.dependency_overrides
"""

from functools import lru_cache
from typing import Annotated

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from remaster_auth.core.database import get_db
from remaster_auth.core.email import EmailDispatcher, background_dispatcher
from remaster_auth.core.errors import UnauthorizedError
from remaster_auth.core.tokens import ExpiredOrInvalidTokenError, TokenCodec
from remaster_auth.models import User
from remaster_auth.repositories.user_repository import UserRepository
from remaster_auth.services.code_store import OneTimeCodeStore, get_code_store

# auto_error=False: a missing header is decided here, not by FastAPI
bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_token_codec() -> TokenCodec:
    """Token codec built once from settings.

    Raises:
        RuntimeError: If the signing secrets are missing or identical.
    """
    return TokenCodec.from_settings()


def get_email_dispatcher(background_tasks: BackgroundTasks) -> EmailDispatcher:
    """Email dispatcher that sends after the response is written."""
    return background_dispatcher(background_tasks)


DbSession = Annotated[AsyncSession, Depends(get_db)]
Codec = Annotated[TokenCodec, Depends(get_token_codec)]
Codes = Annotated[OneTimeCodeStore, Depends(get_code_store)]
Mailer = Annotated[EmailDispatcher, Depends(get_email_dispatcher)]


async def get_optional_user(
    request: Request,
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    db: DbSession,
    codec: Codec,
) -> User | None:
    """Resolve the caller from a bearer access token, if one was sent.

    Validation steps:
    1. No Authorization header: anonymous, return None
    2. Header present but not ``Bearer <token>``: reject
    3. Verify signature, expiry, audience, issuer and token type
    4. Load the user named by ``sub``; a deleted user is rejected

    On success the user is also stored on ``request.state.user``.

    Raises:
        UnauthorizedError: For any failure after a header was presented.
            The message never says which check failed.
    """
    if credentials is None:
        # HTTPBearer returns None for non-Bearer schemes too
        if request.headers.get("Authorization"):
            raise UnauthorizedError()
        return None

    try:
        claims = codec.verify_access(credentials.credentials)
    except ExpiredOrInvalidTokenError as exc:
        raise UnauthorizedError() from exc

    user = await UserRepository.get_by_id(db, claims.user_id)
    if user is None:
        raise UnauthorizedError()

    request.state.user = user
    return user


async def get_current_user(
    user: Annotated[User | None, Depends(get_optional_user)],
) -> User:
    """Like get_optional_user, but anonymous callers are rejected too.

    Raises:
        UnauthorizedError: No header, or any get_optional_user failure.
    """
    if user is None:
        raise UnauthorizedError()
    return user


# Reusable type aliases for dependency injection (SonarCloud S8410)
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
CurrentUser = Annotated[User, Depends(get_current_user)]
