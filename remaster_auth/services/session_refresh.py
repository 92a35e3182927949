"""Refresh-token exchange.

Turns a refresh token (from the ``qid`` cookie) into a new access token
and a rotated refresh token. The embedded ``ver`` claim must equal the
user's current token_version; any mismatch means the session was revoked.

Rotation keeps the version unchanged, so an older refresh token issued
at the same version still works until it expires. Only a version bump
revokes.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from remaster_auth.core.errors import UnauthorizedError
from remaster_auth.core.tokens import ExpiredOrInvalidTokenError, TokenCodec, TokenPair
from remaster_auth.models.user import User
from remaster_auth.repositories.user_repository import UserRepository

logger = structlog.get_logger()

REFRESH_FAILED_MESSAGE = "Failed to Refresh Token"


@dataclass(frozen=True)
class RefreshedSession:
    """A successful refresh: the user and the newly issued pair."""

    user: User
    pair: TokenPair


def _reject(reason: str) -> UnauthorizedError:
    # Reason goes to the log only; clients always see the same message
    logger.debug("Refresh rejected", reason=reason)
    return UnauthorizedError(REFRESH_FAILED_MESSAGE)


async def refresh_session(
    db: AsyncSession,
    codec: TokenCodec,
    refresh_token: str | None,
) -> RefreshedSession:
    """Validate a refresh token and issue a new pair.

    Args:
        db: Async database session.
        codec: Token codec holding the signing secrets.
        refresh_token: Raw cookie value, or None if the cookie was absent.

    Returns:
        RefreshedSession with the user and the rotated pair.

    Raises:
        UnauthorizedError: Cookie absent, token invalid or expired, user
            gone, or version mismatch.
    """
    if not refresh_token:
        raise _reject("missing_cookie")

    try:
        claims = codec.verify_refresh(refresh_token)
    except ExpiredOrInvalidTokenError as exc:
        raise _reject("invalid_token") from exc

    user = await UserRepository.get_by_id(db, claims.user_id)
    if user is None:
        raise _reject("unknown_user")

    if claims.token_version != user.token_version:
        raise _reject("version_mismatch")

    return RefreshedSession(user=user, pair=codec.issue_pair(user))
