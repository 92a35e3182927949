"""Server-side revocation via the per-user token_version counter.

Refresh tokens embed the counter value current at issue time. Bumping
the counter invalidates every refresh token issued before the bump.
Access tokens are untouched and stay valid until their own expiry.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from remaster_auth.repositories.user_repository import UserRepository

logger = structlog.get_logger()


async def bump_token_version(db: AsyncSession, user_id: int) -> int | None:
    """Revoke all outstanding refresh tokens for a user.

    The increment is a single atomic UPDATE, so concurrent bumps never
    lose an increment. The caller commits.

    Args:
        db: Async database session.
        user_id: Id of the user whose sessions to revoke.

    Returns:
        The new token_version, or None if the user no longer exists.
    """
    new_version = await UserRepository.increment_token_version(db, user_id)
    if new_version is None:
        logger.info("Revocation skipped for missing user", user_id=user_id)
    else:
        logger.info("Sessions revoked", user_id=user_id, version=new_version)
    return new_version
