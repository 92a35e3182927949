"""Async SQLAlchemy engine and request-scoped sessions.

The engine is created at import time from settings.database_url (asyncpg).
Route handlers receive a session through get_db(); credential services
commit explicitly after each write so a token is never issued for a row
that failed to persist.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from remaster_auth.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.environment == "development" and settings.log_level == "DEBUG",
    pool_pre_ping=True,
)

# expire_on_commit=False: users are serialized after the service commits
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; roll back whatever is uncommitted if the handler fails."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Close pooled connections on shutdown."""
    await engine.dispose()
