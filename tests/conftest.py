"""Shared test fixtures.

Database tests run against in-memory SQLite (aiosqlite) with a StaticPool,
so every session in a test shares one connection and sees committed data.
One-time codes live in an InMemoryExpiringCache and outgoing emails are
captured in a list instead of being sent.
"""

from collections.abc import AsyncGenerator, Iterator
from datetime import timedelta
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from remaster_auth.core.auth import hash_password
from remaster_auth.core.config import settings
from remaster_auth.core.tokens import TokenCodec
from remaster_auth.models import Base, User
from remaster_auth.repositories.user_repository import UserRepository
from remaster_auth.services.code_store import InMemoryExpiringCache, OneTimeCodeStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Security: test-only secrets. Production reads real secrets from env.
TEST_ACCESS_SECRET = "test-access-secret-that-is-at-least-32-chars"  # nosec B105  # gitleaks:allow
TEST_REFRESH_SECRET = "test-refresh-secret-that-is-at-least-32-chars"  # nosec B105  # gitleaks:allow

TEST_PASSWORD = "ValidP@ss1"  # nosec B105  # gitleaks:allow
TEST_EMAIL = "test@example.com"
TEST_USERNAME = "tester"

_BCRYPT_ROUNDS = 4  # Low cost factor for fast tests


def refresh_cookie_from(response: httpx.Response) -> str | None:
    """Return the refresh cookie value a response set, if any."""
    for header in response.headers.get_list("set-cookie"):
        name, _, rest = header.partition("=")
        if name.strip() == settings.refresh_cookie_name:
            return rest.split(";", 1)[0]
    return None


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def fast_bcrypt() -> Iterator[None]:
    original = settings.bcrypt_rounds
    settings.bcrypt_rounds = _BCRYPT_ROUNDS
    yield
    settings.bcrypt_rounds = original


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create an in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A committed user whose password is TEST_PASSWORD."""
    user = await UserRepository.create(
        db_session,
        email=TEST_EMAIL,
        username=TEST_USERNAME,
        password_hash=hash_password(TEST_PASSWORD),
    )
    await db_session.commit()
    return user


# =============================================================================
# Tokens, codes, email
# =============================================================================


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(
        access_secret=TEST_ACCESS_SECRET,
        refresh_secret=TEST_REFRESH_SECRET,
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
    )


@pytest.fixture
def code_store() -> OneTimeCodeStore:
    return OneTimeCodeStore(InMemoryExpiringCache(), ttl_seconds=3600)


@pytest.fixture
def sent_emails() -> list[dict[str, Any]]:
    """Every email the code under test dispatched, as keyword dicts."""
    return []


@pytest.fixture
def dispatch(sent_emails: list[dict[str, Any]]):
    def _dispatch(**kwargs: Any) -> None:
        sent_emails.append(kwargs)

    return _dispatch


# =============================================================================
# API client
# =============================================================================


@pytest_asyncio.fixture
async def client(
    db_engine, codec, code_store, dispatch
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test database, codec, code store and mailer."""
    from remaster_auth.api.deps import get_email_dispatcher, get_token_codec
    from remaster_auth.core.database import get_db
    from remaster_auth.main import app
    from remaster_auth.services.code_store import get_code_store

    test_session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_codec] = lambda: codec
    app.dependency_overrides[get_code_store] = lambda: code_store
    app.dependency_overrides[get_email_dispatcher] = lambda: dispatch

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://test") as ac:
        yield ac

    app.dependency_overrides.clear()
