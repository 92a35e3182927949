"""Repository for User CRUD operations.

Provides database access for the users table, including the atomic
token_version increment used for revocation.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from remaster_auth.models.user import User

# Fields that may be updated via UserRepository.update().
# Security: Never add 'id', 'token_version', 'created_at', or 'updated_at'.
# - id: primary key, immutable
# - token_version: only ever incremented, via increment_token_version()
# - created_at/updated_at: server-managed timestamps
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "email",
        "username",
        "password_hash",
        "verified",
    }
)


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: int) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: Integer primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.strip().lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_username(db: AsyncSession, username: str) -> User | None:
        """Fetch a user by exact username."""
        stmt = select(User).where(User.username == username)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(db: AsyncSession) -> list[User]:
        """Return all users ordered by id."""
        result = await db.execute(select(User).order_by(User.id))
        return list(result.scalars().all())

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        username: str,
        password_hash: str,
    ) -> User:
        """Create a new user.

        Email is normalized to lowercase before storage. token_version
        starts at 0 and verified at False.

        Args:
            db: Async database session.
            email: User email address.
            username: Unique handle.
            password_hash: bcrypt hash.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email or username already exists.
        """
        user = User(
            email=email.strip().lower(),
            username=username,
            password_hash=password_hash,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: int,
        **kwargs: str | bool,
    ) -> User | None:
        """Update user fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            user_id: Id of the user to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
            sqlalchemy.exc.IntegrityError: If a unique field collides.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        if "email" in kwargs:
            kwargs["email"] = str(kwargs["email"]).strip().lower()

        user = await db.get(User, user_id)
        if user is None:
            return None

        for field, value in kwargs.items():
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def increment_token_version(db: AsyncSession, user_id: int) -> int | None:
        """Atomically add one to a user's token_version.

        Runs a single ``UPDATE ... SET token_version = token_version + 1
        RETURNING token_version``. Concurrent bumps each land; there is no
        read-modify-write window in which one could be lost.

        Args:
            db: Async database session.
            user_id: Id of the user.

        Returns:
            New token_version, or None if the user does not exist.
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(token_version=User.token_version + 1)
            .returning(User.token_version)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        new_version: int | None = result.scalar_one_or_none()
        return new_version
