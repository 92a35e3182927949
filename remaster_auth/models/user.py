"""User model - identity record referenced by the token lifecycle."""

from sqlalchemy import Boolean, CheckConstraint, Integer, String, false, text
from sqlalchemy.orm import Mapped, mapped_column

from remaster_auth.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """User account for authentication.

    Attributes:
        id: Integer primary key.
        email: Unique email address, stored lowercase.
        username: Unique display handle.
        password_hash: bcrypt hash.
        token_version: Revocation counter. Refresh tokens embed the value
            current at issue time; incrementing it invalidates all of them.
            Never decreases.
        verified: True once the email verification code was confirmed.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("token_version >= 0", name="token_version"),)

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    username: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    token_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
        default=0,
    )
    verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=false(),
        default=False,
    )
