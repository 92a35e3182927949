"""SQLAlchemy ORM models for remaster-auth.

All models are exported from this module for convenient imports:
    from remaster_auth.models import User

Models:
- base.py: Base, TimestampMixin
- user.py: User (identity record + revocation counter)
"""

from remaster_auth.models.base import Base, TimestampMixin
from remaster_auth.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
]
