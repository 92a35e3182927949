"""Credential and recovery flows.

Composes the password hasher, token codec, one-time code store and
UserRepository into the account operations exposed by the auth and users
routers.

User-correctable failures raise FieldValidationError(field, message);
the routers turn those into ``{"errors": [...]}`` payloads. Every flow
validates first and mutates last, committing once at the end, so a
rejected request never leaves a partial update behind.

Emails go through an EmailDispatcher, which schedules delivery after the
response is sent. A delivery failure never fails the flow.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from remaster_auth.core.auth import burn_dummy_check, hash_password, verify_password
from remaster_auth.core.config import settings
from remaster_auth.core.email import EmailDispatcher, code_email_body, subject
from remaster_auth.core.errors import FieldValidationError, InfrastructureError
from remaster_auth.core.tokens import TokenCodec, TokenPair
from remaster_auth.models.user import User
from remaster_auth.repositories.user_repository import UserRepository
from remaster_auth.services.code_store import (
    VERIFY_EMAIL,
    CodeExpiredError,
    CodeInvalidError,
    OneTimeCodeStore,
)
from remaster_auth.services.revocation import bump_token_version

logger = structlog.get_logger()

# =============================================================================
# Field error messages (clients match on these strings)
# =============================================================================

USERNAME_TAKEN = "Username Taken"
EMAIL_IN_USE = "Email in Use"
CREATE_FAILED = "Server Error: Unable to Create User"
INVALID_LOGIN = "Invalid Email or Password"
INCORRECT_PASSWORD = "Incorrect Password"
TOKEN_EXPIRED = "Token Expired"
TOKEN_INVALID = "Token Invalid"

_VERIFY_EMAIL_SUBJECT = "VERIFY EMAIL"
_FORGOT_PASSWORD_SUBJECT = "FORGOT PASSWORD"


@dataclass(frozen=True)
class AuthOutcome:
    """A signed-in user and the pair issued for them."""

    user: User
    pair: TokenPair


@dataclass(frozen=True)
class PasswordChange:
    """Result of change_password.

    Attributes:
        user: Updated user.
        pair: Fresh pair when the change revoked older sessions, else None.
    """

    user: User
    pair: TokenPair | None = None


def _unique_violation_field(exc: IntegrityError) -> str | None:
    """Name the unique column an IntegrityError collided on, if recognizable.

    Only the first line of the driver message is read. Postgres names the
    constraint there and puts the colliding value on the DETAIL line;
    SQLite reports ``table.column``.
    """
    lines = str(exc.orig).lower().splitlines()
    headline = lines[0] if lines else ""
    for field in ("username", "email"):
        if f"users_{field}_key" in headline or f"users.{field}" in headline:
            return field
    return None


def _code_error(exc: CodeExpiredError | CodeInvalidError) -> FieldValidationError:
    message = TOKEN_EXPIRED if isinstance(exc, CodeExpiredError) else TOKEN_INVALID
    return FieldValidationError("token", message)


async def _send_verification_code(
    codes: OneTimeCodeStore, dispatch: EmailDispatcher, user: User
) -> None:
    code = await codes.issue(VERIFY_EMAIL, user.id)
    dispatch(
        to_email=user.email,
        subject=subject(_VERIFY_EMAIL_SUBJECT),
        body=code_email_body(code),
    )


# =============================================================================
# Sign-up / sign-in
# =============================================================================


async def register(
    db: AsyncSession,
    codec: TokenCodec,
    codes: OneTimeCodeStore,
    dispatch: EmailDispatcher,
    *,
    email: str,
    username: str,
    password: str,
) -> AuthOutcome:
    """Create an account, send its verification code and sign it in.

    Raises:
        FieldValidationError: username taken, email in use, or the insert
            failed for another integrity reason.
    """
    password_hash = hash_password(password)
    try:
        user = await UserRepository.create(
            db, email=email, username=username, password_hash=password_hash
        )
    except IntegrityError as exc:
        await db.rollback()
        field = _unique_violation_field(exc)
        if field == "username":
            raise FieldValidationError("username", USERNAME_TAKEN) from exc
        if field == "email":
            raise FieldValidationError("email", EMAIL_IN_USE) from exc
        logger.error("User insert failed", error=type(exc).__name__)
        raise FieldValidationError("username", CREATE_FAILED) from exc

    # The flushed row already has its id; commit only once the code is stored
    try:
        await _send_verification_code(codes, dispatch, user)
    except InfrastructureError:
        await db.rollback()
        raise
    await db.commit()

    logger.info("User registered", user_id=user.id)
    return AuthOutcome(user=user, pair=codec.issue_pair(user))


async def login(
    db: AsyncSession,
    codec: TokenCodec,
    *,
    email: str,
    password: str,
) -> AuthOutcome:
    """Check credentials and issue a pair.

    Unknown email and wrong password produce the same field error, and a
    dummy bcrypt comparison keeps their timing alike.

    Raises:
        FieldValidationError: email / "Invalid Email or Password".
    """
    user = await UserRepository.get_by_email(db, email)
    if user is None:
        burn_dummy_check(password)
        raise FieldValidationError("email", INVALID_LOGIN)
    if not verify_password(password, user.password_hash):
        raise FieldValidationError("email", INVALID_LOGIN)

    return AuthOutcome(user=user, pair=codec.issue_pair(user))


# =============================================================================
# Passwords
# =============================================================================


async def change_password(
    db: AsyncSession,
    codec: TokenCodec,
    user: User,
    *,
    old_password: str,
    new_password: str,
) -> PasswordChange:
    """Replace the signed-in user's password.

    Outstanding refresh tokens survive unless
    REVOKE_SESSIONS_ON_PASSWORD_CHANGE is set, in which case the version is
    bumped and the calling session gets a fresh pair.

    Raises:
        FieldValidationError: old_password / "Incorrect Password".
    """
    if not verify_password(old_password, user.password_hash):
        raise FieldValidationError("old_password", INCORRECT_PASSWORD)

    await UserRepository.update(db, user.id, password_hash=hash_password(new_password))
    revoke = settings.revoke_sessions_on_password_change
    if revoke:
        await bump_token_version(db, user.id)
    await db.commit()
    await db.refresh(user)

    pair = codec.issue_pair(user) if revoke else None
    return PasswordChange(user=user, pair=pair)


async def forgot_password(
    db: AsyncSession,
    codes: OneTimeCodeStore,
    dispatch: EmailDispatcher,
    *,
    email: str,
) -> bool:
    """Email a password reset code if the address belongs to an account.

    Always returns True so the response does not reveal whether the
    account exists.
    """
    user = await UserRepository.get_by_email(db, email)
    if user is None:
        return True

    code = await codes.issue_password_reset(user.email, user.id)
    dispatch(
        to_email=user.email,
        subject=subject(_FORGOT_PASSWORD_SUBJECT),
        body=code_email_body(code),
    )
    return True


async def change_forgot_password(
    db: AsyncSession,
    codec: TokenCodec,
    codes: OneTimeCodeStore,
    *,
    email: str,
    token: str,
    password: str,
) -> AuthOutcome:
    """Reset a forgotten password with an emailed code.

    On success the password changes, every earlier refresh token is
    revoked, and the caller is signed in with a fresh pair.

    Raises:
        FieldValidationError: token / "Token Expired" or "Token Invalid".
    """
    try:
        user_id = await codes.consume_password_reset(email, token)
    except (CodeExpiredError, CodeInvalidError) as exc:
        raise _code_error(exc) from exc

    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        # Account deleted after the code went out
        raise FieldValidationError("token", TOKEN_EXPIRED)

    await UserRepository.update(db, user.id, password_hash=hash_password(password))
    await bump_token_version(db, user.id)
    await db.commit()
    await db.refresh(user)

    logger.info("Password reset", user_id=user.id)
    return AuthOutcome(user=user, pair=codec.issue_pair(user))


# =============================================================================
# Email verification
# =============================================================================


async def verify_email(
    db: AsyncSession,
    codes: OneTimeCodeStore,
    user: User,
    *,
    token: str,
) -> User:
    """Mark the user verified if the code matches.

    Raises:
        FieldValidationError: token / "Token Expired" or "Token Invalid".
    """
    try:
        await codes.verify_and_consume(VERIFY_EMAIL, user.id, token)
    except (CodeExpiredError, CodeInvalidError) as exc:
        raise _code_error(exc) from exc

    updated = await UserRepository.update(db, user.id, verified=True)
    await db.commit()
    return updated or user


async def send_verification_email(
    codes: OneTimeCodeStore,
    dispatch: EmailDispatcher,
    user: User,
) -> bool:
    """Issue a new verification code, replacing any earlier one."""
    await _send_verification_code(codes, dispatch, user)
    return True


# =============================================================================
# Profile
# =============================================================================


async def change_username(db: AsyncSession, user: User, *, username: str) -> User:
    """Rename the signed-in user.

    Raises:
        FieldValidationError: username / "Username Taken".
    """
    existing = await UserRepository.get_by_username(db, username)
    if existing is not None and existing.id != user.id:
        raise FieldValidationError("username", USERNAME_TAKEN)

    try:
        updated = await UserRepository.update(db, user.id, username=username)
    except IntegrityError as exc:
        await db.rollback()
        raise FieldValidationError("username", USERNAME_TAKEN) from exc
    await db.commit()
    return updated or user


async def change_email(db: AsyncSession, user: User, *, email: str) -> User:
    """Change the signed-in user's email address.

    Raises:
        FieldValidationError: email / "Email in Use".
    """
    existing = await UserRepository.get_by_email(db, email)
    if existing is not None and existing.id != user.id:
        raise FieldValidationError("email", EMAIL_IN_USE)

    try:
        updated = await UserRepository.update(db, user.id, email=email)
    except IntegrityError as exc:
        await db.rollback()
        raise FieldValidationError("email", EMAIL_IN_USE) from exc
    await db.commit()
    return updated or user


async def list_users(db: AsyncSession) -> list[User]:
    return await UserRepository.list_all(db)


# =============================================================================
# Sessions
# =============================================================================


async def invalidate_sessions(
    db: AsyncSession, codec: TokenCodec, user: User
) -> AuthOutcome:
    """Log out everywhere.

    Bumps the version so every earlier refresh token fails, then issues a
    pair at the new version so the calling session continues.
    """
    await bump_token_version(db, user.id)
    await db.commit()
    await db.refresh(user)
    return AuthOutcome(user=user, pair=codec.issue_pair(user))
