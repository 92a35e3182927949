"""Authentication endpoints for password-based auth.

Sign-up, sign-in, password change and recovery, email verification, and
session revocation. Business logic lives in services.credentials; these
handlers translate its results into payloads and cookies.

Payload convention:
- user-correctable failures (taken username, wrong password, bad code)
  come back as HTTP 200 with ``{"errors": [{"field", "message"}]}``
- auth failures (missing or bad bearer token) are 401 envelopes
- endpoints that sign the user in also set the ``qid`` refresh cookie

Security considerations:
- login: constant-time comparison via DUMMY_HASH prevents user enumeration
- forgot-password: always returns true, whether or not the account exists
- change-forgot-password: revokes every earlier refresh token
"""

from fastapi import APIRouter, Response

from remaster_auth.api.deps import (
    Codec,
    Codes,
    CurrentUser,
    DbSession,
    Mailer,
    OptionalUser,
)
from remaster_auth.core.auth import clear_refresh_cookie, set_refresh_cookie
from remaster_auth.core.errors import FieldValidationError
from remaster_auth.core.responses import DataResponse
from remaster_auth.schemas.auth import (
    AuthPayload,
    AuthTokens,
    ChangeForgotPasswordRequest,
    ChangePasswordRequest,
    FieldError,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    UserOut,
    UserPayload,
    VerifyEmailRequest,
)
from remaster_auth.services import credentials
from remaster_auth.services.credentials import AuthOutcome

router = APIRouter()


def _signed_in(response: Response, outcome: AuthOutcome) -> AuthPayload:
    set_refresh_cookie(response, outcome.pair.refresh)
    return AuthPayload(
        user=UserOut.model_validate(outcome.user),
        auth=AuthTokens.from_issued(outcome.pair.access),
    )


def _auth_errors(exc: FieldValidationError) -> AuthPayload:
    return AuthPayload(errors=[FieldError.from_exception(exc)])


def _user_errors(exc: FieldValidationError) -> UserPayload:
    return UserPayload(errors=[FieldError.from_exception(exc)])


# ===================================================================
# POST /auth/register
# ===================================================================


@router.post("/register")
async def register(
    body: RegisterRequest,
    response: Response,
    db: DbSession,
    codec: Codec,
    codes: Codes,
    dispatch: Mailer,
) -> AuthPayload:
    """Create an account and sign it in.

    Sends a verification code to the new address.
    """
    try:
        outcome = await credentials.register(
            db,
            codec,
            codes,
            dispatch,
            email=body.email,
            username=body.username,
            password=body.password,
        )
    except FieldValidationError as exc:
        return _auth_errors(exc)
    return _signed_in(response, outcome)


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    db: DbSession,
    codec: Codec,
) -> AuthPayload:
    """Sign in with email + password."""
    try:
        outcome = await credentials.login(
            db, codec, email=body.email, password=body.password
        )
    except FieldValidationError as exc:
        return _auth_errors(exc)
    return _signed_in(response, outcome)


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(response: Response) -> DataResponse[bool]:
    """Clear the refresh cookie.

    Other devices keep their sessions; use invalidate-sessions to end
    those too.
    """
    clear_refresh_cookie(response)
    return DataResponse(data=True)


# ===================================================================
# POST /auth/change-password
# ===================================================================


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    response: Response,
    user: CurrentUser,
    db: DbSession,
    codec: Codec,
) -> UserPayload:
    """Change password for the signed-in user."""
    try:
        change = await credentials.change_password(
            db,
            codec,
            user,
            old_password=body.old_password,
            new_password=body.new_password,
        )
    except FieldValidationError as exc:
        return _user_errors(exc)

    if change.pair is not None:
        set_refresh_cookie(response, change.pair.refresh)
    return UserPayload(user=UserOut.model_validate(change.user))


# ===================================================================
# POST /auth/forgot-password
# ===================================================================


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    db: DbSession,
    codes: Codes,
    dispatch: Mailer,
) -> DataResponse[bool]:
    """Email a password reset code.

    Always returns true so callers cannot discover which emails are registered.
    """
    sent = await credentials.forgot_password(db, codes, dispatch, email=body.email)
    return DataResponse(data=sent)


# ===================================================================
# POST /auth/change-forgot-password
# ===================================================================


@router.post("/change-forgot-password")
async def change_forgot_password(
    body: ChangeForgotPasswordRequest,
    response: Response,
    db: DbSession,
    codec: Codec,
    codes: Codes,
) -> AuthPayload:
    """Set a new password using an emailed reset code, then sign in."""
    try:
        outcome = await credentials.change_forgot_password(
            db,
            codec,
            codes,
            email=body.email,
            token=body.token,
            password=body.password,
        )
    except FieldValidationError as exc:
        return _auth_errors(exc)
    return _signed_in(response, outcome)


# ===================================================================
# Email verification
# ===================================================================


@router.post("/verify-email")
async def verify_email(
    body: VerifyEmailRequest,
    user: CurrentUser,
    db: DbSession,
    codes: Codes,
) -> UserPayload:
    """Confirm the signed-in user's email with the emailed code."""
    try:
        verified = await credentials.verify_email(db, codes, user, token=body.token)
    except FieldValidationError as exc:
        return _user_errors(exc)
    return UserPayload(user=UserOut.model_validate(verified))


@router.post("/send-verify-email")
async def send_verify_email(
    user: CurrentUser,
    codes: Codes,
    dispatch: Mailer,
) -> DataResponse[bool]:
    """Send a new verification code, replacing any earlier one."""
    sent = await credentials.send_verification_email(codes, dispatch, user)
    return DataResponse(data=sent)


# ===================================================================
# Sessions
# ===================================================================


@router.post("/invalidate-sessions")
async def invalidate_sessions(
    response: Response,
    user: CurrentUser,
    db: DbSession,
    codec: Codec,
) -> AuthPayload:
    """Log out every device.

    Earlier refresh tokens stop working at once; earlier access tokens
    run out on their own. The calling session receives a new pair.
    """
    outcome = await credentials.invalidate_sessions(db, codec, user)
    return _signed_in(response, outcome)


@router.get("/me")
async def me(user: OptionalUser) -> DataResponse[UserOut | None]:
    """Return the signed-in user, or null when no token was sent."""
    return DataResponse(data=UserOut.model_validate(user) if user else None)
