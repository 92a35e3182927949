"""Password hashing and refresh-cookie helpers.

Pipeline:
- hash_password / verify_password: bcrypt, treated as an opaque capability
- DUMMY_HASH: Timing-safe constant for user enumeration defense
- set_refresh_cookie / clear_refresh_cookie / read_refresh_cookie: the
  cookie side of token delivery. The header side (access tokens) lives in
  the API dependencies; the two transports stay separate on purpose.
"""

import logging

import bcrypt
from fastapi import Request, Response

from remaster_auth.core.config import settings
from remaster_auth.core.tokens import IssuedToken

logger = logging.getLogger(__name__)

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Security: prevents user enumeration via response time differences.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"

# bcrypt only looks at the first 72 bytes of input
_BCRYPT_MAX_BYTES = 72


def _encode_password(password: str) -> bytes:
    return password.encode()[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt at the configured cost factor.

    Args:
        password: Plain-text password.

    Returns:
        bcrypt hash as a UTF-8 string.
    """
    return bcrypt.hashpw(
        _encode_password(password), bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    ).decode()


def verify_password(password: str, password_hash: str | bytes) -> bool:
    """Check a plain-text password against a stored bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    stored = password_hash.encode() if isinstance(password_hash, str) else password_hash
    try:
        return bcrypt.checkpw(_encode_password(password), stored)
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def burn_dummy_check(password: str) -> None:
    """Run a throwaway bcrypt comparison.

    Called when the user does not exist so that the response takes as long
    as a real password check.
    """
    bcrypt.checkpw(_encode_password(password), DUMMY_HASH)


def set_refresh_cookie(response: Response, refresh: IssuedToken) -> None:
    """Set the httpOnly refresh-token cookie on a response.

    Security: httpOnly prevents XSS cookie theft. The path is restricted
    to the refresh endpoint so the browser never attaches the refresh
    token to any other request.

    Args:
        response: FastAPI response object.
        refresh: Issued refresh token.
    """
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh.token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path=settings.refresh_cookie_path,
        max_age=refresh.expires_in,
        domain=settings.cookie_domain or None,
    )


def clear_refresh_cookie(response: Response) -> None:
    """Delete the refresh-token cookie.

    Cookie attributes must match set_refresh_cookie() for the browser to
    delete it.
    """
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path=settings.refresh_cookie_path,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        domain=settings.cookie_domain or None,
    )


def read_refresh_cookie(request: Request) -> str | None:
    """Return the raw refresh token from the request cookie, if any."""
    return request.cookies.get(settings.refresh_cookie_name) or None
