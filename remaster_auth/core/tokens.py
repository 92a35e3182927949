"""Signed access and refresh tokens.

Two classes of HS256 JWT, each signed with its own secret:

- access: ``{sub, typ="access", iat, exp, aud, iss}``. Short-lived and
  stateless. Cannot be revoked before it expires, which bounds the damage
  of a leaked access token to ACCESS_TOKEN_TTL_MINUTES.
- refresh: ``{sub, typ="refresh", ver, iat, exp, aud, iss}``. Long-lived.
  ``ver`` is the user's token_version at issue time; the refresh endpoint
  compares it against the stored value, so bumping the counter revokes
  every refresh token issued before the bump.

The codec never touches the database. Verification is a pure function of
the token and the secret, safe to call from any number of requests.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import jwt

from remaster_auth.core.config import settings

_ALGORITHM = "HS256"
_AUDIENCE = "remaster"

_ACCESS = "access"
_REFRESH = "refresh"

_REQUIRED_CLAIMS = ["sub", "typ", "iat", "exp"]


class TokenSubject(Protocol):
    """Anything tokens can be issued for (the User model in practice)."""

    id: int
    token_version: int


class ExpiredOrInvalidTokenError(Exception):
    """Token failed signature, expiry, audience, issuer or type checks."""


@dataclass(frozen=True)
class IssuedToken:
    """Encoded token plus its expiry metadata.

    Attributes:
        token: Encoded JWT string.
        expires_at: Absolute expiry (UTC).
        expires_in: Lifetime in seconds, as reported to clients.
    """

    token: str
    expires_at: datetime
    expires_in: int


@dataclass(frozen=True)
class TokenPair:
    """Access token for the response body, refresh token for the cookie."""

    access: IssuedToken
    refresh: IssuedToken


@dataclass(frozen=True)
class AccessClaims:
    user_id: int
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class RefreshClaims:
    user_id: int
    token_version: int
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenCodec:
    """Issues and verifies access/refresh tokens.

    Attributes:
        access_secret: HMAC secret for access tokens.
        refresh_secret: HMAC secret for refresh tokens. Must differ from
            access_secret.
        access_ttl: Access token lifetime.
        refresh_ttl: Refresh token lifetime.
        issuer: Value of the ``iss`` claim.
    """

    access_secret: str
    refresh_secret: str
    access_ttl: timedelta
    refresh_ttl: timedelta
    issuer: str = "remaster"

    def __post_init__(self) -> None:
        if not self.access_secret or not self.refresh_secret:
            msg = "Missing ACCESS_TOKEN_SECRET or REFRESH_TOKEN_SECRET"
            raise RuntimeError(msg)
        if self.access_secret == self.refresh_secret:
            msg = "Access and refresh tokens must be signed with different secrets"
            raise RuntimeError(msg)

    @classmethod
    def from_settings(cls) -> "TokenCodec":
        """Build a codec from application settings.

        Raises:
            RuntimeError: If either secret is missing or both are equal.
        """
        return cls(
            access_secret=settings.access_token_secret.get_secret_value(),
            refresh_secret=settings.refresh_token_secret.get_secret_value(),
            access_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
            issuer=settings.auth_issuer,
        )

    # -----------------------------------------------------------------
    # Issue
    # -----------------------------------------------------------------

    def issue_access(
        self, user: TokenSubject, *, now: datetime | None = None
    ) -> IssuedToken:
        """Issue a short-lived access token for ``user``."""
        return self._encode(
            {"sub": str(user.id), "typ": _ACCESS},
            secret=self.access_secret,
            ttl=self.access_ttl,
            now=now,
        )

    def issue_refresh(
        self, user: TokenSubject, *, now: datetime | None = None
    ) -> IssuedToken:
        """Issue a refresh token pinned to the user's current token_version."""
        return self._encode(
            {"sub": str(user.id), "typ": _REFRESH, "ver": int(user.token_version)},
            secret=self.refresh_secret,
            ttl=self.refresh_ttl,
            now=now,
        )

    def issue_pair(self, user: TokenSubject) -> TokenPair:
        """Issue a fresh access + refresh token pair."""
        return TokenPair(access=self.issue_access(user), refresh=self.issue_refresh(user))

    # -----------------------------------------------------------------
    # Verify
    # -----------------------------------------------------------------

    def verify_access(self, token: str) -> AccessClaims:
        """Verify an access token.

        Raises:
            ExpiredOrInvalidTokenError: On any signature or claim failure.
        """
        payload = self._decode(token, secret=self.access_secret, token_type=_ACCESS)
        return AccessClaims(
            user_id=_subject(payload),
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )

    def verify_refresh(self, token: str) -> RefreshClaims:
        """Verify a refresh token's signature and expiry.

        Does NOT compare the embedded version with the stored one; the
        caller owns that check because the codec has no store access.

        Raises:
            ExpiredOrInvalidTokenError: On any signature or claim failure.
        """
        payload = self._decode(token, secret=self.refresh_secret, token_type=_REFRESH)
        version = payload.get("ver")
        if not isinstance(version, int) or isinstance(version, bool) or version < 0:
            raise ExpiredOrInvalidTokenError("Invalid token version claim")
        return RefreshClaims(
            user_id=_subject(payload),
            token_version=version,
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _encode(
        self,
        claims: dict[str, Any],
        *,
        secret: str,
        ttl: timedelta,
        now: datetime | None,
    ) -> IssuedToken:
        # Truncate microseconds: iat/exp are encoded as whole seconds
        issued_at = (now or datetime.now(UTC)).replace(microsecond=0)
        expires_at = issued_at + ttl
        payload = {
            **claims,
            "aud": _AUDIENCE,
            "iss": self.issuer,
            "iat": issued_at,
            "exp": expires_at,
        }
        return IssuedToken(
            token=jwt.encode(payload, secret, algorithm=_ALGORITHM),
            expires_at=expires_at,
            expires_in=int(ttl.total_seconds()),
        )

    def _decode(self, token: str, *, secret: str, token_type: str) -> dict[str, Any]:
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                secret,
                algorithms=[_ALGORITHM],
                audience=_AUDIENCE,
                issuer=self.issuer,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.InvalidTokenError as exc:
            raise ExpiredOrInvalidTokenError(str(exc)) from exc

        if payload["typ"] != token_type:
            raise ExpiredOrInvalidTokenError("Wrong token type")
        return payload


def _subject(payload: dict[str, Any]) -> int:
    """Extract the integer user id from the ``sub`` claim."""
    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise ExpiredOrInvalidTokenError("Invalid subject claim") from exc
