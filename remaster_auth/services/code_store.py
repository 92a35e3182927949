"""Expiring one-time code store.

Backs email verification and password recovery. Each entry lives under
``{purpose}:{identity}`` for a fixed TTL and is deleted the moment a
presented code matches, so a code authorizes at most one operation.

Two cache backends share the ExpiringCache protocol:
- RedisExpiringCache: redis.asyncio, used in every shared deployment
- InMemoryExpiringCache: single-process dict, for local mode and tests

Consumption reads, compares, then deletes; only the request whose delete
actually removed the entry succeeds, so concurrent submissions of the
same code authorize one operation.

Issuance deletes then sets. The two calls are not transactional: two
concurrent issuances for the same key can only leave one short-lived
entry behind, and whoever holds that code already controls the inbox.
"""

import hmac
import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from remaster_auth.core.codes import generate_code
from remaster_auth.core.config import settings
from remaster_auth.core.errors import InfrastructureError

logger = structlog.get_logger()

VERIFY_EMAIL = "verify-email"
FORGOT_PASSWORD = "forgot-password"

_REDIS_SOCKET_TIMEOUT = 5.0


class CodeExpiredError(Exception):
    """No live entry for the key (never issued, expired, or already used)."""


class CodeInvalidError(Exception):
    """An entry exists but the presented code does not match it."""


# =============================================================================
# Cache backends
# =============================================================================


class ExpiringCache(Protocol):
    """Minimal key-value cache with per-key expiry."""

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def get(self, key: str) -> str | None: ...

    async def exists(self, key: str) -> bool: ...

    async def delete(self, key: str) -> bool:
        """Remove ``key``; True only for the call that actually removed it."""
        ...

    async def close(self) -> None: ...


def _unavailable(operation: str, exc: Exception) -> InfrastructureError:
    logger.error(
        "Code cache unavailable", operation=operation, error=type(exc).__name__
    )
    return InfrastructureError()


class RedisExpiringCache:
    """ExpiringCache over redis.asyncio.

    Any RedisError (connection refused, timeout, ...) is re-raised as
    InfrastructureError so the request fails with 503.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisExpiringCache":
        client = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=_REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=_REDIS_SOCKET_TIMEOUT,
        )
        return cls(client)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise _unavailable("set", exc) from exc

    async def get(self, key: str) -> str | None:
        try:
            value = await self._client.get(key)
        except RedisError as exc:
            raise _unavailable("read", exc) from exc
        if isinstance(value, bytes):
            return value.decode()
        return value

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._client.exists(key))
        except RedisError as exc:
            raise _unavailable("read", exc) from exc

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._client.delete(key))
        except RedisError as exc:
            raise _unavailable("delete", exc) from exc

    async def close(self) -> None:
        await self._client.aclose()


class InMemoryExpiringCache:
    """ExpiringCache held in a process-local dict.

    Safe under the asyncio event loop (no awaits between read and write)
    but not across threads or worker processes. Expiry uses the monotonic
    clock so wall-clock adjustments cannot extend a code's life.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[str, float]] = {}
        self._clock = clock

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def close(self) -> None:
        self._entries.clear()

    def clear(self) -> None:
        """Drop every entry (for testing)."""
        self._entries.clear()


# =============================================================================
# One-time code store
# =============================================================================


def _key(purpose: str, identity: str | int) -> str:
    return f"{purpose}:{identity}"


def _codes_match(stored: str, presented: str) -> bool:
    return hmac.compare_digest(stored.encode(), presented.encode())


class OneTimeCodeStore:
    """Issues and consumes single-use codes on top of an ExpiringCache.

    Attributes:
        ttl_seconds: Lifetime of every issued code.
    """

    def __init__(
        self,
        cache: ExpiringCache,
        ttl_seconds: int,
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._cache = cache
        self.ttl_seconds = ttl_seconds
        self._code_factory = code_factory

    @property
    def cache(self) -> ExpiringCache:
        return self._cache

    async def issue(self, purpose: str, identity: str | int) -> str:
        """Issue a fresh code for ``purpose``/``identity``.

        Any code previously issued for the same key stops working.

        Returns:
            The new code, to be delivered out-of-band.
        """
        key = _key(purpose, identity)
        await self._cache.delete(key)
        code = self._code_factory()
        await self._cache.set(key, code, self.ttl_seconds)
        logger.debug("One-time code issued", purpose=purpose)
        return code

    async def verify_and_consume(
        self, purpose: str, identity: str | int, presented_code: str
    ) -> None:
        """Check a presented code and delete the entry on match.

        A mismatch leaves the entry in place so the user can retry until
        the TTL runs out.

        Raises:
            CodeExpiredError: No live entry for the key.
            CodeInvalidError: Entry exists but the code differs.
        """
        key = _key(purpose, identity)
        stored = await self._cache.get(key)
        if stored is None:
            raise CodeExpiredError()
        if not _codes_match(stored, presented_code):
            raise CodeInvalidError()
        if not await self._cache.delete(key):
            # A concurrent request consumed it between the read and the delete
            raise CodeExpiredError()

    async def issue_password_reset(self, email: str, user_id: int) -> str:
        """Issue a reset code keyed by lowercase email.

        The entry value is ``"{user_id}:{code}"`` so the consumer learns
        which account the code belongs to without another lookup.
        """
        key = _key(FORGOT_PASSWORD, email.strip().lower())
        await self._cache.delete(key)
        code = self._code_factory()
        await self._cache.set(key, f"{user_id}:{code}", self.ttl_seconds)
        logger.debug("One-time code issued", purpose=FORGOT_PASSWORD)
        return code

    async def consume_password_reset(self, email: str, presented_code: str) -> int:
        """Consume a reset code and return the user id it was issued for.

        A stored value that does not split into ``user_id:code`` is treated
        as expired.

        Raises:
            CodeExpiredError: No live (or well-formed) entry for the email.
            CodeInvalidError: Entry exists but the code differs.
        """
        key = _key(FORGOT_PASSWORD, email.strip().lower())
        stored = await self._cache.get(key)
        if stored is None:
            raise CodeExpiredError()

        user_part, sep, code = stored.partition(":")
        if not sep or not code:
            logger.warning("Malformed password reset entry")
            raise CodeExpiredError()
        try:
            user_id = int(user_part)
        except ValueError as exc:
            logger.warning("Malformed password reset entry")
            raise CodeExpiredError() from exc

        if not _codes_match(code, presented_code):
            raise CodeInvalidError()
        if not await self._cache.delete(key):
            raise CodeExpiredError()
        return user_id


# =============================================================================
# Singleton
# =============================================================================

_code_store: OneTimeCodeStore | None = None


def _build_cache() -> ExpiringCache:
    if settings.code_store_backend == "memory":
        return InMemoryExpiringCache()
    return RedisExpiringCache.from_url(settings.redis_url)


def get_code_store() -> OneTimeCodeStore:
    """Get the singleton code store, building its cache backend on first use.

    Returns:
        The OneTimeCodeStore singleton.
    """
    global _code_store
    if _code_store is None:
        _code_store = OneTimeCodeStore(
            _build_cache(), ttl_seconds=settings.one_time_code_ttl_seconds
        )
    return _code_store


def reset_code_store() -> None:
    """Forget the singleton without closing it (for testing)."""
    global _code_store
    _code_store = None


async def close_code_store() -> None:
    """Close the singleton's cache connection, if one was opened."""
    global _code_store
    if _code_store is not None:
        await _code_store.cache.close()
    _code_store = None
