"""Revocation list for identity tokens.

Signed tokens stay valid until they expire.  Signing out must make the
token unusable right away, so we keep the JTIs of revoked tokens and
check every verification against them.  Only revoked tokens are tracked,
and each entry lives exactly as long as the token it blocks would have.

Redis backs the list when REDIS_URL is configured, so every API instance
sees the same revocations; otherwise a per-process dict is used.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from orderdesk.core.metrics import TOKEN_REVOCATION_CHECKS
from orderdesk.db.redis import redis_pool


@runtime_checkable
class TokenRevocationList(Protocol):
    async def revoke(self, jti: str, expires_at: float) -> None:
        """Block a token's JTI until it would have expired."""
        ...

    async def is_revoked(self, jti: str) -> bool:
        """Check if a token has been revoked."""
        ...


class InMemoryTokenRevocationList:
    """Per-process revocation list for tests and local dev."""

    def __init__(self) -> None:
        # jti -> expiry timestamp (Unix seconds)
        self._revoked: dict[str, float] = {}

    async def revoke(self, jti: str, expires_at: float) -> None:
        self._revoked[jti] = expires_at

    async def is_revoked(self, jti: str) -> bool:
        exp = self._revoked.get(jti)
        if exp is None:
            TOKEN_REVOCATION_CHECKS.labels(result="valid").inc()
            return False
        # Mimic Redis TTL behavior: drop entries whose token has expired
        if exp < time.time():
            del self._revoked[jti]
            TOKEN_REVOCATION_CHECKS.labels(result="valid").inc()
            return False
        TOKEN_REVOCATION_CHECKS.labels(result="revoked").inc()
        return True


class RedisTokenRevocationList:
    """Redis-backed revocation list shared across API instances."""

    _PREFIX = "revoked:jti:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def revoke(self, jti: str, expires_at: float) -> None:
        ttl_seconds = int(expires_at - time.time())
        if ttl_seconds <= 0:
            return  # Token already expired, nothing to block

        # SETEX writes the value and the TTL in one atomic command.
        await self._redis.setex(f"{self._PREFIX}{jti}", ttl_seconds, "1")

    async def is_revoked(self, jti: str) -> bool:
        revoked = bool(await self._redis.exists(f"{self._PREFIX}{jti}"))
        TOKEN_REVOCATION_CHECKS.labels(result="revoked" if revoked else "valid").inc()
        return revoked


# ---------------------------------------------------------------------------
# Module-level singleton, conditional on Redis availability
# ---------------------------------------------------------------------------

if redis_pool is not None:
    token_revocations: TokenRevocationList = RedisTokenRevocationList(redis_pool)
else:
    token_revocations = InMemoryTokenRevocationList()
