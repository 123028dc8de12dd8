"""Onboarding session identity: opaque token → in-progress record id.

Replaces a server-side session variable with an explicit token the
client sends back on every step (header `X-Onboarding-Token` by
default). Tokens live in Redis with a TTL and are deleted when step 4
commits.

Keys:
  onboarding:session:{token} → record_id
"""

import logging
import secrets

import redis.asyncio as redis
from redis.exceptions import RedisError

from sellerboard.config import settings
from sellerboard.middleware.exceptions import PersistenceError

logger = logging.getLogger(__name__)

KEY_PREFIX = "onboarding:session:"


class SessionIdentityHolder:
    """Associate a client with exactly one in-progress record."""

    def __init__(self, client: redis.Redis, ttl_seconds: int | None = None):
        self.client = client
        self.ttl_seconds = ttl_seconds or settings.onboarding_session_ttl_seconds

    @staticmethod
    def _key(token: str) -> str:
        return f"{KEY_PREFIX}{token}"

    async def get(self, token: str | None) -> str | None:
        """Return the record id bound to `token`, or None."""
        if not token:
            return None
        try:
            return await self.client.get(self._key(token))
        except RedisError as e:
            logger.error("Failed to resolve onboarding token: %s", e)
            raise PersistenceError("Onboarding session store unavailable") from e

    async def set(self, record_id: str) -> str:
        """Mint a new token bound to `record_id` and return it."""
        token = secrets.token_urlsafe(32)
        try:
            await self.client.setex(self._key(token), self.ttl_seconds, record_id)
        except RedisError as e:
            logger.error("Failed to store onboarding token for %s: %s", record_id, e)
            raise PersistenceError("Onboarding session store unavailable") from e
        return token

    async def clear(self, token: str | None) -> None:
        """Sever the token's association (wizard finished)."""
        if not token:
            return
        try:
            await self.client.delete(self._key(token))
        except RedisError as e:
            logger.error("Failed to clear onboarding token: %s", e)
            raise PersistenceError("Onboarding session store unavailable") from e
