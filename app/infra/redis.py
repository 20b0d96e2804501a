"""
Redis Connection Management

Redis connection with retries and graceful degradation, plus the
idempotency store used to de-duplicate provider webhooks. When Redis is
unavailable the store falls back to a per-process in-memory map.
"""

import json
import logging
import time
from typing import Any, Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, TimeoutError, RedisError

from app.config import settings

# Logger
logger = logging.getLogger(__name__)

# App prefix for namespacing (allows multiple apps/versions on same Redis)
APP_PREFIX = "missedcall:v1:"


class RedisClient:
    """
    Manages Redis connection as a singleton.

    Features:
    - Connection pooling
    - Automatic retries
    - Timeouts
    - Graceful failure handling
    """

    _client: Optional[Redis] = None
    _connected: bool = False

    @classmethod
    async def get_client(cls) -> Optional[Redis]:
        """
        Get or create Redis client.

        Returns:
            Redis client or None if connection fails
        """
        if cls._client is not None and cls._connected:
            return cls._client

        try:
            # Retry configuration: 3 retries with exponential backoff
            retry = Retry(ExponentialBackoff(), retries=3)

            cls._client = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5.0,
                socket_timeout=5.0,
                retry_on_timeout=True,
                retry=retry,
            )

            # Test connection
            await cls._client.ping()
            cls._connected = True
            logger.info("Redis connection established successfully")
            return cls._client

        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            cls._connected = False
            cls._client = None
            return None

    @classmethod
    async def close(cls) -> None:
        """Close Redis connection."""
        if cls._client is not None:
            try:
                await cls._client.aclose()
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.error(f"Error closing Redis connection: {e}")
            finally:
                cls._client = None
                cls._connected = False

    @classmethod
    def is_connected(cls) -> bool:
        """Check if Redis is connected."""
        return cls._connected


async def get_redis() -> Optional[Redis]:
    """
    FastAPI dependency that provides Redis client.

    Returns None if Redis is unavailable.
    """
    return await RedisClient.get_client()


class IdempotencyStore:
    """
    Remembers which provider message ids were already handled.

    Keys (with namespace):
    - missedcall:v1:idempotency:{message_id} -> "pending" or the stored reply (JSON)

    A delivery first `claim`s its id (SET NX EX). The winner runs the
    engine and `remember`s the reply; duplicates `lookup` that reply
    instead of running the engine again.
    """

    IDEMPOTENCY_PREFIX = f"{APP_PREFIX}idempotency:"
    PENDING = "pending"

    def __init__(self, redis_client: Optional[Redis], ttl_seconds: Optional[int] = None):
        self.redis = redis_client
        self.ttl = ttl_seconds or settings.idempotency_ttl_seconds
        self._memory: dict[str, tuple[str, float]] = {}

    def _key(self, message_id: str) -> str:
        """Generate idempotency key with namespace."""
        return f"{self.IDEMPOTENCY_PREFIX}{message_id}"

    def _memory_get(self, key: str) -> Optional[str]:
        entry = self._memory.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= time.monotonic():
            del self._memory[key]
            return None
        return value

    def _memory_sweep(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._memory.items() if expires_at <= now]
        for key in expired:
            del self._memory[key]

    def _memory_set(self, key: str, value: str, only_if_missing: bool = False) -> bool:
        now = time.monotonic()
        self._memory_sweep(now)
        if only_if_missing and key in self._memory:
            return False
        self._memory[key] = (value, now + self.ttl)
        return True

    async def claim(self, message_id: str) -> bool:
        """
        Mark a message id as in progress.

        Returns:
            True if this is the first delivery, False for a duplicate
        """
        key = self._key(message_id)

        if self.redis is not None:
            try:
                return bool(await self.redis.set(key, self.PENDING, nx=True, ex=self.ttl))
            except RedisError as e:
                logger.error(f"Idempotency claim failed for {message_id}: {e} - using memory")

        return self._memory_set(key, self.PENDING, only_if_missing=True)

    async def lookup(self, message_id: str) -> Optional[dict[str, Any]]:
        """
        Get the stored reply for a handled message id.

        Returns:
            Stored reply, or None if unknown or still in progress
        """
        key = self._key(message_id)
        value: Optional[str] = None

        if self.redis is not None:
            try:
                value = await self.redis.get(key)
            except RedisError as e:
                logger.error(f"Idempotency lookup failed for {message_id}: {e} - using memory")
                value = self._memory_get(key)
        else:
            value = self._memory_get(key)

        if value is None or value == self.PENDING:
            return None
        return json.loads(value)

    async def remember(self, message_id: str, reply: dict[str, Any]) -> None:
        """Store the reply produced for a message id."""
        key = self._key(message_id)
        data = json.dumps(reply)

        if self.redis is not None:
            try:
                await self.redis.set(key, data, ex=self.ttl)
                return
            except RedisError as e:
                logger.error(f"Idempotency store failed for {message_id}: {e} - using memory")

        self._memory_set(key, data)

    async def release(self, message_id: str) -> None:
        """Forget a claim so a provider retry is processed again."""
        key = self._key(message_id)
        self._memory.pop(key, None)

        if self.redis is not None:
            try:
                await self.redis.delete(key)
            except RedisError as e:
                logger.error(f"Idempotency release failed for {message_id}: {e}")


_idempotency_store: Optional[IdempotencyStore] = None


async def get_idempotency_store() -> IdempotencyStore:
    """
    Get IdempotencyStore instance.

    Returns IdempotencyStore even if Redis unavailable (memory fallback).
    """
    global _idempotency_store
    client = await get_redis()
    if _idempotency_store is None:
        _idempotency_store = IdempotencyStore(client)
    else:
        _idempotency_store.redis = client
    return _idempotency_store


async def check_redis_health() -> bool:
    """
    Check Redis connectivity for health checks.

    Returns:
        True if Redis is accessible and responding, False otherwise
    """
    try:
        client = await get_redis()
        if client is None:
            return False

        await client.ping()
        return True

    except RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        return False
