"""
Redis-backed staging store.

Expiry is enforced by Redis itself (SETEX). Errors propagate as
redis.RedisError; FallbackStagingStore decides what to do with them.
"""

import logging
from typing import Any, Optional

import redis

from .base import DEFAULT_TTL_SECONDS, StagingStore, deserialize, serialize
from .memory_store import MemoryStagingStore

logger = logging.getLogger(__name__)


class RedisStagingStore(StagingStore):
    """SETEX/GET/DEL/EXISTS over a redis.Redis client."""

    def __init__(self, client: "redis.Redis"):
        self.client = client

    def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        try:
            serialized = serialize(value)
        except (TypeError, ValueError) as e:
            logger.error("Error storing session data for %s: %s", key, e)
            return False
        self.client.setex(key, ttl_seconds, serialized)
        logger.debug("Session data stored in Redis: %s", key)
        return True

    def get(self, key: str) -> Optional[Any]:
        raw = self.client.get(key)
        if raw is None:
            return None
        return deserialize(raw)

    def delete(self, key: str) -> bool:
        self.client.delete(key)
        logger.debug("Session data deleted from Redis: %s", key)
        return True

    def exists(self, key: str) -> bool:
        return bool(self.client.exists(key))

    def close(self) -> None:
        self.client.close()


class FallbackStagingStore(StagingStore):
    """
    Redis while it answers, in-process memory once it does not.

    The first redis.RedisError switches this store to memory for the rest of
    its life; the switch is logged once and never surfaced to callers.
    """

    def __init__(self, primary: RedisStagingStore, fallback: MemoryStagingStore):
        self.primary = primary
        self.fallback = fallback
        self._degraded = False

    @property
    def degraded(self) -> bool:
        return self._degraded

    def _degrade(self, operation: str, error: Exception) -> None:
        if not self._degraded:
            logger.warning(
                "Redis %s failed (%s), session store falling back to memory", operation, error
            )
            self._degraded = True

    def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        if not self._degraded:
            try:
                return self.primary.set(key, value, ttl_seconds)
            except redis.RedisError as e:
                self._degrade("set", e)
        return self.fallback.set(key, value, ttl_seconds)

    def get(self, key: str) -> Optional[Any]:
        if not self._degraded:
            try:
                return self.primary.get(key)
            except redis.RedisError as e:
                self._degrade("get", e)
        return self.fallback.get(key)

    def delete(self, key: str) -> bool:
        if not self._degraded:
            try:
                return self.primary.delete(key)
            except redis.RedisError as e:
                self._degrade("delete", e)
        return self.fallback.delete(key)

    def exists(self, key: str) -> bool:
        if not self._degraded:
            try:
                return self.primary.exists(key)
            except redis.RedisError as e:
                self._degrade("exists", e)
        return self.fallback.exists(key)

    def close(self) -> None:
        try:
            self.primary.close()
        except redis.RedisError as e:
            logger.debug("Error closing Redis client: %s", e)
        self.fallback.close()
