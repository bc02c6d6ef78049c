"""
Staging store for ingestion sessions awaiting review.

Redis when configured and reachable, an in-process store otherwise.
"""

import logging
from typing import TYPE_CHECKING

import redis

from .base import DEFAULT_TTL_SECONDS, StagingStore
from .memory_store import MemoryStagingStore
from .redis_store import FallbackStagingStore, RedisStagingStore

if TYPE_CHECKING:
    from ..config import StagingConfig

logger = logging.getLogger(__name__)


def create_staging_store(config: "StagingConfig", start_sweeper: bool = True) -> StagingStore:
    """
    Build the staging store for a process.

    Returns a FallbackStagingStore when Redis answers a ping, otherwise a
    MemoryStagingStore. The caller owns the returned instance.
    """
    memory = MemoryStagingStore()
    if start_sweeper:
        memory.start_sweeper(config.sweep_interval_seconds)

    if not config.redis_url:
        logger.info("Session store using in-memory storage (Redis not configured)")
        return memory

    try:
        client = redis.from_url(config.redis_url)
        client.ping()
    except (redis.RedisError, ValueError):
        logger.exception(
            "Failed to initialise Redis client, session store using in-memory storage"
        )
        return memory

    logger.info("Session store using Redis")
    return FallbackStagingStore(RedisStagingStore(client), memory)


__all__ = [
    "DEFAULT_TTL_SECONDS",
    "FallbackStagingStore",
    "MemoryStagingStore",
    "RedisStagingStore",
    "StagingStore",
    "create_staging_store",
]
