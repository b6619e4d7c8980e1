"""
Redis client with connection pooling for the Redis storage backend.

Uses redis-py with a shared connection pool. Only a synchronous client is
needed: the storage contract is synchronous and the queue runs blocking
storage calls off the event loop.
"""

from typing import Optional

import structlog
from redis import ConnectionPool, Redis

from telemetry_shipper.config import Settings

logger = structlog.get_logger(__name__)


class RedisClient:
    """
    Redis client wrapper with a process-wide connection pool.
    """

    _pool: Optional[ConnectionPool] = None

    @classmethod
    def get_client(cls, settings: Settings) -> Redis:
        """
        Get a Redis client backed by the shared pool.

        Args:
            settings: Application settings (REDIS_URL, REDIS_MAX_CONNECTIONS)

        Returns:
            Redis client instance
        """
        if cls._pool is None:
            cls._pool = ConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            logger.info("Initialized Redis connection pool", redis_url=settings.REDIS_URL)

        return Redis(connection_pool=cls._pool)

    @classmethod
    def close_pool(cls) -> None:
        """Close the connection pool (cleanup on shutdown)."""
        if cls._pool is not None:
            cls._pool.disconnect()
            cls._pool = None
            logger.info("Closed Redis connection pool")
