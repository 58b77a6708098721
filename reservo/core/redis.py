import json
from typing import Any, Optional

import redis.asyncio as redis
import structlog

from reservo.core.config import settings

logger = structlog.get_logger(__name__)


class RedisClient:
    """Redis client backing the optional availability cache.

    Every operation is best-effort: failures are logged and reported as a
    miss (or ``False``) so that a Redis outage degrades to uncached reads.
    """

    def __init__(self, url: Optional[str] = None):
        self.url = url
        self.redis_pool = None

    async def init_redis(self):
        """Initialize Redis connection pool."""
        try:
            self.redis_pool = redis.ConnectionPool.from_url(
                self.url or settings.REDIS_URL,
                decode_responses=True,
                retry_on_timeout=True,
                socket_keepalive=True,
            )

            # Test connection
            async with redis.Redis(connection_pool=self.redis_pool) as r:
                await r.ping()
                logger.info("Redis connection established")

        except Exception as e:
            logger.error("Failed to connect to Redis", exc_info=e)
            self.redis_pool = None
            raise

    async def get_redis(self) -> redis.Redis:
        """Get Redis client instance."""
        if not self.redis_pool:
            await self.init_redis()
        return redis.Redis(connection_pool=self.redis_pool)

    async def close(self):
        if self.redis_pool:
            await self.redis_pool.disconnect()
            self.redis_pool = None

    async def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        """Set a key-value pair in Redis."""
        try:
            client = await self.get_redis()
            serialized_value = json.dumps(value) if not isinstance(value, str) else value

            if expire:
                return bool(await client.setex(key, expire, serialized_value))
            return bool(await client.set(key, serialized_value))

        except Exception as e:
            logger.error("Redis SET error", key=key, exc_info=e)
            return False

    async def get(self, key: str) -> Optional[Any]:
        """Get a value from Redis."""
        try:
            client = await self.get_redis()
            value = await client.get(key)

            if value is None:
                return None

            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value

        except Exception as e:
            logger.error("Redis GET error", key=key, exc_info=e)
            return None

    async def incr(self, key: str) -> Optional[int]:
        """Atomically increment a counter, returning the new value."""
        try:
            client = await self.get_redis()
            return int(await client.incr(key))
        except Exception as e:
            logger.error("Redis INCR error", key=key, exc_info=e)
            return None


# Global Redis client instance
redis_client = RedisClient()
