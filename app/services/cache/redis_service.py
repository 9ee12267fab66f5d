"""
Redis caching service for dashboard responses
"""

import redis.asyncio as redis  # type: ignore
from typing import Any, Dict, Optional
import hashlib
import json
import logging
from app.core.config import settings

logger = logging.getLogger(__name__)


def build_cache_key(prefix: str, payload: Dict[str, Any]) -> str:
    """
    Stable cache key for a request payload, e.g. dashboard:overview:<sha1>
    """
    digest = hashlib.sha1(json.dumps(payload, sort_keys=True, default=str).encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


class RedisService:
    """
    Redis service for caching

    Optional: every operation degrades to a cache miss when Redis is
    unreachable or CACHE_ENABLED is false.
    """

    _instance = None
    _client: Optional[redis.Redis] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(RedisService, cls).__new__(cls)
        return cls._instance

    @property
    def enabled(self) -> bool:
        return settings.CACHE_ENABLED

    async def connect(self):
        """
        Connect to Redis (optional - app will continue without Redis if connection fails)
        """
        if not self.enabled:
            logger.info("Caching disabled (CACHE_ENABLED=false)")
            return

        try:
            if self._client is None:
                connection_kwargs = {
                    "db": settings.REDIS_DB,
                    "encoding": "utf-8",
                    "decode_responses": True
                }

                if settings.REDIS_PASSWORD:
                    connection_kwargs["password"] = settings.REDIS_PASSWORD

                # SSL is selected by the rediss:// scheme
                if settings.REDIS_SSL and settings.REDIS_URL.startswith("redis://"):
                    logger.warning(
                        "REDIS_SSL is True but URL uses redis://. "
                        "Consider using rediss:// in REDIS_URL for SSL connections."
                    )

                self._client = await redis.from_url(
                    settings.REDIS_URL,
                    **connection_kwargs
                )

                await self._client.ping()
                logger.info("Successfully connected to Redis")
        except Exception as e:
            logger.warning(f"Failed to connect to Redis: {str(e)}. Caching will be disabled.")
            self._client = None

    async def disconnect(self):
        """
        Disconnect from Redis
        """
        if self._client:
            await self._client.close()
            self._client = None
            logger.info("Redis connection closed")

    async def _ready(self) -> bool:
        if not self.enabled:
            return False
        if self._client is None:
            await self.connect()
        return self._client is not None

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache
        """
        try:
            if not await self._ready():
                return None

            value = await self._client.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.debug(f"Error getting key {key} from Redis: {str(e)}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """
        Set value in cache with TTL (time to live) in seconds
        """
        try:
            if not await self._ready():
                return False

            serialized_value = json.dumps(value, default=str)
            await self._client.setex(key, ttl, serialized_value)
            return True
        except Exception as e:
            logger.debug(f"Error setting key {key} in Redis: {str(e)}")
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching pattern
        """
        try:
            if not await self._ready():
                return 0

            keys = []
            async for key in self._client.scan_iter(match=pattern):
                keys.append(key)

            if keys:
                await self._client.delete(*keys)
                logger.info(f"Deleted {len(keys)} keys matching pattern: {pattern}")
                return len(keys)

            return 0
        except Exception as e:
            logger.debug(f"Error deleting pattern {pattern} from Redis: {str(e)}")
            return 0

    async def ping(self) -> bool:
        """
        Check that Redis answers
        """
        try:
            if not await self._ready():
                return False
            return await self._client.ping()
        except Exception as e:
            logger.debug(f"Redis ping failed: {str(e)}")
            return False
