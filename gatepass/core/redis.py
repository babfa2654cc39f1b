import redis.asyncio as redis
from gatepass.core.config import settings
import logging

logger = logging.getLogger(__name__)

class RedisClient:
    def __init__(self):
        self.redis = None

    async def connect(self):
        """Connect to Redis"""
        try:
            self.redis = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True
            )
            # Test connection
            await self.redis.ping()
            logger.info("✅ Redis connected successfully")
        except Exception as e:
            logger.error(f"❌ Redis connection failed: {str(e)}")
            raise

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            logger.info("Redis disconnected")

    async def sadd(self, key: str, *values: str):
        """Add members to a set"""
        if not self.redis:
            await self.connect()
        return await self.redis.sadd(key, *values)

    async def smembers(self, key: str):
        """Get all members of a set"""
        if not self.redis:
            await self.connect()
        return await self.redis.smembers(key)

    async def delete(self, key: str):
        """Delete key"""
        if not self.redis:
            await self.connect()
        return await self.redis.delete(key)

    async def expire(self, key: str, seconds: int):
        """Set expiration"""
        if not self.redis:
            await self.connect()
        return await self.redis.expire(key, seconds)

# Global Redis client instance
redis_client = RedisClient()
