# user_onboarding/services/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from user_onboarding.config import settings
from user_onboarding.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class FastRedisClient:
    """Pooled async Redis client used for the onboarding event queue."""

    def __init__(self, url: str | None = None):
        self.url = url or settings.REDIS_URL
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        try:
            self.pool = ConnectionPool.from_url(
                self.url,
                max_connections=20,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                # Must exceed the BLMOVE block time
                socket_timeout=settings.ONBOARDING_POLL_TIMEOUT_S + 10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
            logger.info("Fast Redis client initialized successfully", max_connections=20)

        except Exception as e:
            logger.error("Failed to initialize fast Redis client", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Fast Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def _ensure_initialized(self):
        if not self._initialized:
            logger.warning("Redis not initialized, attempting to initialize")
            await self.initialize()

    async def ping(self) -> bool:
        """Test Redis connection"""
        try:
            await self._ensure_initialized()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    # =================================================================
    # Reliable queue operations
    #
    # Producers LPUSH onto the queue; the consumer BLMOVEs from the right end
    # into its processing list and LREMs the envelope once handled, so an
    # envelope is never lost if the worker dies mid-run.
    # =================================================================

    async def enqueue(self, queue: str, message: str) -> bool:
        """Push a message onto a queue - returns False instead of raising."""
        try:
            await self._ensure_initialized()
            await self.client.lpush(queue, message)
            return True
        except Exception as e:
            logger.error("Redis LPUSH failed", queue=queue, error=str(e))
            return False

    async def claim(self, queue: str, processing: str, timeout_s: float) -> str | None:
        """Block until a message is available and move it to the processing list."""
        await self._ensure_initialized()
        return await self.client.blmove(queue, processing, timeout_s, "RIGHT", "LEFT")

    async def ack(self, processing: str, message: str) -> int:
        """Remove a handled message from the processing list."""
        await self._ensure_initialized()
        return await self.client.lrem(processing, 1, message)

    async def requeue(self, processing: str, destination: str, old: str, new: str) -> None:
        """Atomically replace an in-flight message with ``new`` on ``destination``."""
        await self._ensure_initialized()
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.lpush(destination, new)
            pipe.lrem(processing, 1, old)
            await pipe.execute()

    async def recover_in_flight(self, processing: str, queue: str) -> int:
        """Move everything left in the processing list back to the consuming end of the queue."""
        await self._ensure_initialized()
        moved = 0
        while await self.client.lmove(processing, queue, "RIGHT", "RIGHT") is not None:
            moved += 1
        return moved


# Global instance
fast_redis = FastRedisClient()
