"""
Idempotency indexes for event deduplication.

Producers deliver at least once; the ingestion queue claims each
producer-supplied key here before storing an event.
"""
import logging
import time
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis

from core.application.interfaces import IIdempotencyIndex


logger = logging.getLogger(__name__)


class InMemoryIdempotencyIndex(IIdempotencyIndex):
    """
    Process-local idempotency index with a retention window.

    Expired keys are evicted lazily on every claim.
    """

    def __init__(
        self,
        retention_seconds: float = 86400.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    async def claim(self, key: str, event_id: str) -> Optional[str]:
        now = self._clock()
        self._evict(now)

        existing = self._entries.get(key)
        if existing is not None:
            return existing[0]

        self._entries[key] = (event_id, now + self.retention_seconds)
        return None

    async def release(self, key: str) -> None:
        self._entries.pop(key, None)

    def _evict(self, now: float) -> None:
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


class RedisIdempotencyIndex(IIdempotencyIndex):
    """
    Redis-backed idempotency index.

    Uses SET NX EX so the claim is atomic across every process that shares
    the Redis instance. Key format: pinkflow:idempotency:<key>
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        retention_seconds: float = 86400.0,
        prefix: str = "pinkflow:idempotency:",
        client: Optional[aioredis.Redis] = None,
    ):
        """
        Initialize Redis idempotency index.

        Args:
            redis_url: Redis connection URL
            retention_seconds: How long a key stays claimed
            prefix: Key prefix
            client: Pre-built client (skips connect)
        """
        self.redis_url = redis_url
        self.retention_seconds = retention_seconds
        self.prefix = prefix
        self._redis_client: Optional[aioredis.Redis] = client

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self._redis_client is None:
            try:
                self._redis_client = aioredis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True
                )
                await self._redis_client.ping()
                logger.info(f"✅ Connected to Redis: {self.redis_url}")
            except Exception as e:
                logger.error(f"Failed to connect to Redis: {e}")
                self._redis_client = None
                raise

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis_client:
            await self._redis_client.aclose()
            self._redis_client = None
            logger.info("✅ Disconnected from Redis")

    async def claim(self, key: str, event_id: str) -> Optional[str]:
        await self.connect()
        name = f"{self.prefix}{key}"
        ttl = max(int(self.retention_seconds), 1)

        created = await self._redis_client.set(name, event_id, nx=True, ex=ttl)
        if created:
            return None

        existing = await self._redis_client.get(name)
        if existing is None:
            # Key expired between SET and GET; try once more
            created = await self._redis_client.set(name, event_id, nx=True, ex=ttl)
            if created:
                return None
            existing = await self._redis_client.get(name)

        if isinstance(existing, bytes):
            existing = existing.decode("utf-8")
        return existing

    async def release(self, key: str) -> None:
        await self.connect()
        await self._redis_client.delete(f"{self.prefix}{key}")
