"""Message bus infrastructure - event deduplication."""
from .idempotency import InMemoryIdempotencyIndex, RedisIdempotencyIndex

__all__ = [
    "InMemoryIdempotencyIndex",
    "RedisIdempotencyIndex",
]
