"""
Key/value storage port for the persisted cart.

The persistence adapter only needs get/set/remove on string values.
Two backends ship here:
- InMemoryStorage: process-local dict with an optional byte quota
- RedisStorage: Upstash Redis (REST) for carts that should survive restarts
"""
from typing import Dict, Optional, Protocol

from upstash_redis.asyncio import Redis as AsyncRedis
from upstash_redis.errors import UpstashError

from storefront.config import CART_STORAGE_PREFIX, UPSTASH_REDIS_REST_TOKEN, UPSTASH_REDIS_REST_URL
from storefront.logging import get_logger
from .errors import StorageQuotaExceeded

logger = get_logger(__name__)


class StorageKeys:
    """Keys owned by the cart core."""

    CART = "cart"
    SESSION_ID = "sessionId"


class StoragePort(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class InMemoryStorage:
    """Dict-backed storage. `quota_bytes` mimics a browser storage ceiling."""

    def __init__(self, quota_bytes: Optional[int] = None, initial: Optional[Dict[str, str]] = None):
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(
                len(k.encode("utf-8")) + len(v.encode("utf-8"))
                for k, v in self._data.items()
                if k != key
            )
            needed = len(key.encode("utf-8")) + len(value.encode("utf-8"))
            if used + needed > self.quota_bytes:
                raise StorageQuotaExceeded(
                    f"Storage quota of {self.quota_bytes} bytes exceeded writing {key!r}"
                )
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class RedisStorage:
    """
    Upstash Redis storage, scoped by a key prefix (one prefix per device/session).

    Redis rejects writes with an OOM error once maxmemory is hit; that is
    surfaced as StorageQuotaExceeded so the adapter can reset its keys.
    """

    def __init__(self, redis: AsyncRedis, prefix: str = CART_STORAGE_PREFIX):
        self.redis = redis
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        try:
            await self.redis.set(self._key(key), value)
        except UpstashError as e:
            if "OOM" in str(e):
                raise StorageQuotaExceeded(str(e)) from e
            raise

    async def remove(self, key: str) -> None:
        await self.redis.delete(self._key(key))


# Singleton instance
_redis_client: Optional[AsyncRedis] = None


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Uses standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)
        logger.info("Upstash Redis client initialized for cart storage")

    return _redis_client


def get_redis_storage(prefix: str = CART_STORAGE_PREFIX) -> RedisStorage:
    """RedisStorage bound to the shared client."""
    return RedisStorage(get_redis(), prefix=prefix)
