import logging
from typing import List, Optional

from redis.asyncio import Redis

KEY_PREFIX = "geofinder:kv:"


class RedisStorage:
    """Key-value storage on a Redis server, values are plain strings under a common prefix."""

    def __init__(self, redis: Redis) -> None:
        self.redis: Redis = redis

    @classmethod
    def from_settings(cls, host: str, port: int) -> "RedisStorage":
        redis = Redis(host=host, port=port, decode_responses=True, health_check_interval=30)
        return cls(redis)

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(KEY_PREFIX + key)

    async def set(self, key: str, value: str) -> None:
        await self.redis.set(KEY_PREFIX + key, value)

    async def remove(self, key: str) -> None:
        await self.redis.delete(KEY_PREFIX + key)

    async def keys(self) -> List[str]:
        keys = []
        async for key in self.redis.scan_iter(match=KEY_PREFIX + "*"):
            keys.append(key[len(KEY_PREFIX):])
        return keys

    async def close(self) -> None:
        logging.info("Closing redis storage connection")
        await self.redis.aclose()
