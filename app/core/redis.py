import redis.asyncio as redis
import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ResultCache:
    """JSON key/value cache on redis.

    Every operation is best effort: connection and serialization errors are
    logged and reported as a miss (or ``False``) so callers can fall back to
    the database.
    """

    def __init__(self, url: str, default_ttl: int = 300, client: Optional[redis.Redis] = None):
        self.url = url
        self.default_ttl = default_ttl
        self._client = client

    async def get_client(self) -> Optional[redis.Redis]:
        if self._client is None:
            client = None
            try:
                client = redis.from_url(
                    self.url,
                    encoding="utf-8",
                    decode_responses=True
                )
                await client.ping()
                self._client = client
                logger.info("Redis connection established")
            except Exception as e:
                logger.error(f"Failed to connect to Redis: {e}")
                if client is not None:
                    await client.aclose()

        return self._client

    async def get(self, key: str) -> Optional[Any]:
        try:
            client = await self.get_client()
            if client is None:
                return None

            value = await client.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.error(f"Cache get error for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            client = await self.get_client()
            if client is None:
                return False

            json_value = json.dumps(value, ensure_ascii=False, default=str)
            await client.setex(key, ttl or self.default_ttl, json_value)
            return True
        except Exception as e:
            logger.error(f"Cache set error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            client = await self.get_client()
            if client is None:
                return False

            await client.delete(key)
            return True
        except Exception as e:
            logger.error(f"Cache delete error for key {key}: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
