"""
Cache client (Redis).

The cache is optional. Every operation tolerates "cache unavailable" and
degrades to a miss/no-op instead of raising, so handlers never need their
own try/except around cache calls.
"""

import logging
from typing import Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from sopen.core.secure_logging import mask_uri

logger = logging.getLogger(__name__)


class Cache(Protocol):
    @property
    def available(self) -> bool: ...

    async def connect(self) -> None: ...

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool: ...

    async def delete(self, key: str) -> bool: ...

    async def close(self) -> None: ...


class RedisCache:
    def __init__(self, url: str, prefix: str = "sopen:", connect_timeout: float = 5.0):
        self._url = url
        self._prefix = prefix
        self._connect_timeout = connect_timeout
        self._client: Optional[aioredis.Redis] = None

    @property
    def available(self) -> bool:
        return self._client is not None

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def connect(self) -> None:
        if self._client is not None:
            return
        client = aioredis.from_url(
            self._url,
            decode_responses=True,
            socket_connect_timeout=self._connect_timeout,
            socket_timeout=self._connect_timeout,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            await client.aclose()
            raise ConnectionError(f"Redis unreachable at {mask_uri(self._url)}: {e}") from e
        self._client = client
        logger.info(f"[Cache] Connected to {mask_uri(self._url)}")

    async def get(self, key: str) -> Optional[str]:
        if self._client is None:
            return None
        try:
            return await self._client.get(self._key(key))
        except (RedisError, OSError) as e:
            logger.debug(f"[Cache] get({key}) failed: {e}")
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.set(self._key(key), value, ex=ttl)
            return True
        except (RedisError, OSError) as e:
            logger.debug(f"[Cache] set({key}) failed: {e}")
            return False

    async def delete(self, key: str) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.delete(self._key(key))
            return True
        except (RedisError, OSError) as e:
            logger.debug(f"[Cache] delete({key}) failed: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("[Cache] Closed")
