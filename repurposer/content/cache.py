"""
Per-account cache of the content list.

Backed by Redis when configured. Every operation is best-effort: a cache
failure is logged and treated as a miss, never surfaced to the caller.
"""

import json
import logging
from typing import List, Optional

import redis.asyncio as redis

from ..storage.redis_client import RedisClient

logger = logging.getLogger(__name__)

CONTENT_LIST_KEY = "content:list:{account_id}"


class ContentListCache:
    def __init__(self, redis_client: Optional[RedisClient], ttl_seconds: int = 300):
        self._redis = redis_client
        self._ttl = ttl_seconds

    @staticmethod
    def key_for(account_id: str) -> str:
        return CONTENT_LIST_KEY.format(account_id=account_id)

    async def _client(self):
        if self._redis is None:
            return None
        return await self._redis.get_client()

    async def get(self, account_id: str) -> Optional[List[dict]]:
        client = await self._client()
        if client is None:
            return None
        try:
            raw = await client.get(self.key_for(account_id))
        except redis.RedisError as e:
            logger.warning("Content list cache read failed for %s: %s", account_id, e)
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding malformed content list cache entry for %s", account_id)
            return None

    async def set(self, account_id: str, items: List[dict]) -> None:
        client = await self._client()
        if client is None:
            return
        try:
            await client.set(self.key_for(account_id), json.dumps(items), ex=self._ttl)
        except redis.RedisError as e:
            logger.warning("Content list cache write failed for %s: %s", account_id, e)

    async def invalidate(self, account_id: str) -> bool:
        """Drop the cached list. Returns False when the cache could not be reached."""
        client = await self._client()
        if client is None:
            return self._redis is None or not self._redis.is_configured
        try:
            await client.delete(self.key_for(account_id))
        except redis.RedisError as e:
            logger.warning("Content list cache invalidation failed for %s: %s", account_id, e)
            return False
        logger.debug("Invalidated content list cache for %s", account_id)
        return True
