"""
Redis connection for the content list cache.

The connection is opened lazily on first use. Nothing in the repurpose
pipeline needs Redis for correctness, so a failed connect marks the client
unavailable instead of raising, and further attempts are held off for
``retry_after`` seconds so a Redis outage does not add a connect timeout to
every request.
"""

import logging
import time
from typing import Any, Dict, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RedisClient:
    def __init__(
        self,
        redis_url: Optional[str],
        connect_timeout: float = 5.0,
        retry_after: float = 30.0,
    ) -> None:
        self.redis_url = redis_url
        self.connect_timeout = connect_timeout
        self.retry_after = retry_after
        self._client: Optional[redis.Redis] = None
        self._last_error: Optional[str] = None
        self._failed_at: Optional[float] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.redis_url)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def get_client(self) -> Optional[redis.Redis]:
        """The live client, or None when Redis is unconfigured or unreachable."""
        if self._client is not None or not self.redis_url:
            return self._client
        if self._failed_at is not None and time.monotonic() - self._failed_at < self.retry_after:
            return None

        client = redis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_connect_timeout=self.connect_timeout,
            socket_timeout=self.connect_timeout,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except redis.RedisError as e:
            self._last_error = f"{type(e).__name__}: {e}"
            self._failed_at = time.monotonic()
            logger.warning(
                "Redis unavailable, content list cache disabled for %.0fs: %s",
                self.retry_after,
                self._last_error,
            )
            await client.aclose()
            return None

        self._client = client
        self._last_error = None
        self._failed_at = None
        logger.info("Redis connection established")
        return client

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except redis.RedisError as e:
            logger.warning("Error closing Redis connection: %s", e)

    async def health_check(self) -> Dict[str, Any]:
        if not self.redis_url:
            return {"status": "not_configured", "connected": False}

        client = await self.get_client()
        if client is None:
            return {"status": "unavailable", "connected": False, "error": self._last_error}

        try:
            info = await client.info("server")
        except redis.RedisError as e:
            self._last_error = str(e)
            self._client = None
            self._failed_at = time.monotonic()
            return {"status": "unhealthy", "connected": False, "error": str(e)}

        return {
            "status": "healthy",
            "connected": True,
            "redis_version": info.get("redis_version", "unknown"),
            "uptime_seconds": info.get("uptime_in_seconds", 0),
        }
