"""
Async Postgres helpers.

A thin wrapper around an asyncpg pool. One Database instance is created by
the service container at startup and shared by every Postgres-backed store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

logger = logging.getLogger(__name__)


class Database:
    """Lazily created asyncpg pool with query helpers."""

    def __init__(self, dsn: str, min_size: int = 1, max_size: int = 5):
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    async def get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool

        # PgBouncer poolers break prepared statements, so the statement cache
        # stays disabled for both direct and pooled URLs.
        self._pool = await asyncpg.create_pool(
            dsn=self._dsn,
            min_size=self._min_size,
            max_size=self._max_size,
            statement_cache_size=0,
        )

        logger.info("Postgres pool initialized (min=%s max=%s)", self._min_size, self._max_size)
        return self._pool

    async def fetchrow(self, query: str, *args):
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetch(self, query: str, *args):
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchval(self, query: str, *args):
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def execute(self, query: str, *args):
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            return await conn.execute(query, *args)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield a connection inside a transaction; commits on clean exit."""
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def ping(self) -> bool:
        try:
            return await self.fetchval("SELECT 1") == 1
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning("Postgres ping failed: %s", e)
            return False

    async def close(self) -> None:
        """Close the pool (used during graceful shutdown)."""
        if self._pool is None:
            return
        try:
            await self._pool.close()
        finally:
            self._pool = None
