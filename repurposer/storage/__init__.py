"""
Storage backends: asyncpg pool, schema setup, Redis client and the
in-memory database used when Postgres is not configured.
"""

from .db import Database
from .memory import MemoryDatabase
from .redis_client import RedisClient
from .schema import SchemaInitializer

__all__ = [
    "Database",
    "MemoryDatabase",
    "RedisClient",
    "SchemaInitializer",
]
