"""
Postgres schema for accounts, usage counters, overage charges and content.

The DDL is idempotent and runs once at startup through SchemaInitializer,
never from inside a request.
"""

import logging
from typing import List, Optional

import asyncpg

from ..exceptions import StorageNotReadyError
from .db import Database

logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id TEXT PRIMARY KEY,
        email TEXT,
        tier TEXT NOT NULL DEFAULT 'free',
        subscription_status TEXT NOT NULL DEFAULT 'inactive',
        monthly_usage_count INTEGER NOT NULL DEFAULT 0 CHECK (monthly_usage_count >= 0),
        overage_consent BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS account_settings (
        account_id TEXT PRIMARY KEY REFERENCES accounts(id) ON DELETE CASCADE,
        preferred_platforms TEXT[] NOT NULL DEFAULT '{}',
        overage_enabled BOOLEAN NOT NULL DEFAULT FALSE,
        brand_voice TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS daily_usage (
        account_id TEXT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        day DATE NOT NULL,
        count INTEGER NOT NULL DEFAULT 0 CHECK (count >= 0),
        PRIMARY KEY (account_id, day)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS overage_charges (
        id TEXT PRIMARY KEY,
        account_id TEXT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        count INTEGER NOT NULL CHECK (count >= 1),
        rate NUMERIC(10, 2) NOT NULL,
        amount NUMERIC(10, 2) NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_overage_charges_account
        ON overage_charges (account_id, status)
    """,
    """
    CREATE TABLE IF NOT EXISTS usage_history (
        account_id TEXT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        month INTEGER NOT NULL CHECK (month BETWEEN 1 AND 12),
        year INTEGER NOT NULL,
        usage_count INTEGER NOT NULL,
        archived_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (account_id, year, month)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS content (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        original_text TEXT NOT NULL,
        content_type TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'Generated',
        tier TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_content_owner
        ON content (owner_id, updated_at DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS repurposed_content (
        id BIGSERIAL PRIMARY KEY,
        content_id TEXT NOT NULL REFERENCES content(id) ON DELETE CASCADE,
        platform TEXT NOT NULL,
        text TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_repurposed_content_parent
        ON repurposed_content (content_id)
    """,
]


class SchemaInitializer:
    """
    Creates tables at startup and tracks whether storage is usable.

    With no database (in-memory backend) storage is ready immediately.
    """

    def __init__(self, database: Optional[Database] = None):
        self._database = database
        self._ready = database is None
        self._error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def error(self) -> Optional[str]:
        return self._error

    async def initialize(self) -> bool:
        """Apply the DDL. Returns readiness; never raises."""
        if self._database is None:
            self._ready = True
            return True

        try:
            async with self._database.transaction() as conn:
                for statement in SCHEMA_STATEMENTS:
                    await conn.execute(statement)
        except (asyncpg.PostgresError, OSError) as e:
            self._ready = False
            self._error = str(e)
            logger.error("Schema initialization failed: %s", e)
            return False

        self._ready = True
        self._error = None
        logger.info("Database schema ready (%d statements applied)", len(SCHEMA_STATEMENTS))
        return True

    def ensure_ready(self) -> None:
        if not self._ready:
            raise StorageNotReadyError(internal_message=self._error or "schema not initialized")
