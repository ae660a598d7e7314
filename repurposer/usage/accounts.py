"""
Account and settings lookup.

The usage engine only reads accounts. The monthly counter on the account row
is written exclusively by the usage counter store.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import asyncpg

from ..exceptions import DatabaseError
from ..storage.db import Database
from ..storage.memory import MemoryDatabase
from ..types.usage import Account, AccountSettings

logger = logging.getLogger(__name__)


class AccountRepository(ABC):
    """Abstract account source."""

    @abstractmethod
    async def get_account(self, account_id: str) -> Optional[Account]:
        """Return the account, or None if it does not exist."""
        pass

    @abstractmethod
    async def get_settings(self, account_id: str) -> AccountSettings:
        """Return saved settings, defaults when none are stored."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self, memory: MemoryDatabase):
        self._memory = memory

    async def get_account(self, account_id: str) -> Optional[Account]:
        account = self._memory.accounts.get(account_id)
        return account.model_copy() if account else None

    async def get_settings(self, account_id: str) -> AccountSettings:
        settings = self._memory.settings.get(account_id)
        return settings.model_copy(deep=True) if settings else AccountSettings()


class PostgresAccountRepository(AccountRepository):
    def __init__(self, database: Database):
        self._db = database

    async def get_account(self, account_id: str) -> Optional[Account]:
        try:
            row = await self._db.fetchrow(
                """
                SELECT id, email, tier, subscription_status, monthly_usage_count, overage_consent
                FROM accounts
                WHERE id = $1
                """,
                account_id,
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="get_account", original_error=e) from e

        if not row:
            return None
        return Account(
            id=row["id"],
            email=row["email"],
            tier=row["tier"],
            subscription_status=row["subscription_status"],
            monthly_usage_count=row["monthly_usage_count"],
            overage_consent=row["overage_consent"],
        )

    async def get_settings(self, account_id: str) -> AccountSettings:
        try:
            row = await self._db.fetchrow(
                """
                SELECT preferred_platforms, overage_enabled, brand_voice
                FROM account_settings
                WHERE account_id = $1
                """,
                account_id,
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="get_settings", original_error=e) from e

        if not row:
            return AccountSettings()
        return AccountSettings(
            preferred_platforms=list(row["preferred_platforms"] or []),
            overage_enabled=row["overage_enabled"],
            brand_voice=row["brand_voice"],
        )
