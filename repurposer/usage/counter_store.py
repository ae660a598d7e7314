"""
Usage counter store.

Owns the per-account monthly counter and the per-day counters. The only
write path during a request is ``consume``, which re-checks the tier limits
and increments both counters in one atomic step:

- Postgres: one transaction holding row locks on the account and daily rows
- In-memory: the shared MemoryDatabase lock

When the unit being consumed is beyond the allowance, the overage event is
written inside the same atomic step, so a charge never exists without the
matching consumption and vice versa.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Optional

import asyncpg

from ..exceptions import DatabaseError
from ..storage.db import Database
from ..storage.memory import MemoryDatabase
from ..types.usage import TierPolicy, UsageCommit, UsageHistoryEntry
from .gate import exceeded_limit
from .ledger import InMemoryOverageLedger, PostgresOverageLedger, build_overage_event

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def previous_month(reference: Optional[datetime] = None) -> tuple:
    """(month, year) of the month before ``reference``: the one being archived."""
    reference = reference or datetime.now(timezone.utc)
    if reference.month == 1:
        return 12, reference.year - 1
    return reference.month - 1, reference.year


class UsageCounterStore(ABC):
    """Abstract counter store."""

    @abstractmethod
    async def get_daily_count(self, account_id: str, day: Optional[date] = None) -> int:
        """Units consumed on ``day`` (UTC today by default); 0 when no record exists."""
        pass

    @abstractmethod
    async def consume(
        self,
        account_id: str,
        policy: TierPolicy,
        allow_overage: bool,
        day: Optional[date] = None,
    ) -> UsageCommit:
        """
        Atomically consume one unit.

        If the allowance is already spent and ``allow_overage`` is False the
        commit is refused and nothing is written. Otherwise both counters are
        incremented, and an overage event is appended when over quota.
        """
        pass

    @abstractmethod
    async def reset_monthly(self, month: int, year: int) -> int:
        """Archive every monthly counter as (month, year) and zero it. Returns accounts reset."""
        pass


class InMemoryUsageCounterStore(UsageCounterStore):
    def __init__(self, memory: MemoryDatabase, ledger: InMemoryOverageLedger):
        self._memory = memory
        self._ledger = ledger

    async def get_daily_count(self, account_id: str, day: Optional[date] = None) -> int:
        return self._memory.daily_usage.get((account_id, day or utc_today()), 0)

    async def consume(
        self,
        account_id: str,
        policy: TierPolicy,
        allow_overage: bool,
        day: Optional[date] = None,
    ) -> UsageCommit:
        key = (account_id, day or utc_today())

        async with self._memory.lock:
            account = self._memory.accounts.get(account_id)
            if account is None:
                raise DatabaseError(
                    operation="consume_usage",
                    internal_message=f"Account {account_id} disappeared before usage commit",
                )

            daily = self._memory.daily_usage.get(key, 0)
            limit_type = exceeded_limit(policy, account.monthly_usage_count, daily)
            if limit_type is not None and not allow_overage:
                return UsageCommit(
                    accepted=False,
                    monthly_count=account.monthly_usage_count,
                    daily_count=daily,
                    limit_type=limit_type,
                )

            account.monthly_usage_count += 1
            self._memory.daily_usage[key] = daily + 1

            event = None
            if limit_type is not None:
                event = self._ledger.append_locked(
                    build_overage_event(account_id, 1, policy.overage_rate)
                )

            return UsageCommit(
                accepted=True,
                monthly_count=account.monthly_usage_count,
                daily_count=daily + 1,
                over_quota=event is not None,
                limit_type=limit_type,
                overage_event=event,
            )

    async def reset_monthly(self, month: int, year: int) -> int:
        reset = 0
        async with self._memory.lock:
            for account in self._memory.accounts.values():
                if account.monthly_usage_count == 0:
                    continue
                self._memory.usage_history = [
                    entry
                    for entry in self._memory.usage_history
                    if not (entry.account_id == account.id and entry.month == month and entry.year == year)
                ]
                self._memory.usage_history.append(
                    UsageHistoryEntry(
                        account_id=account.id,
                        month=month,
                        year=year,
                        usage_count=account.monthly_usage_count,
                    )
                )
                account.monthly_usage_count = 0
                reset += 1
        return reset


class PostgresUsageCounterStore(UsageCounterStore):
    def __init__(self, database: Database):
        self._db = database

    async def get_daily_count(self, account_id: str, day: Optional[date] = None) -> int:
        try:
            count = await self._db.fetchval(
                "SELECT count FROM daily_usage WHERE account_id = $1 AND day = $2",
                account_id,
                day or utc_today(),
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="get_daily_count", original_error=e) from e
        return int(count or 0)

    async def consume(
        self,
        account_id: str,
        policy: TierPolicy,
        allow_overage: bool,
        day: Optional[date] = None,
    ) -> UsageCommit:
        day = day or utc_today()
        try:
            async with self._db.transaction() as conn:
                monthly = await conn.fetchval(
                    "SELECT monthly_usage_count FROM accounts WHERE id = $1 FOR UPDATE",
                    account_id,
                )
                if monthly is None:
                    raise DatabaseError(
                        operation="consume_usage",
                        internal_message=f"Account {account_id} disappeared before usage commit",
                    )

                await conn.execute(
                    """
                    INSERT INTO daily_usage (account_id, day, count)
                    VALUES ($1, $2, 0)
                    ON CONFLICT (account_id, day) DO NOTHING
                    """,
                    account_id,
                    day,
                )
                daily = await conn.fetchval(
                    "SELECT count FROM daily_usage WHERE account_id = $1 AND day = $2 FOR UPDATE",
                    account_id,
                    day,
                )

                limit_type = exceeded_limit(policy, monthly, daily)
                if limit_type is not None and not allow_overage:
                    return UsageCommit(
                        accepted=False,
                        monthly_count=monthly,
                        daily_count=daily,
                        limit_type=limit_type,
                    )

                monthly = await conn.fetchval(
                    """
                    UPDATE accounts
                    SET monthly_usage_count = monthly_usage_count + 1, updated_at = NOW()
                    WHERE id = $1
                    RETURNING monthly_usage_count
                    """,
                    account_id,
                )
                daily = await conn.fetchval(
                    """
                    UPDATE daily_usage SET count = count + 1
                    WHERE account_id = $1 AND day = $2
                    RETURNING count
                    """,
                    account_id,
                    day,
                )

                event = None
                if limit_type is not None:
                    event = build_overage_event(account_id, 1, policy.overage_rate)
                    await PostgresOverageLedger.insert(conn, event)
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="consume_usage", original_error=e) from e

        return UsageCommit(
            accepted=True,
            monthly_count=monthly,
            daily_count=daily,
            over_quota=event is not None,
            limit_type=limit_type,
            overage_event=event,
        )

    async def reset_monthly(self, month: int, year: int) -> int:
        try:
            async with self._db.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO usage_history (account_id, month, year, usage_count, archived_at)
                    SELECT id, $1, $2, monthly_usage_count, NOW()
                    FROM accounts
                    WHERE monthly_usage_count > 0
                    ON CONFLICT (account_id, year, month)
                    DO UPDATE SET usage_count = EXCLUDED.usage_count, archived_at = EXCLUDED.archived_at
                    """,
                    month,
                    year,
                )
                result = await conn.execute(
                    """
                    UPDATE accounts
                    SET monthly_usage_count = 0, updated_at = NOW()
                    WHERE monthly_usage_count > 0
                    """
                )
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="reset_monthly_usage", original_error=e) from e
        return int(result.split()[-1]) if result else 0
