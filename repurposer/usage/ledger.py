"""
Overage ledger.

Append-only record of units consumed beyond a tier's allowance. Events are
written as ``pending``; the external billing system settles them. The ledger
never moves money.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

import asyncpg

from ..exceptions import DatabaseError
from ..storage.db import Database
from ..storage.memory import MemoryDatabase
from ..types.usage import OverageEvent, OverageStatus

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def build_overage_event(account_id: str, count: int, rate: Decimal) -> OverageEvent:
    """Create a pending event charging ``rate`` for each of ``count`` units."""
    if count < 1:
        raise ValueError("Overage count must be at least 1")
    amount = (Decimal(rate) * count).quantize(CENTS, rounding=ROUND_HALF_UP)
    return OverageEvent(
        id=str(uuid.uuid4()),
        account_id=account_id,
        count=count,
        rate=Decimal(rate),
        amount=amount,
        status=OverageStatus.PENDING,
    )


class OverageLedger(ABC):
    """Abstract overage ledger."""

    @abstractmethod
    async def record(self, account_id: str, count: int, rate: Decimal) -> OverageEvent:
        """Append a pending overage event."""
        pass

    @abstractmethod
    async def list_events(
        self, account_id: str, status: Optional[OverageStatus] = None
    ) -> List[OverageEvent]:
        """Events for an account, newest first."""
        pass

    @abstractmethod
    async def mark_settled(self, event_ids: Iterable[str]) -> int:
        """Mark events settled by the billing system. Returns rows changed."""
        pass

    async def pending_total(self, account_id: str) -> Decimal:
        events = await self.list_events(account_id, status=OverageStatus.PENDING)
        return sum((event.amount for event in events), Decimal("0.00"))


class InMemoryOverageLedger(OverageLedger):
    def __init__(self, memory: MemoryDatabase):
        self._memory = memory

    def append_locked(self, event: OverageEvent) -> OverageEvent:
        """Append while the caller already holds the memory lock."""
        self._memory.overage_events.append(event)
        return event

    async def record(self, account_id: str, count: int, rate: Decimal) -> OverageEvent:
        event = build_overage_event(account_id, count, rate)
        async with self._memory.lock:
            return self.append_locked(event)

    async def list_events(
        self, account_id: str, status: Optional[OverageStatus] = None
    ) -> List[OverageEvent]:
        events = [
            event.model_copy()
            for event in self._memory.overage_events
            if event.account_id == account_id and (status is None or event.status == status)
        ]
        return sorted(events, key=lambda e: e.created_at, reverse=True)

    async def mark_settled(self, event_ids: Iterable[str]) -> int:
        wanted = set(event_ids)
        changed = 0
        async with self._memory.lock:
            for event in self._memory.overage_events:
                if event.id in wanted and event.status == OverageStatus.PENDING:
                    event.status = OverageStatus.SETTLED
                    changed += 1
        return changed


class PostgresOverageLedger(OverageLedger):
    def __init__(self, database: Database):
        self._db = database

    @staticmethod
    async def insert(conn: asyncpg.Connection, event: OverageEvent) -> None:
        """Insert on an existing connection so callers can share a transaction."""
        await conn.execute(
            """
            INSERT INTO overage_charges (id, account_id, count, rate, amount, status, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            """,
            event.id,
            event.account_id,
            event.count,
            event.rate,
            event.amount,
            event.status.value,
            event.created_at,
        )

    async def record(self, account_id: str, count: int, rate: Decimal) -> OverageEvent:
        event = build_overage_event(account_id, count, rate)
        try:
            async with self._db.transaction() as conn:
                await self.insert(conn, event)
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="record_overage", original_error=e) from e
        return event

    async def list_events(
        self, account_id: str, status: Optional[OverageStatus] = None
    ) -> List[OverageEvent]:
        try:
            rows = await self._db.fetch(
                """
                SELECT id, account_id, count, rate, amount, status, created_at
                FROM overage_charges
                WHERE account_id = $1
                  AND ($2::text IS NULL OR status = $2)
                ORDER BY created_at DESC
                """,
                account_id,
                status.value if status else None,
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="list_overage", original_error=e) from e

        return [
            OverageEvent(
                id=row["id"],
                account_id=row["account_id"],
                count=row["count"],
                rate=row["rate"],
                amount=row["amount"],
                status=OverageStatus(row["status"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    async def pending_total(self, account_id: str) -> Decimal:
        try:
            total = await self._db.fetchval(
                """
                SELECT COALESCE(SUM(amount), 0)
                FROM overage_charges
                WHERE account_id = $1 AND status = 'pending'
                """,
                account_id,
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="pending_overage_total", original_error=e) from e
        return Decimal(total).quantize(CENTS)

    async def mark_settled(self, event_ids: Iterable[str]) -> int:
        ids = list(event_ids)
        if not ids:
            return 0
        try:
            result = await self._db.execute(
                """
                UPDATE overage_charges
                SET status = 'settled'
                WHERE id = ANY($1::text[]) AND status = 'pending'
                """,
                ids,
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="settle_overage", original_error=e) from e
        # asyncpg returns the command tag, e.g. "UPDATE 3"
        return int(result.split()[-1]) if result else 0
