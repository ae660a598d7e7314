"""
Tests for usage reporting and the monthly reset.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import seed_account
from repurposer.exceptions import DatabaseError, ResourceNotFoundError, StorageNotReadyError
from repurposer.storage.memory import MemoryDatabase
from repurposer.types.usage import SubscriptionTier
from repurposer.usage.accounts import InMemoryAccountRepository
from repurposer.usage.counter_store import InMemoryUsageCounterStore
from repurposer.usage.ledger import InMemoryOverageLedger
from repurposer.usage.service import UsageService, get_day_bounds, get_period_bounds
from repurposer.usage.tiers import TierPolicyRegistry


def _service(memory: MemoryDatabase) -> UsageService:
    ledger = InMemoryOverageLedger(memory)
    return UsageService(
        TierPolicyRegistry(),
        InMemoryAccountRepository(memory),
        InMemoryUsageCounterStore(memory, ledger),
        ledger,
    )


class TestPeriodBounds:
    def test_mid_month(self):
        start, end = get_period_bounds(datetime(2024, 5, 17, 13, 45, tzinfo=timezone.utc))
        assert start == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert end == datetime(2024, 6, 1, tzinfo=timezone.utc)

    def test_december_rolls_year(self):
        start, end = get_period_bounds(datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc))
        assert end == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_day_bounds(self):
        start, end = get_day_bounds(datetime(2024, 2, 29, 8, tzinfo=timezone.utc))
        assert start == datetime(2024, 2, 29, tzinfo=timezone.utc)
        assert end == datetime(2024, 3, 1, tzinfo=timezone.utc)


class TestUsageStats:
    @pytest.mark.asyncio
    async def test_stats_for_basic_account(self):
        memory = MemoryDatabase()
        seed_account(memory, "acct", tier="basic", monthly=12, daily=1, consent=True)

        stats = await _service(memory).get_usage_stats("acct")

        assert stats.plan == SubscriptionTier.BASIC
        assert stats.monthly_usage == 12
        assert stats.monthly_remaining == 48
        assert stats.daily_usage == 1
        assert stats.daily_remaining == 1
        assert stats.overage_rate == Decimal("0.10")
        assert stats.overage_consent is True
        assert stats.pending_overage == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_unbounded_daily_has_no_remaining(self):
        memory = MemoryDatabase()
        seed_account(memory, "acct", tier="agency")
        stats = await _service(memory).get_usage_stats("acct")
        assert stats.daily_limit is None
        assert stats.daily_remaining is None

    @pytest.mark.asyncio
    async def test_remaining_never_negative(self):
        memory = MemoryDatabase()
        seed_account(memory, "acct", monthly=7)
        stats = await _service(memory).get_usage_stats("acct")
        assert stats.monthly_remaining == 0

    @pytest.mark.asyncio
    async def test_missing_account(self):
        with pytest.raises(ResourceNotFoundError):
            await _service(MemoryDatabase()).get_usage_stats("ghost")

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_ready(self):
        memory = MemoryDatabase()
        seed_account(memory, "acct")
        service = _service(memory)

        class BrokenLedger(InMemoryOverageLedger):
            async def list_events(self, account_id, status=None):
                raise DatabaseError(operation="list_overage", internal_message="down")

        service.ledger = BrokenLedger(memory)
        with pytest.raises(StorageNotReadyError):
            await service.get_usage_stats("acct")


class TestOverageSummary:
    @pytest.mark.asyncio
    async def test_pending_total_and_charges(self):
        memory = MemoryDatabase()
        service = _service(memory)
        settled = await service.ledger.record("acct", 1, Decimal("0.12"))
        await service.ledger.record("acct", 2, Decimal("0.12"))
        await service.ledger.mark_settled([settled.id])

        summary = await service.get_overage_summary("acct")

        assert summary["totalPending"] == "0.24"
        assert len(summary["charges"]) == 2
        assert {c["status"] for c in summary["charges"]} == {"pending", "settled"}


class TestMonthlyReset:
    @pytest.mark.asyncio
    async def test_archives_previous_month(self):
        memory = MemoryDatabase()
        seed_account(memory, "acct", monthly=4)

        result = await _service(memory).reset_monthly_usage(
            now=datetime(2025, 1, 1, 0, 5, tzinfo=timezone.utc)
        )

        assert result == {"accountsReset": 1, "month": 12, "year": 2024}
        assert memory.accounts["acct"].monthly_usage_count == 0
        assert memory.usage_history[0].usage_count == 4
