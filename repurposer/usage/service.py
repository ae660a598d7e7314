"""
Read-side usage reporting and the scheduled monthly reset.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Tuple

from ..exceptions import DatabaseError, ErrorCode, ResourceNotFoundError, StorageNotReadyError
from ..types.usage import OverageStatus, UsageStats
from .accounts import AccountRepository
from .counter_store import UsageCounterStore, previous_month
from .ledger import OverageLedger
from .tiers import TierPolicyRegistry

logger = logging.getLogger(__name__)


def get_period_bounds(reference: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """First instant of the reference month and of the following month (UTC)."""
    reference = reference or datetime.now(timezone.utc)
    period_start = reference.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if period_start.month == 12:
        period_end = period_start.replace(year=period_start.year + 1, month=1)
    else:
        period_end = period_start.replace(month=period_start.month + 1)
    return period_start, period_end


def get_day_bounds(reference: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    reference = reference or datetime.now(timezone.utc)
    day_start = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    return day_start, day_start + timedelta(days=1)


class UsageService:
    def __init__(
        self,
        registry: TierPolicyRegistry,
        accounts: AccountRepository,
        counters: UsageCounterStore,
        ledger: OverageLedger,
    ):
        self.registry = registry
        self.accounts = accounts
        self.counters = counters
        self.ledger = ledger

    async def get_usage_stats(self, account_id: str) -> UsageStats:
        try:
            account = await self.accounts.get_account(account_id)
            if account is None:
                raise ResourceNotFoundError(
                    message="Account not found",
                    resource_type="account",
                    resource_id=account_id,
                    error_code=ErrorCode.ACCOUNT_NOT_FOUND,
                )
            daily = await self.counters.get_daily_count(account_id)
            pending = await self.ledger.pending_total(account_id)
        except DatabaseError as e:
            raise StorageNotReadyError(original_error=e) from e

        policy = self.registry.policy_for(account.tier)
        period_start, period_end = get_period_bounds()
        monthly = account.monthly_usage_count

        return UsageStats(
            account_id=account_id,
            plan=policy.tier,
            monthly_usage=monthly,
            monthly_limit=policy.monthly_limit,
            monthly_remaining=(
                max(0, policy.monthly_limit - monthly) if policy.is_monthly_bounded else None
            ),
            daily_usage=daily,
            daily_limit=policy.daily_limit,
            daily_remaining=(
                max(0, policy.daily_limit - daily) if policy.is_daily_bounded else None
            ),
            overage_rate=policy.overage_rate,
            overage_consent=account.overage_consent,
            pending_overage=pending,
            period_start=period_start,
            period_end=period_end,
        )

    async def get_overage_summary(self, account_id: str) -> dict:
        """Overage events for the account plus the total still pending."""
        try:
            events = await self.ledger.list_events(account_id)
        except DatabaseError as e:
            raise StorageNotReadyError(original_error=e) from e

        total_pending = sum(
            (event.amount for event in events if event.status == OverageStatus.PENDING),
            Decimal("0.00"),
        )
        return {
            "charges": [
                {
                    "id": event.id,
                    "count": event.count,
                    "rate": str(event.rate),
                    "amount": str(event.amount),
                    "status": event.status.value,
                    "createdAt": event.created_at.isoformat(),
                }
                for event in events
            ],
            "totalPending": str(total_pending),
        }

    async def reset_monthly_usage(self, now: Optional[datetime] = None) -> dict:
        """
        Archive last month's counters and zero them.

        Meant to run from a scheduler at the start of each month; the
        archived period is the month before ``now``.
        """
        month, year = previous_month(now)
        try:
            reset = await self.counters.reset_monthly(month, year)
        except DatabaseError as e:
            logger.error("Monthly usage reset failed: %s", e.internal_message)
            raise
        logger.info("Monthly usage reset: %d accounts archived for %02d/%d", reset, month, year)
        return {"accountsReset": reset, "month": month, "year": year}
