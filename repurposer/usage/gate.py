"""
Quota enforcement gate.

Decides whether one more repurpose is allowed, allowed with an overage
charge, or rejected. The gate is pure: it reads counts handed to it and never
mutates counters. The same comparison is re-applied by the counter store at
commit time so concurrent requests cannot both spend the last unit.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..exceptions import QuotaExceededError
from ..types.usage import LimitType, TierPolicy


class QuotaOutcome(str, Enum):
    ALLOW = "allow"
    ALLOW_WITH_CHARGE = "allow_with_charge"
    REJECT = "reject"


@dataclass(frozen=True)
class QuotaDecision:
    outcome: QuotaOutcome
    monthly_count: int
    daily_count: int
    monthly_exceeded: bool = False
    daily_exceeded: bool = False
    limit_type: Optional[LimitType] = None
    limit: Optional[int] = None
    charge: Decimal = Decimal("0")
    degraded: bool = False

    @property
    def allowed(self) -> bool:
        return self.outcome != QuotaOutcome.REJECT

    @property
    def current_usage(self) -> int:
        if self.limit_type == LimitType.DAILY:
            return self.daily_count
        return self.monthly_count


def exceeded_limit(policy: TierPolicy, monthly_count: int, daily_count: int) -> Optional[LimitType]:
    """
    Return which allowance one more unit would exceed, monthly first.

    Unbounded limits never compare as exceeded.
    """
    if policy.is_monthly_bounded and monthly_count >= policy.monthly_limit:
        return LimitType.MONTHLY
    if policy.is_daily_bounded and daily_count >= policy.daily_limit:
        return LimitType.DAILY
    return None


class QuotaGate:
    """Stateless quota decision maker."""

    def evaluate(
        self,
        policy: TierPolicy,
        monthly_count: int,
        daily_count: Optional[int],
        wants_overage: bool,
        daily_degraded: bool = False,
    ) -> QuotaDecision:
        """
        Evaluate a request against a tier policy.

        Args:
            policy: Policy of the account's tier.
            monthly_count: Units consumed this month.
            daily_count: Units consumed today; None is treated as 0.
            wants_overage: Request flag OR account consent OR saved setting.
            daily_degraded: The daily count could not be read and was replaced with 0.
        """
        daily = daily_count or 0
        monthly_exceeded = policy.is_monthly_bounded and monthly_count >= policy.monthly_limit
        daily_exceeded = policy.is_daily_bounded and daily >= policy.daily_limit

        if not monthly_exceeded and not daily_exceeded:
            return QuotaDecision(
                outcome=QuotaOutcome.ALLOW,
                monthly_count=monthly_count,
                daily_count=daily,
                degraded=daily_degraded,
            )

        limit_type = LimitType.MONTHLY if monthly_exceeded else LimitType.DAILY
        limit = policy.monthly_limit if monthly_exceeded else policy.daily_limit

        return QuotaDecision(
            outcome=QuotaOutcome.ALLOW_WITH_CHARGE if wants_overage else QuotaOutcome.REJECT,
            monthly_count=monthly_count,
            daily_count=daily,
            monthly_exceeded=monthly_exceeded,
            daily_exceeded=daily_exceeded,
            limit_type=limit_type,
            limit=limit,
            charge=policy.overage_rate if wants_overage else Decimal("0"),
            degraded=daily_degraded,
        )


def quota_exceeded_error(
    policy: TierPolicy,
    limit_type: LimitType,
    current_usage: int,
    has_overage_consent: bool,
    overage_enabled: bool,
) -> QuotaExceededError:
    """Build the 402 error for a rejected request."""
    limit = policy.monthly_limit if limit_type == LimitType.MONTHLY else policy.daily_limit
    if limit_type == LimitType.MONTHLY:
        message = (
            f"You've reached your monthly limit of {limit} repurposes on the "
            f"{policy.name} plan. Enable overage charges (${policy.overage_rate} each) "
            "or upgrade your plan."
        )
    else:
        message = (
            f"You've reached your daily limit of {limit} repurposes on the "
            f"{policy.name} plan. Try again tomorrow or enable overage charges."
        )
    return QuotaExceededError(
        message=message,
        limit_type=limit_type.value,
        limit=limit,
        current_usage=current_usage,
        plan=policy.tier.value,
        has_overage_consent=has_overage_consent,
        overage_enabled=overage_enabled,
        overage_rate=str(policy.overage_rate),
    )
