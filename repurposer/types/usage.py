"""
Pydantic models for subscription tiers, usage counters and overage billing.

This module defines the data models for:
- Subscription tiers and their immutable policies
- Accounts and their saved repurposing settings
- Usage commits, history archives and overage events
- Usage statistics for API responses
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionTier(str, Enum):
    """Closed set of subscription tiers."""

    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    AGENCY = "agency"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELED = "canceled"
    TRIALING = "trialing"


# Statuses that unlock a paid tier
ENTITLED_STATUSES = frozenset({SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIALING.value})


class Platform(str, Enum):
    """Target platforms a source text can be repurposed for."""

    TWITTER = "twitter"
    INSTAGRAM = "instagram"
    FACEBOOK = "facebook"
    LINKEDIN = "linkedin"
    THREAD = "thread"
    EMAIL = "email"
    NEWSLETTER = "newsletter"
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"


class LimitType(str, Enum):
    MONTHLY = "monthly"
    DAILY = "daily"


class TierPolicy(BaseModel):
    """
    Immutable limits and entitlements for one tier.

    ``None`` limits are unbounded: no count ever exceeds them.
    """

    model_config = ConfigDict(frozen=True)

    tier: SubscriptionTier
    name: str
    monthly_limit: Optional[int] = Field(
        ...,
        ge=0,
        description="Maximum repurposes per calendar month (None for unbounded)",
    )
    daily_limit: Optional[int] = Field(
        default=None,
        ge=0,
        description="Maximum repurposes per UTC day (None for unbounded)",
    )
    allowed_platforms: Tuple[str, ...] = Field(
        ...,
        description="Platforms this tier may generate for, in display order",
    )
    overage_rate: Decimal = Field(
        ...,
        ge=0,
        description="Charge in USD for each repurpose beyond the allowance",
    )
    max_title_length: int = Field(default=100, ge=1)
    max_content_length: int = Field(default=2000, ge=1)
    ai_model: str = Field(default="basic", description="Model class offered on this tier")
    features: Tuple[str, ...] = Field(default_factory=tuple)
    price_monthly: Decimal = Field(default=Decimal("0"))

    @property
    def is_paid(self) -> bool:
        return self.tier != SubscriptionTier.FREE

    @property
    def is_monthly_bounded(self) -> bool:
        return self.monthly_limit is not None

    @property
    def is_daily_bounded(self) -> bool:
        return self.daily_limit is not None

    def allows_platform(self, platform: str) -> bool:
        return platform in self.allowed_platforms


_STANDARD_PLATFORMS = (
    Platform.TWITTER.value,
    Platform.INSTAGRAM.value,
    Platform.FACEBOOK.value,
    Platform.LINKEDIN.value,
    Platform.THREAD.value,
    Platform.EMAIL.value,
    Platform.NEWSLETTER.value,
)

TIER_POLICIES: Dict[SubscriptionTier, TierPolicy] = {
    SubscriptionTier.FREE: TierPolicy(
        tier=SubscriptionTier.FREE,
        name="Free",
        monthly_limit=5,
        daily_limit=None,
        allowed_platforms=(Platform.TWITTER.value, Platform.INSTAGRAM.value),
        overage_rate=Decimal("0.12"),
        max_title_length=100,
        max_content_length=2000,
        ai_model="basic",
        features=(),
        price_monthly=Decimal("0"),
    ),
    SubscriptionTier.BASIC: TierPolicy(
        tier=SubscriptionTier.BASIC,
        name="Basic",
        monthly_limit=60,
        daily_limit=2,
        allowed_platforms=(
            Platform.TWITTER.value,
            Platform.INSTAGRAM.value,
            Platform.FACEBOOK.value,
        ),
        overage_rate=Decimal("0.10"),
        max_title_length=150,
        max_content_length=5000,
        ai_model="standard",
        features=("analytics",),
        price_monthly=Decimal("6.99"),
    ),
    SubscriptionTier.PRO: TierPolicy(
        tier=SubscriptionTier.PRO,
        name="Pro",
        monthly_limit=150,
        daily_limit=5,
        allowed_platforms=_STANDARD_PLATFORMS,
        overage_rate=Decimal("0.08"),
        max_title_length=200,
        max_content_length=10000,
        ai_model="advanced",
        features=("analytics", "priority_support"),
        price_monthly=Decimal("14.99"),
    ),
    SubscriptionTier.AGENCY: TierPolicy(
        tier=SubscriptionTier.AGENCY,
        name="Agency",
        monthly_limit=450,
        daily_limit=None,
        allowed_platforms=_STANDARD_PLATFORMS,
        overage_rate=Decimal("0.06"),
        max_title_length=300,
        max_content_length=25000,
        ai_model="premium",
        features=("analytics", "priority_support", "team_collaboration"),
        price_monthly=Decimal("29.99"),
    ),
}


class Account(BaseModel):
    """
    The subscriber as seen by the usage engine.

    ``tier`` is kept as the raw stored string; the registry maps unknown
    values to the free policy.
    """

    id: str
    tier: str = SubscriptionTier.FREE.value
    subscription_status: str = SubscriptionStatus.INACTIVE.value
    monthly_usage_count: int = Field(default=0, ge=0)
    overage_consent: bool = False
    email: Optional[str] = None

    @property
    def has_entitled_subscription(self) -> bool:
        return self.subscription_status in ENTITLED_STATUSES


class AccountSettings(BaseModel):
    """Saved repurposing preferences for an account."""

    preferred_platforms: List[str] = Field(default_factory=list)
    overage_enabled: bool = False
    brand_voice: Optional[str] = None


class OverageStatus(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"


class OverageEvent(BaseModel):
    """An append-only record of units consumed beyond the allowance."""

    id: str
    account_id: str
    count: int = Field(..., ge=1)
    rate: Decimal
    amount: Decimal
    status: OverageStatus = OverageStatus.PENDING
    created_at: datetime = Field(default_factory=utc_now)


class UsageCommit(BaseModel):
    """
    Result of atomically consuming one unit of quota.

    ``accepted`` is False only when the allowance was already spent at commit
    time and the caller did not consent to overage; nothing was written.
    """

    accepted: bool
    monthly_count: int
    daily_count: int
    over_quota: bool = False
    limit_type: Optional[LimitType] = None
    overage_event: Optional[OverageEvent] = None


class UsageHistoryEntry(BaseModel):
    """Monthly usage archived before the counter reset."""

    account_id: str
    month: int = Field(..., ge=1, le=12)
    year: int
    usage_count: int = Field(..., ge=0)
    archived_at: datetime = Field(default_factory=utc_now)


class UsageStats(BaseModel):
    """Current usage for an account, returned by the usage API."""

    account_id: str
    plan: SubscriptionTier
    monthly_usage: int
    monthly_limit: Optional[int]
    monthly_remaining: Optional[int]
    daily_usage: int
    daily_limit: Optional[int]
    daily_remaining: Optional[int]
    overage_rate: Decimal
    overage_consent: bool
    pending_overage: Decimal = Decimal("0")
    period_start: datetime
    period_end: datetime
