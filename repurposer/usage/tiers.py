"""
Tier policy registry.

The single source of truth for per-tier limits, platform allowlists and
overage rates. Policies are immutable, so one registry instance is shared
across requests without locking.
"""

import logging
from typing import Dict, List, Mapping, Optional, Union

from ..types.usage import TIER_POLICIES, SubscriptionTier, TierPolicy

logger = logging.getLogger(__name__)

TierLike = Union[SubscriptionTier, str, None]


def parse_tier(value: TierLike) -> Optional[SubscriptionTier]:
    """Return the matching tier, or None for unknown values."""
    if isinstance(value, SubscriptionTier):
        return value
    if not value:
        return None
    try:
        return SubscriptionTier(str(value).strip().lower())
    except ValueError:
        return None


class TierPolicyRegistry:
    """Read-only lookup of TierPolicy by tier."""

    def __init__(self, policies: Optional[Mapping[SubscriptionTier, TierPolicy]] = None):
        policies = dict(policies or TIER_POLICIES)
        if SubscriptionTier.FREE not in policies:
            raise ValueError("Tier policy registry requires a free tier policy")
        self._policies: Dict[SubscriptionTier, TierPolicy] = policies

    def resolve_tier(self, tier: TierLike) -> SubscriptionTier:
        """Map any stored tier value to a known tier, defaulting to free."""
        parsed = parse_tier(tier)
        if parsed is None or parsed not in self._policies:
            logger.warning("Unknown subscription tier %r, applying free tier policy", tier)
            return SubscriptionTier.FREE
        return parsed

    def policy_for(self, tier: TierLike) -> TierPolicy:
        """
        Get the policy for a tier.

        Unknown or missing tiers resolve to the free policy so an account can
        never gain entitlements through a bad value.
        """
        return self._policies[self.resolve_tier(tier)]

    def all_policies(self) -> List[TierPolicy]:
        return [self._policies[tier] for tier in SubscriptionTier if tier in self._policies]

    def describe(self) -> List[dict]:
        """Public tier comparison used by the tiers endpoint."""
        return [
            {
                "tier": policy.tier.value,
                "name": policy.name,
                "monthlyLimit": policy.monthly_limit,
                "dailyLimit": policy.daily_limit,
                "platforms": list(policy.allowed_platforms),
                "overageRate": str(policy.overage_rate),
                "maxTitleLength": policy.max_title_length,
                "maxContentLength": policy.max_content_length,
                "aiModel": policy.ai_model,
                "features": list(policy.features),
                "priceMonthly": str(policy.price_monthly),
                "endpoint": tier_endpoint(policy.tier),
            }
            for policy in self.all_policies()
        ]


def tier_endpoint(tier: SubscriptionTier) -> str:
    return f"/api/tiers/{tier.value}/repurpose"
