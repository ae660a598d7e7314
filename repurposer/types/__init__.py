"""
Type definitions for the content repurposer.
"""

from .content import ContentItem, ContentStatus, Variant
from .repurpose import (
    GeneratedVariant,
    GenerationRequest,
    GenerationResult,
    RepurposeRequest,
    RepurposeResult,
    RepurposeState,
    UsageSummary,
)
from .usage import (
    TIER_POLICIES,
    Account,
    AccountSettings,
    LimitType,
    OverageEvent,
    OverageStatus,
    Platform,
    SubscriptionStatus,
    SubscriptionTier,
    TierPolicy,
    UsageCommit,
    UsageHistoryEntry,
    UsageStats,
)

__all__ = [
    # Content types
    "ContentItem",
    "ContentStatus",
    "Variant",
    # Pipeline types
    "GeneratedVariant",
    "GenerationRequest",
    "GenerationResult",
    "RepurposeRequest",
    "RepurposeResult",
    "RepurposeState",
    "UsageSummary",
    # Usage types
    "TIER_POLICIES",
    "Account",
    "AccountSettings",
    "LimitType",
    "OverageEvent",
    "OverageStatus",
    "Platform",
    "SubscriptionStatus",
    "SubscriptionTier",
    "TierPolicy",
    "UsageCommit",
    "UsageHistoryEntry",
    "UsageStats",
]
