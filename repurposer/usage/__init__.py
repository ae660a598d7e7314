"""
Usage and tier enforcement: tier policies, counters, the overage ledger and
the quota gate.
"""

from .accounts import AccountRepository, InMemoryAccountRepository, PostgresAccountRepository
from .counter_store import (
    InMemoryUsageCounterStore,
    PostgresUsageCounterStore,
    UsageCounterStore,
)
from .gate import QuotaDecision, QuotaGate, QuotaOutcome, exceeded_limit
from .ledger import InMemoryOverageLedger, OverageLedger, PostgresOverageLedger
from .service import UsageService, get_day_bounds, get_period_bounds
from .tiers import TierPolicyRegistry, tier_endpoint

__all__ = [
    "AccountRepository",
    "InMemoryAccountRepository",
    "PostgresAccountRepository",
    "UsageCounterStore",
    "InMemoryUsageCounterStore",
    "PostgresUsageCounterStore",
    "QuotaDecision",
    "QuotaGate",
    "QuotaOutcome",
    "exceeded_limit",
    "OverageLedger",
    "InMemoryOverageLedger",
    "PostgresOverageLedger",
    "TierPolicyRegistry",
    "tier_endpoint",
    "UsageService",
    "get_period_bounds",
    "get_day_bounds",
]
