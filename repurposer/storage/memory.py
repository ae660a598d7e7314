"""
In-process storage used when DATABASE_URL is not configured.

All in-memory stores share one MemoryDatabase so that a usage commit can
update the monthly counter, the daily counter and the overage ledger under a
single asyncio.Lock, mirroring the Postgres transaction.
"""

import asyncio
from datetime import date
from typing import Dict, List, Tuple

from ..types.content import ContentItem
from ..types.usage import Account, AccountSettings, OverageEvent, UsageHistoryEntry


class MemoryDatabase:
    def __init__(self):
        self.lock = asyncio.Lock()
        self.accounts: Dict[str, Account] = {}
        self.settings: Dict[str, AccountSettings] = {}
        self.daily_usage: Dict[Tuple[str, date], int] = {}
        self.overage_events: List[OverageEvent] = []
        self.usage_history: List[UsageHistoryEntry] = []
        self.content: Dict[str, ContentItem] = {}

    def add_account(self, account: Account, settings: AccountSettings = None) -> Account:
        """Seed an account (development and tests)."""
        self.accounts[account.id] = account
        if settings is not None:
            self.settings[account.id] = settings
        return account
