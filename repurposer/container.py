"""
Composition root.

Builds every long-lived component once, picking Postgres or in-memory
storage from configuration. The FastAPI lifespan owns the container and
exposes it as ``app.state.container``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .content.cache import ContentListCache
from .content.repository import (
    ContentRepository,
    InMemoryContentRepository,
    PostgresContentRepository,
)
from .content.synchronizer import ContentSynchronizer
from .repurpose.orchestrator import RepurposeOrchestrator
from .storage.db import Database
from .storage.memory import MemoryDatabase
from .storage.redis_client import RedisClient
from .storage.schema import SchemaInitializer
from .text_generation.core import close_llm_clients
from .text_generation.router import ProviderRouter
from .types.usage import Account, SubscriptionStatus
from .usage.accounts import AccountRepository, InMemoryAccountRepository, PostgresAccountRepository
from .usage.counter_store import (
    InMemoryUsageCounterStore,
    PostgresUsageCounterStore,
    UsageCounterStore,
)
from .usage.ledger import InMemoryOverageLedger, OverageLedger, PostgresOverageLedger
from .usage.service import UsageService
from .usage.tiers import TierPolicyRegistry

logger = logging.getLogger(__name__)

DEV_ACCOUNT_ID = "dev_user"


@dataclass
class ServiceContainer:
    settings: Settings
    registry: TierPolicyRegistry
    accounts: AccountRepository
    counters: UsageCounterStore
    ledger: OverageLedger
    content: ContentRepository
    router: ProviderRouter
    synchronizer: ContentSynchronizer
    cache: ContentListCache
    schema: SchemaInitializer
    orchestrator: RepurposeOrchestrator
    usage: UsageService
    database: Optional[Database] = None
    memory: Optional[MemoryDatabase] = None
    redis: Optional[RedisClient] = None

    @property
    def backend(self) -> str:
        return "postgres" if self.database is not None else "memory"

    @classmethod
    def build(
        cls,
        settings: Settings,
        router: Optional[ProviderRouter] = None,
        memory: Optional[MemoryDatabase] = None,
    ) -> "ServiceContainer":
        """
        Wire all components.

        Args:
            settings: Application settings.
            router: Provider router override (tests inject fakes here).
            memory: In-memory database override; forces the in-memory backend.
        """
        registry = TierPolicyRegistry()
        database: Optional[Database] = None

        if memory is None and settings.database.is_configured:
            database = Database(
                settings.database.database_url,
                min_size=settings.database.database_pool_min_size,
                max_size=settings.database.database_pool_max_size,
            )
            accounts: AccountRepository = PostgresAccountRepository(database)
            ledger: OverageLedger = PostgresOverageLedger(database)
            counters: UsageCounterStore = PostgresUsageCounterStore(database)
            content: ContentRepository = PostgresContentRepository(database)
        else:
            memory = memory or MemoryDatabase()
            accounts = InMemoryAccountRepository(memory)
            ledger = InMemoryOverageLedger(memory)
            counters = InMemoryUsageCounterStore(memory, ledger)
            content = InMemoryContentRepository(memory)
            if settings.is_dev_mode and DEV_ACCOUNT_ID not in memory.accounts:
                memory.add_account(
                    Account(
                        id=DEV_ACCOUNT_ID,
                        tier=settings.security.dev_account_tier,
                        subscription_status=SubscriptionStatus.ACTIVE.value,
                    )
                )

        redis_client = RedisClient(settings.redis.redis_url) if settings.redis.is_configured else None
        cache = ContentListCache(redis_client, ttl_seconds=settings.redis.content_cache_ttl_seconds)
        schema = SchemaInitializer(database)
        router = router or ProviderRouter.from_settings(settings.llm)
        synchronizer = ContentSynchronizer(content, cache)

        orchestrator = RepurposeOrchestrator(
            registry=registry,
            accounts=accounts,
            counters=counters,
            router=router,
            synchronizer=synchronizer,
            cache=cache,
            schema=schema,
            upgrade_url=settings.security.upgrade_url,
        )
        usage = UsageService(registry, accounts, counters, ledger)

        logger.info(
            "Service container built",
            extra={
                "storage_backend": "postgres" if database is not None else "memory",
                "providers": router.available_providers(),
                "cache": redis_client is not None,
            },
        )

        return cls(
            settings=settings,
            registry=registry,
            accounts=accounts,
            counters=counters,
            ledger=ledger,
            content=content,
            router=router,
            synchronizer=synchronizer,
            cache=cache,
            schema=schema,
            orchestrator=orchestrator,
            usage=usage,
            database=database,
            memory=memory if database is None else None,
            redis=redis_client,
        )

    async def startup(self) -> None:
        await self.schema.initialize()

    async def shutdown(self) -> None:
        await close_llm_clients()
        if self.redis is not None:
            await self.redis.close()
        if self.database is not None:
            await self.database.close()
        logger.info("Service container shut down")
