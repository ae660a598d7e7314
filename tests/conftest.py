"""
Pytest configuration and shared fixtures for the content repurposer tests.

This module provides common fixtures used across all test files:
- In-memory storage with seeded accounts
- A provider router backed by a fake generator (no network)
- A service container and FastAPI app wired to both
"""

import asyncio
import os
import sys
from typing import Optional

import pytest

# Environment setup before any imports
os.environ["DEV_MODE"] = "true"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
# Set a mock API key so the default app has a provider (tests inject their own router)
os.environ["OPENAI_API_KEY"] = "sk-test-mock-key-for-unit-tests-only"
for _name in ("DATABASE_URL", "DATABASE_URL_DIRECT", "REDIS_URL", "SENTRY_DSN"):
    os.environ.pop(_name, None)

# Ensure project root is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from repurposer.config import Settings  # noqa: E402
from repurposer.container import ServiceContainer  # noqa: E402
from repurposer.storage.memory import MemoryDatabase  # noqa: E402
from repurposer.text_generation.core import create_provider  # noqa: E402
from repurposer.text_generation.router import ProviderRouter  # noqa: E402
from repurposer.types.usage import Account, AccountSettings  # noqa: E402
from repurposer.usage.counter_store import utc_today  # noqa: E402

GENERATED_TEXT = "Big news from the launch today #launch #product"


class FakeGenerator:
    """Stands in for generate_text_async; records every prompt it receives."""

    def __init__(self, text: str = GENERATED_TEXT, delay: float = 0, error: Optional[Exception] = None):
        self.text = text
        self.delay = delay
        self.error = error
        self.prompts = []

    async def __call__(self, prompt, provider, options=None):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.text

    @property
    def call_count(self) -> int:
        return len(self.prompts)


def make_router(generator, providers=("openai",)) -> ProviderRouter:
    return ProviderRouter(
        {name: create_provider(name, f"test-key-{name}") for name in providers},
        generator=generator,
    )


def seed_account(
    memory: MemoryDatabase,
    account_id: str,
    tier: str = "free",
    status: str = "active",
    monthly: int = 0,
    daily: int = 0,
    consent: bool = False,
    settings: Optional[AccountSettings] = None,
) -> Account:
    account = memory.add_account(
        Account(
            id=account_id,
            tier=tier,
            subscription_status=status,
            monthly_usage_count=monthly,
            overage_consent=consent,
        ),
        settings,
    )
    if daily:
        memory.daily_usage[(account_id, utc_today())] = daily
    return account


def build_test_client(memory, key_path, generator=None, settings=None):
    """
    TestClient over an in-memory container.

    Returns (client, container, api_key_store).
    """
    from fastapi.testclient import TestClient

    from app.auth import APIKeyStore
    from server import create_app

    settings = settings or Settings()
    container = ServiceContainer.build(
        settings, router=make_router(generator or FakeGenerator()), memory=memory
    )
    store = APIKeyStore(key_path)
    app = create_app(settings=settings, container=container, api_key_store=store)
    return TestClient(app), container, store


@pytest.fixture
def memory():
    return MemoryDatabase()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def router(generator):
    return make_router(generator)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def container(settings, memory, router):
    return ServiceContainer.build(settings, router=router, memory=memory)


@pytest.fixture
def orchestrator(container):
    return container.orchestrator


@pytest.fixture
def api_key_store(tmp_path):
    from app.auth import APIKeyStore

    return APIKeyStore(str(tmp_path / "api_keys.json"))


@pytest.fixture
def client(settings, container, api_key_store):
    """FastAPI test client wired to the in-memory container."""
    from fastapi.testclient import TestClient
    from server import create_app

    app = create_app(settings=settings, container=container, api_key_store=api_key_store)
    return TestClient(app)


# Test environment cleanup
@pytest.fixture(autouse=True)
def reset_environment():
    """Reset environment variables after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)
