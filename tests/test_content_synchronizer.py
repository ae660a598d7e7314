"""
Tests for content persistence and the content list cache.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import redis.asyncio as redis

from repurposer.content.cache import ContentListCache
from repurposer.content.repository import InMemoryContentRepository
from repurposer.content.synchronizer import ContentSynchronizer
from repurposer.exceptions import ResourceNotFoundError
from repurposer.storage.memory import MemoryDatabase
from repurposer.storage.redis_client import RedisClient
from repurposer.types.content import ContentStatus
from repurposer.types.repurpose import GeneratedVariant


def _variants(*platforms):
    return [
        GeneratedVariant(platform=p, content=f"{p} copy", character_count=len(f"{p} copy"))
        for p in platforms
    ]


def _redis_cache(fake_client):
    """ContentListCache over a RedisClient stand-in returning ``fake_client``."""
    redis_client = MagicMock()
    redis_client.is_configured = True
    redis_client.get_client = AsyncMock(return_value=fake_client)
    return ContentListCache(redis_client, ttl_seconds=60)


@pytest.fixture
def synchronizer():
    return ContentSynchronizer(InMemoryContentRepository(MemoryDatabase()))


class TestPersist:
    @pytest.mark.asyncio
    async def test_creates_item_with_variants(self, synchronizer):
        item = await synchronizer.persist(
            owner_id="acct",
            title="Launch",
            original_text="Body",
            content_type="blog",
            variants=_variants("twitter", "instagram"),
            tier="free",
        )

        assert item.status == ContentStatus.REPURPOSED
        assert item.tier == "free"
        assert [v.text for v in item.variants] == ["twitter copy", "instagram copy"]

        stored = await synchronizer.ensure_owned("acct", item.id)
        assert stored.title == "Launch"

    @pytest.mark.asyncio
    async def test_replace_is_full_and_idempotent(self, synchronizer):
        item = await synchronizer.persist(
            "acct", "Launch", "Body", "blog", _variants("twitter", "instagram"), "free"
        )

        for _ in range(2):
            updated = await synchronizer.persist(
                "acct",
                "Launch",
                "Body",
                "blog",
                _variants("facebook"),
                "basic",
                existing_content_id=item.id,
            )

        assert updated.id == item.id
        stored = await synchronizer.ensure_owned("acct", item.id)
        assert [v.platform for v in stored.variants] == ["facebook"]

    @pytest.mark.asyncio
    async def test_replace_foreign_item_raises(self, synchronizer):
        item = await synchronizer.persist("owner", "T", "B", "blog", _variants("twitter"), "free")

        with pytest.raises(ResourceNotFoundError):
            await synchronizer.persist(
                "intruder", "T", "B", "blog", _variants("twitter"), "free",
                existing_content_id=item.id,
            )

    @pytest.mark.asyncio
    async def test_missing_and_foreign_look_the_same(self, synchronizer):
        item = await synchronizer.persist("owner", "T", "B", "blog", _variants("twitter"), "free")

        with pytest.raises(ResourceNotFoundError) as missing:
            await synchronizer.ensure_owned("intruder", "does-not-exist")
        with pytest.raises(ResourceNotFoundError) as foreign:
            await synchronizer.ensure_owned("intruder", item.id)

        assert missing.value.message == foreign.value.message
        assert missing.value.error_code == foreign.value.error_code


class TestListContent:
    @pytest.mark.asyncio
    async def test_lists_only_owner_items(self, synchronizer):
        first = await synchronizer.persist("acct", "One", "B", "blog", _variants("twitter"), "free")
        second = await synchronizer.persist("acct", "Two", "B", "blog", _variants("twitter"), "free")
        await synchronizer.persist("other", "Three", "B", "blog", _variants("twitter"), "free")

        result = await synchronizer.list_content("acct")

        assert result["cached"] is False
        assert {i["id"] for i in result["items"]} == {first.id, second.id}
        assert result["items"][0]["platforms"] == ["twitter"]
        assert result["items"][0]["status"] == "Repurposed"

    @pytest.mark.asyncio
    async def test_limit_and_offset(self, synchronizer):
        for n in range(3):
            await synchronizer.persist("acct", f"T{n}", "B", "blog", _variants("twitter"), "free")

        page = await synchronizer.list_content("acct", limit=2, offset=1)
        assert len(page["items"]) == 2

    @pytest.mark.asyncio
    async def test_first_page_served_from_cache(self):
        fake = MagicMock()
        fake.get = AsyncMock(return_value=json.dumps([{"id": "cached-1"}]))
        repository = InMemoryContentRepository(MemoryDatabase())
        synchronizer = ContentSynchronizer(repository, _redis_cache(fake))

        result = await synchronizer.list_content("acct")

        assert result == {"items": [{"id": "cached-1"}], "cached": True}

    @pytest.mark.asyncio
    async def test_miss_populates_cache(self):
        fake = MagicMock()
        fake.get = AsyncMock(return_value=None)
        fake.set = AsyncMock()
        synchronizer = ContentSynchronizer(
            InMemoryContentRepository(MemoryDatabase()), _redis_cache(fake)
        )

        await synchronizer.list_content("acct")

        fake.set.assert_awaited_once()
        key = fake.set.await_args.args[0]
        assert key == "content:list:acct"
        assert fake.set.await_args.kwargs["ex"] == 60

    @pytest.mark.asyncio
    async def test_small_first_page_does_not_truncate_larger_one(self):
        store = {}
        fake = MagicMock()
        fake.get = AsyncMock(side_effect=store.get)
        fake.set = AsyncMock(side_effect=lambda key, value, ex=None: store.__setitem__(key, value))
        synchronizer = ContentSynchronizer(
            InMemoryContentRepository(MemoryDatabase()), _redis_cache(fake)
        )
        for n in range(5):
            await synchronizer.persist("acct", f"T{n}", "B", "blog", _variants("twitter"), "free")

        small = await synchronizer.list_content("acct", limit=2)
        large = await synchronizer.list_content("acct", limit=50)

        assert len(small["items"]) == 2
        assert large["cached"] is True
        assert len(large["items"]) == 5
        assert large["items"][:2] == small["items"]


class TestContentListCache:
    @pytest.mark.asyncio
    async def test_unconfigured_cache_is_a_noop(self):
        cache = ContentListCache(None)
        assert await cache.get("acct") is None
        await cache.set("acct", [])
        assert await cache.invalidate("acct") is True

    @pytest.mark.asyncio
    async def test_read_errors_are_misses(self):
        fake = MagicMock()
        fake.get = AsyncMock(side_effect=redis.ConnectionError("gone"))
        assert await _redis_cache(fake).get("acct") is None

    @pytest.mark.asyncio
    async def test_malformed_entry_is_a_miss(self):
        fake = MagicMock()
        fake.get = AsyncMock(return_value="{not json")
        assert await _redis_cache(fake).get("acct") is None

    @pytest.mark.asyncio
    async def test_invalidate_deletes_key(self):
        fake = MagicMock()
        fake.delete = AsyncMock()
        assert await _redis_cache(fake).invalidate("acct") is True
        fake.delete.assert_awaited_once_with("content:list:acct")

    @pytest.mark.asyncio
    async def test_invalidate_failure_reported(self):
        fake = MagicMock()
        fake.delete = AsyncMock(side_effect=redis.TimeoutError("slow"))
        assert await _redis_cache(fake).invalidate("acct") is False

    @pytest.mark.asyncio
    async def test_unreachable_redis_reports_stale(self):
        cache = _redis_cache(None)
        assert await cache.invalidate("acct") is False


class TestRedisClient:
    @pytest.mark.asyncio
    async def test_unconfigured_never_connects(self):
        client = RedisClient(None)
        assert await client.get_client() is None
        assert (await client.health_check())["status"] == "not_configured"

    @pytest.mark.asyncio
    async def test_failed_connect_is_held_off(self):
        broken = MagicMock()
        broken.ping = AsyncMock(side_effect=redis.ConnectionError("refused"))
        broken.aclose = AsyncMock()

        with patch("repurposer.storage.redis_client.redis.from_url", return_value=broken) as from_url:
            client = RedisClient("redis://cache:6379/0", retry_after=60)
            assert await client.get_client() is None
            assert await client.get_client() is None

        assert from_url.call_count == 1
        assert not client.is_available
        health = await client.health_check()
        assert health["status"] == "unavailable"
        assert "refused" in health["error"]

    @pytest.mark.asyncio
    async def test_connect_after_hold_off_expires(self):
        healthy = MagicMock()
        healthy.ping = AsyncMock(return_value=True)
        healthy.info = AsyncMock(return_value={"redis_version": "7.2.0"})

        with patch("repurposer.storage.redis_client.redis.from_url", return_value=healthy):
            client = RedisClient("redis://cache:6379/0", retry_after=0)
            client._failed_at = 0.0
            assert await client.get_client() is healthy
            health = await client.health_check()

        assert health["connected"] is True
        assert health["redis_version"] == "7.2.0"
