"""
Content storage backends.

Repositories only move rows. Ownership and status rules live in
ContentSynchronizer.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

import asyncpg

from ..exceptions import DatabaseError
from ..storage.db import Database
from ..storage.memory import MemoryDatabase
from ..types.content import ContentItem, ContentStatus, Variant

logger = logging.getLogger(__name__)


class ContentRepository(ABC):
    @abstractmethod
    async def get(self, content_id: str) -> Optional[ContentItem]:
        pass

    @abstractmethod
    async def create(self, item: ContentItem) -> ContentItem:
        """Insert the item and its variants in one atomic step."""
        pass

    @abstractmethod
    async def replace_variants(
        self,
        content_id: str,
        owner_id: str,
        variants: List[Variant],
        status: ContentStatus,
        updated_at: datetime,
    ) -> Optional[ContentItem]:
        """
        Atomically swap the full variant set of an owned item.

        Returns None when the item no longer exists for that owner.
        """
        pass

    @abstractmethod
    async def list_for_owner(self, owner_id: str, limit: int = 50, offset: int = 0) -> List[ContentItem]:
        pass


class InMemoryContentRepository(ContentRepository):
    def __init__(self, memory: MemoryDatabase):
        self._memory = memory

    async def get(self, content_id: str) -> Optional[ContentItem]:
        item = self._memory.content.get(content_id)
        return item.model_copy(deep=True) if item else None

    async def create(self, item: ContentItem) -> ContentItem:
        async with self._memory.lock:
            self._memory.content[item.id] = item.model_copy(deep=True)
        return item

    async def replace_variants(
        self,
        content_id: str,
        owner_id: str,
        variants: List[Variant],
        status: ContentStatus,
        updated_at: datetime,
    ) -> Optional[ContentItem]:
        async with self._memory.lock:
            item = self._memory.content.get(content_id)
            if item is None or item.owner_id != owner_id:
                return None
            updated = item.model_copy(
                update={
                    "variants": [v.model_copy() for v in variants],
                    "status": status,
                    "updated_at": updated_at,
                },
                deep=True,
            )
            self._memory.content[content_id] = updated
            return updated.model_copy(deep=True)

    async def list_for_owner(self, owner_id: str, limit: int = 50, offset: int = 0) -> List[ContentItem]:
        items = [item for item in self._memory.content.values() if item.owner_id == owner_id]
        items.sort(key=lambda item: item.updated_at, reverse=True)
        return [item.model_copy(deep=True) for item in items[offset:offset + limit]]


class PostgresContentRepository(ContentRepository):
    def __init__(self, database: Database):
        self._db = database

    @staticmethod
    def _item_from_row(row, variants: List[Variant]) -> ContentItem:
        return ContentItem(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            original_text=row["original_text"],
            content_type=row["content_type"],
            status=ContentStatus(row["status"]),
            tier=row["tier"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            variants=variants,
        )

    @staticmethod
    async def _insert_variants(conn: asyncpg.Connection, content_id: str, variants: List[Variant]) -> None:
        await conn.executemany(
            """
            INSERT INTO repurposed_content (content_id, platform, text, created_at)
            VALUES ($1, $2, $3, $4)
            """,
            [(content_id, v.platform, v.text, v.created_at) for v in variants],
        )

    async def _variants_for(self, conn: asyncpg.Connection, content_id: str) -> List[Variant]:
        rows = await conn.fetch(
            """
            SELECT platform, text, created_at
            FROM repurposed_content
            WHERE content_id = $1
            ORDER BY id
            """,
            content_id,
        )
        return [Variant(platform=r["platform"], text=r["text"], created_at=r["created_at"]) for r in rows]

    async def get(self, content_id: str) -> Optional[ContentItem]:
        try:
            async with self._db.transaction() as conn:
                row = await conn.fetchrow("SELECT * FROM content WHERE id = $1", content_id)
                if not row:
                    return None
                variants = await self._variants_for(conn, content_id)
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="get_content", original_error=e) from e
        return self._item_from_row(row, variants)

    async def create(self, item: ContentItem) -> ContentItem:
        try:
            async with self._db.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO content
                        (id, owner_id, title, original_text, content_type, status, tier, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    item.id,
                    item.owner_id,
                    item.title,
                    item.original_text,
                    item.content_type,
                    item.status.value,
                    item.tier,
                    item.created_at,
                    item.updated_at,
                )
                await self._insert_variants(conn, item.id, item.variants)
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="create_content", original_error=e) from e
        return item

    async def replace_variants(
        self,
        content_id: str,
        owner_id: str,
        variants: List[Variant],
        status: ContentStatus,
        updated_at: datetime,
    ) -> Optional[ContentItem]:
        try:
            async with self._db.transaction() as conn:
                row = await conn.fetchrow(
                    """
                    UPDATE content
                    SET status = $3, updated_at = $4
                    WHERE id = $1 AND owner_id = $2
                    RETURNING *
                    """,
                    content_id,
                    owner_id,
                    status.value,
                    updated_at,
                )
                if not row:
                    return None
                await conn.execute("DELETE FROM repurposed_content WHERE content_id = $1", content_id)
                await self._insert_variants(conn, content_id, variants)
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="replace_variants", original_error=e) from e
        return self._item_from_row(row, list(variants))

    async def list_for_owner(self, owner_id: str, limit: int = 50, offset: int = 0) -> List[ContentItem]:
        try:
            async with self._db.transaction() as conn:
                rows = await conn.fetch(
                    """
                    SELECT * FROM content
                    WHERE owner_id = $1
                    ORDER BY updated_at DESC
                    LIMIT $2 OFFSET $3
                    """,
                    owner_id,
                    limit,
                    offset,
                )
                items = []
                for row in rows:
                    items.append(self._item_from_row(row, await self._variants_for(conn, row["id"])))
        except (asyncpg.PostgresError, OSError) as e:
            raise DatabaseError(operation="list_content", original_error=e) from e
        return items
