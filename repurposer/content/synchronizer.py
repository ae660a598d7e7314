"""
Content persistence synchronizer.

Saves generated variants either as a new content item or as the complete
replacement variant set of an existing item the caller owns. Repurposed
content always ends in the ``Repurposed`` status.
"""

import logging
import uuid
from typing import List, Optional, Sequence

from ..exceptions import ErrorCode, ResourceNotFoundError
from ..types.content import ContentItem, ContentStatus, Variant
from ..types.repurpose import GeneratedVariant
from ..types.usage import utc_now
from .cache import ContentListCache
from .repository import ContentRepository

logger = logging.getLogger(__name__)

# Largest page the content list accepts; the cached first page always holds this many
MAX_PAGE_SIZE = 100


def _not_found(content_id: str) -> ResourceNotFoundError:
    # Same response for "missing" and "owned by someone else"
    return ResourceNotFoundError(
        message="Content not found",
        resource_type="content",
        resource_id=content_id,
        error_code=ErrorCode.CONTENT_NOT_FOUND,
    )


class ContentSynchronizer:
    def __init__(self, repository: ContentRepository, cache: Optional[ContentListCache] = None):
        self._repository = repository
        self._cache = cache

    async def ensure_owned(self, owner_id: str, content_id: str) -> ContentItem:
        """
        Return the item if ``owner_id`` owns it.

        Raises:
            ResourceNotFoundError: If it does not exist or belongs to another account.
        """
        item = await self._repository.get(content_id)
        if item is None or item.owner_id != owner_id:
            raise _not_found(content_id)
        return item

    async def persist(
        self,
        owner_id: str,
        title: str,
        original_text: str,
        content_type: str,
        variants: Sequence[GeneratedVariant],
        tier: str,
        existing_content_id: Optional[str] = None,
    ) -> ContentItem:
        """
        Save variants for a repurpose run.

        Without ``existing_content_id`` a new item is created. With it, the
        item's variants are fully replaced; calling this twice with the same
        variants leaves the same state.

        Raises:
            ResourceNotFoundError: If the existing item is missing or not owned.
            DatabaseError: If the storage backend fails.
        """
        now = utc_now()
        rows: List[Variant] = [
            Variant(platform=v.platform, text=v.content, created_at=now) for v in variants
        ]
        status = ContentStatus.REPURPOSED if rows else ContentStatus.GENERATED

        if existing_content_id:
            updated = await self._repository.replace_variants(
                content_id=existing_content_id,
                owner_id=owner_id,
                variants=rows,
                status=status,
                updated_at=now,
            )
            if updated is None:
                raise _not_found(existing_content_id)
            logger.info(
                "Replaced variants of content %s (%d platforms)", existing_content_id, len(rows)
            )
            return updated

        item = ContentItem(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            title=title,
            original_text=original_text,
            content_type=content_type,
            status=status,
            tier=tier,
            created_at=now,
            updated_at=now,
            variants=rows,
        )
        created = await self._repository.create(item)
        logger.info("Created content %s (%d platforms)", created.id, len(rows))
        return created

    async def list_content(self, owner_id: str, limit: int = 50, offset: int = 0) -> dict:
        """
        Content summaries for the owner, newest first.

        The first page is cached at its largest size and sliced to ``limit``,
        so a small page never masks items from a larger one.
        """
        cacheable = offset == 0 and self._cache is not None
        if cacheable:
            cached = await self._cache.get(owner_id)
            if cached is not None:
                return {"items": cached[:limit], "cached": True}

        if not cacheable:
            items = await self._repository.list_for_owner(owner_id, limit=limit, offset=offset)
            return {"items": [item.summary() for item in items], "cached": False}

        items = await self._repository.list_for_owner(owner_id, limit=MAX_PAGE_SIZE, offset=0)
        summaries = [item.summary() for item in items]
        await self._cache.set(owner_id, summaries)
        return {"items": summaries[:limit], "cached": False}
