"""
Pydantic models for source content and its platform variants.
"""

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, Field

from .usage import utc_now


class ContentStatus(str, Enum):
    GENERATED = "Generated"
    REPURPOSED = "Repurposed"


class Variant(BaseModel):
    """A platform-specific rendition of a content item."""

    platform: str
    text: str
    created_at: datetime = Field(default_factory=utc_now)


class ContentItem(BaseModel):
    """A user's source content together with its current variant set."""

    id: str
    owner_id: str
    title: str
    original_text: str
    content_type: str
    status: ContentStatus = ContentStatus.GENERATED
    tier: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    variants: List[Variant] = Field(default_factory=list)

    def summary(self) -> dict:
        """Compact representation used by the content list and its cache."""
        return {
            "id": self.id,
            "title": self.title,
            "contentType": self.content_type,
            "status": self.status.value,
            "platforms": [variant.platform for variant in self.variants],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
