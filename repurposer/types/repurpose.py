"""
Models exchanged by the repurpose pipeline.

RepurposeRequest accepts both snake_case and the camelCase keys used by the
web client (``contentType``, ``allowOverage`` ...).
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class RepurposeState(str, Enum):
    VALIDATING = "validating"
    POLICY_RESOLVED = "policy_resolved"
    QUOTA_CHECKED = "quota_checked"
    PLATFORMS_RESOLVED = "platforms_resolved"
    GENERATING = "generating"
    PERSISTING = "persisting"
    CACHE_INVALIDATED = "cache_invalidated"
    DONE = "done"
    ERROR = "error"


class RepurposeRequest(BaseModel):
    """A request to turn one source text into platform variants."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    content_type: str = Field(..., min_length=1, max_length=50)
    content_id: Optional[str] = None
    platforms: Optional[List[str]] = None
    brand_voice: Optional[str] = Field(default=None, max_length=500)
    tone: Optional[str] = Field(default=None, max_length=100)
    additional_instructions: Optional[str] = Field(default=None, max_length=1000)
    allow_overage: bool = False
    provider: Optional[str] = None
    model: Optional[str] = Field(default=None, max_length=100)

    @field_validator("title", "content", "content_type")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("content_id", "provider", "model", "brand_voice", "tone")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("platforms")
    @classmethod
    def _normalize_platforms(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return None
        return [p.strip().lower() for p in v if p and p.strip()]


class GenerationRequest(BaseModel):
    """What the provider router needs to produce variants."""

    title: str
    content: str
    content_type: str
    platforms: List[str]
    brand_voice: Optional[str] = None
    tone: Optional[str] = None
    additional_instructions: Optional[str] = None


class GeneratedVariant(BaseModel):
    platform: str
    content: str
    character_count: int
    hashtags: List[str] = Field(default_factory=list)


class GenerationResult(BaseModel):
    variants: List[GeneratedVariant]
    provider: str
    model: str


class UsageSummary(BaseModel):
    """Usage figures returned with every successful repurpose."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_usage: int
    monthly_limit: Optional[int]
    remaining_usage: Optional[int]
    daily_usage: int
    daily_limit: Optional[int]
    plan: str
    overage_charged: bool = False
    overage_amount: Decimal = Decimal("0")


class RepurposeResult(BaseModel):
    """Outcome of a successful pipeline run."""

    content_id: Optional[str]
    title: str
    original_content: str
    content_type: str
    variants: List[GeneratedVariant]
    usage: UsageSummary
    provider: str
    model: str
    brand_voice: Optional[str] = None
    warning: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    saved: bool = True

    @property
    def platforms_used(self) -> List[str]:
        return [variant.platform for variant in self.variants]

    @property
    def total_characters(self) -> int:
        return sum(variant.character_count for variant in self.variants)
