"""
Response models for the repurpose and usage endpoints.

The web client reads camelCase keys, so every model here serializes by alias.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from repurposer.types.repurpose import RepurposeResult, UsageSummary
from repurposer.types.usage import UsageStats


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RepurposedVariant(CamelModel):
    platform: str
    content: str
    character_count: int
    hashtags: List[str] = Field(default_factory=list)


class RepurposedContent(CamelModel):
    id: Optional[str]
    title: str
    original_content: str
    content_type: str
    repurposed: List[RepurposedVariant]


class RepurposeMetadata(CamelModel):
    platforms_used: List[str]
    provider: str
    model: str
    brand_voice: Optional[str] = None
    total_characters: int


class RepurposeResponse(CamelModel):
    success: bool = True
    content: RepurposedContent
    usage: UsageSummary
    metadata: RepurposeMetadata
    warning: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: RepurposeResult) -> "RepurposeResponse":
        return cls(
            content=RepurposedContent(
                id=result.content_id,
                title=result.title,
                original_content=result.original_content,
                content_type=result.content_type,
                repurposed=[
                    RepurposedVariant(
                        platform=variant.platform,
                        content=variant.content,
                        character_count=variant.character_count,
                        hashtags=variant.hashtags,
                    )
                    for variant in result.variants
                ],
            ),
            usage=result.usage,
            metadata=RepurposeMetadata(
                platforms_used=result.platforms_used,
                provider=result.provider,
                model=result.model,
                brand_voice=result.brand_voice,
                total_characters=result.total_characters,
            ),
            warning=result.warning,
            warnings=result.warnings,
        )

    def to_payload(self) -> dict:
        """JSON body; optional warning fields are only present when set."""
        payload = self.model_dump(by_alias=True, mode="json")
        if self.warning is None:
            payload.pop("warning", None)
        if not self.warnings:
            payload.pop("warnings", None)
        return payload


class UsageStatsResponse(CamelModel):
    success: bool = True
    plan: str
    monthly_usage: int
    monthly_limit: Optional[int]
    monthly_remaining: Optional[int]
    daily_usage: int
    daily_limit: Optional[int]
    daily_remaining: Optional[int]
    overage_rate: Decimal
    overage_consent: bool
    pending_overage: Decimal
    period_start: datetime
    period_end: datetime

    @classmethod
    def from_stats(cls, stats: UsageStats) -> "UsageStatsResponse":
        return cls(
            plan=stats.plan.value,
            monthly_usage=stats.monthly_usage,
            monthly_limit=stats.monthly_limit,
            monthly_remaining=stats.monthly_remaining,
            daily_usage=stats.daily_usage,
            daily_limit=stats.daily_limit,
            daily_remaining=stats.daily_remaining,
            overage_rate=stats.overage_rate,
            overage_consent=stats.overage_consent,
            pending_overage=stats.pending_overage,
            period_start=stats.period_start,
            period_end=stats.period_end,
        )
