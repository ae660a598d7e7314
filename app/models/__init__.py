"""Pydantic response models for the API."""

from .repurpose import (
    RepurposedContent,
    RepurposedVariant,
    RepurposeMetadata,
    RepurposeResponse,
    UsageStatsResponse,
)

__all__ = [
    "RepurposedContent",
    "RepurposedVariant",
    "RepurposeMetadata",
    "RepurposeResponse",
    "UsageStatsResponse",
]
