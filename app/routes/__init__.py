"""API routes for the content repurposer."""

from .content import router as content_router
from .health import router as health_router
from .repurpose import router as repurpose_router
from .tiers import router as tiers_router
from .usage import router as usage_router

__all__ = [
    "content_router",
    "health_router",
    "repurpose_router",
    "tiers_router",
    "usage_router",
]
