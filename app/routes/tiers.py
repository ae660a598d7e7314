"""
Tier and provider discovery endpoints. No authentication required.
"""

from fastapi import APIRouter, Depends

from repurposer.container import ServiceContainer

from ..dependencies import get_container

router = APIRouter(prefix="/api", tags=["tiers"])


@router.get("/tiers")
async def list_tiers(container: ServiceContainer = Depends(get_container)):
    """Limits, platforms and overage rates of every tier."""
    return {"success": True, "tiers": container.registry.describe()}


@router.get("/providers")
async def list_providers(container: ServiceContainer = Depends(get_container)):
    return {
        "success": True,
        "providers": container.router.available_providers(),
        "default": container.router.default_provider(),
    }
