"""
Repurpose endpoints.

Two entry points share one pipeline:
- POST /api/repurpose applies the caller's own tier
- POST /api/tiers/{tier}/repurpose additionally requires the caller to be
  on that tier and answers 403 with the correct endpoint otherwise

Authorization:
- X-API-Key header (or DEV_MODE) identifies the account
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from repurposer.container import ServiceContainer
from repurposer.exceptions import ErrorCode, ResourceNotFoundError
from repurposer.types.repurpose import RepurposeRequest
from repurposer.usage.tiers import parse_tier

from ..auth import verify_api_key
from ..dependencies import get_container
from ..models import RepurposeResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["repurpose"])


async def _run(
    container: ServiceContainer,
    account_id: str,
    request: RepurposeRequest,
    endpoint_tier=None,
) -> JSONResponse:
    result = await container.orchestrator.repurpose(account_id, request, endpoint_tier=endpoint_tier)
    return JSONResponse(content=RepurposeResponse.from_result(result).to_payload())


@router.post("/repurpose")
async def repurpose_content(
    request: RepurposeRequest,
    account_id: str = Depends(verify_api_key),
    container: ServiceContainer = Depends(get_container),
):
    """
    Repurpose content into platform variants using the caller's tier.

    Quota is checked before generation; one unit is consumed only when the
    variants are delivered.
    """
    return await _run(container, account_id, request)


@router.post("/tiers/{tier}/repurpose")
async def repurpose_for_tier(
    tier: str,
    request: RepurposeRequest,
    account_id: str = Depends(verify_api_key),
    container: ServiceContainer = Depends(get_container),
):
    """Tier-scoped repurpose endpoint."""
    endpoint_tier = parse_tier(tier)
    if endpoint_tier is None:
        raise ResourceNotFoundError(
            message=f"Unknown tier '{tier}'",
            resource_type="tier",
            resource_id=tier,
        )
    return await _run(container, account_id, request, endpoint_tier=endpoint_tier)
