"""
Usage reporting endpoints and the scheduled monthly reset.
"""

import logging

from fastapi import APIRouter, Depends

from repurposer.container import ServiceContainer

from ..auth import require_cron_secret, verify_api_key
from ..dependencies import get_container
from ..models import UsageStatsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/usage")
async def get_usage(
    account_id: str = Depends(verify_api_key),
    container: ServiceContainer = Depends(get_container),
):
    """
    Get usage statistics for the authenticated account.

    Returns monthly and daily counts, limits and remaining quota. Unbounded
    limits are reported as null.
    """
    stats = await container.usage.get_usage_stats(account_id)
    return UsageStatsResponse.from_stats(stats).model_dump(by_alias=True, mode="json")


@router.get("/overage")
async def get_overage(
    account_id: str = Depends(verify_api_key),
    container: ServiceContainer = Depends(get_container),
):
    """Overage charges recorded for the account."""
    summary = await container.usage.get_overage_summary(account_id)
    return {"success": True, **summary}


@router.post("/usage/reset", dependencies=[Depends(require_cron_secret)])
async def reset_monthly_usage(container: ServiceContainer = Depends(get_container)):
    """
    Archive last month's usage and zero every monthly counter.

    Called by the scheduler with ``Authorization: Bearer <CRON_SECRET>``.
    """
    result = await container.usage.reset_monthly_usage()
    return {"success": True, **result}
