"""
Content listing for the authenticated account.
"""

from fastapi import APIRouter, Depends, Query

from repurposer.container import ServiceContainer
from repurposer.content.synchronizer import MAX_PAGE_SIZE
from repurposer.exceptions import DatabaseError, StorageNotReadyError

from ..auth import verify_api_key
from ..dependencies import get_container

router = APIRouter(prefix="/api", tags=["content"])


@router.get("/content")
async def list_content(
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    account_id: str = Depends(verify_api_key),
    container: ServiceContainer = Depends(get_container),
):
    """Saved content of the caller, newest first."""
    try:
        page = await container.synchronizer.list_content(account_id, limit=limit, offset=offset)
    except DatabaseError as e:
        raise StorageNotReadyError(original_error=e) from e
    return {"success": True, **page}
