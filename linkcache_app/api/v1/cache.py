from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from linkcache_app.sync.background_sync import BackgroundSync
from linkcache_app.dependencies import get_background_sync

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats")
async def get_cache_stats(sync: BackgroundSync = Depends(get_background_sync)):
    """Reconciliation loop state and cache backend info"""
    return await sync.get_cache_stats()


@router.delete("/links/{short_code}", status_code=status.HTTP_204_NO_CONTENT)
async def invalidate_link(
    short_code: str,
    user_id: Optional[str] = None,
    sync: BackgroundSync = Depends(get_background_sync)
):
    """Drop every cached entry of a link"""
    await sync.invalidate_link(short_code, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
