from typing import List

from fastapi import APIRouter, Depends
from linkcache_app.schemas.link import LinkRecord
from linkcache_app.services.link_service import LinkDataService
from linkcache_app.sync.background_sync import BackgroundSync
from linkcache_app.dependencies import get_background_sync, get_link_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}/links", response_model=List[LinkRecord])
async def get_user_links(
    user_id: str,
    link_service: LinkDataService = Depends(get_link_service)
):
    """Owner's links, newest first"""
    return await link_service.get_user_links(user_id)


@router.post("/{user_id}/warmup")
async def warmup_user_cache(
    user_id: str,
    sync: BackgroundSync = Depends(get_background_sync)
):
    """Load the owner's most recently visited links into the cache"""
    cached = await sync.warmup_user_cache(user_id)
    return {"user_id": user_id, "cached": cached}
