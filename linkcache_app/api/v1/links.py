from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from linkcache_app.schemas.link import LinkCreate, LinkRecord, LinkStats, LinkUpdate
from linkcache_app.services.link_service import LinkDataService
from linkcache_app.dependencies import get_link_service

router = APIRouter(prefix="/links", tags=["links"])


@router.post("/", response_model=LinkRecord, status_code=status.HTTP_201_CREATED)
async def create_link(
    link_data: LinkCreate,
    link_service: LinkDataService = Depends(get_link_service)
):
    """Create a new short link"""
    record = await link_service.create_link(link_data.model_dump())
    if not record:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Could not create link"
        )
    return record


@router.get("/{short_code}", response_model=LinkRecord)
async def get_link(
    short_code: str,
    link_service: LinkDataService = Depends(get_link_service)
):
    """Get a link (served from cache when warm)"""
    record = await link_service.get_link_data(short_code)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Link not found"
        )
    return record


@router.get("/{short_code}/stats", response_model=LinkStats)
async def get_link_stats(
    short_code: str,
    link_service: LinkDataService = Depends(get_link_service)
):
    """Exact statistics, always read from the store"""
    stats = await link_service.get_detailed_stats(short_code)
    if not stats:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Link not found"
        )
    return stats


@router.patch("/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_link(
    link_id: str,
    updates: LinkUpdate,
    link_service: LinkDataService = Depends(get_link_service)
):
    """Update a link; cached copies are invalidated"""
    success = await link_service.update_link(link_id, updates.model_dump(exclude_unset=True))
    if not success:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Link not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    link_id: str,
    short_code: str,
    user_id: Optional[str] = None,
    link_service: LinkDataService = Depends(get_link_service)
):
    """Delete a link (hard delete, cascades cache invalidation)"""
    success = await link_service.delete_link(link_id, short_code, user_id)
    if not success:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Link not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
