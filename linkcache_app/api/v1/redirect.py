from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import RedirectResponse
from linkcache_app.schemas.link import DIRECT_REFERRER, VisitEvent
from linkcache_app.services.link_service import LinkDataService
from linkcache_app.dependencies import get_link_service

router = APIRouter(tags=["redirect"])


@router.get("/{short_code}")
async def redirect_to_original_url(
    short_code: str,
    request: Request,
    link_service: LinkDataService = Depends(get_link_service)
):
    """
    Redirect to the original URL.

    Flow (optimized for performance):
    1. Get the link using cache-aside (cache hit: no store access)
    2. Record the visit: counter increment now, durable commit later
    3. Redirect immediately (user doesn't wait for the store write!)
    """
    link = await link_service.get_link_data(short_code)

    if not link:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Link not found"
        )

    if link_service.is_expired(link):
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Link has expired"
        )

    visit = VisitEvent(
        user_agent=request.headers.get("user-agent", ""),
        referrer=request.headers.get("referer") or DIRECT_REFERRER,
    )
    await link_service.record_visit(short_code, visit)

    return RedirectResponse(url=link.original_url, status_code=status.HTTP_302_FOUND)
