
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from app.api.deps import get_youtube_client
from app.core.security import get_current_user_id
from app.core.settings import settings
from app.schemas.youtube import ChannelType, SearchOptions, SearchOrder, validation_message
from app.services.youtube_client import YouTubeAPIError, YouTubeClient
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/youtube", tags=["youtube"])

@router.get("/search")
async def search_channels(
    keywords: str = Query(..., description="Comma-separated search keywords"),
    max_results: Optional[int] = Query(default=None, alias="maxResults", ge=1),
    order: SearchOrder = Query(default="viewCount"),
    channel_type: ChannelType = Query(default="any", alias="channelType"),
    region_code: Optional[str] = Query(default=None, alias="regionCode"),
    relevance_language: Optional[str] = Query(default=None, alias="relevanceLanguage"),
    min_subscribers: int = Query(default=settings.youtube_min_subscribers, alias="minSubscribers", ge=0),
    max_subscribers: Optional[int] = Query(default=None, alias="maxSubscribers", ge=0),
    min_video_count: Optional[int] = Query(default=None, alias="minVideoCount", ge=0),
    max_video_count: Optional[int] = Query(default=None, alias="maxVideoCount", ge=0),
    min_view_count: Optional[int] = Query(default=None, alias="minViewCount", ge=0),
    max_view_count: Optional[int] = Query(default=None, alias="maxViewCount", ge=0),
    country: Optional[str] = Query(default=None),
    has_contact_info: bool = Query(default=False, alias="hasContactInfo"),
    published_after: Optional[str] = Query(default=None, alias="publishedAfter"),
    published_before: Optional[str] = Query(default=None, alias="publishedBefore"),
    user_id: str = Depends(get_current_user_id),
    client: YouTubeClient = Depends(get_youtube_client),
) -> Dict[str, Any]:
    keyword_list = [k.strip() for k in keywords.split(",") if k.strip()]
    if not keyword_list:
        raise HTTPException(status_code=400, detail="At least one keyword is required")

    try:
        options = SearchOptions(
            keywords=keyword_list,
            max_results=max_results,
            order=order,
            channel_type=channel_type,
            region_code=region_code,
            relevance_language=relevance_language,
            min_subscribers=min_subscribers,
            max_subscribers=max_subscribers,
            min_video_count=min_video_count,
            max_video_count=max_video_count,
            min_view_count=min_view_count,
            max_view_count=max_view_count,
            country=country,
            has_contact_info=has_contact_info,
            published_after=published_after,
            published_before=published_before,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=validation_message(e))

    logger.info(f"Channel search by user {user_id} for {options.keywords}")

    try:
        results = await client.search_channels(options)
    except YouTubeAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {
        "success": True,
        "count": len(results),
        "filters": options.to_filters(),
        "data": results,
    }
