
import httpx
import logging
from typing import Any, Dict, List, Optional
from aiolimiter import AsyncLimiter
from .extraction import matches_filters, remove_duplicates, to_channel_record
from .utils import backoff_client, limited_get
from app.schemas.youtube import SearchOptions

logger = logging.getLogger(__name__)

BASE = "https://www.googleapis.com/youtube/v3"
CHANNEL_PARTS = "snippet,statistics,brandingSettings,topicDetails"

RESULT_ATTRIBUTES = {
    "channelId": {"type": "string", "label": "Channel ID"},
    "channelTitle": {"type": "string", "label": "Channel Name"},
    "customUrl": {"type": "string", "label": "Custom URL"},
    "youtubeUrl": {"type": "string", "label": "YouTube URL"},
    "description": {"type": "string", "label": "Description"},
    "subscriberCount": {"type": "number", "label": "Subscribers"},
    "videoCount": {"type": "number", "label": "Videos"},
    "viewCount": {"type": "number", "label": "Total Views"},
    "emails": {"type": "array", "label": "Emails"},
    "websites": {"type": "array", "label": "Websites"},
    "country": {"type": "string", "label": "Country"},
}


class YouTubeAPIError(Exception):
    pass


def describe_error(exc: Exception) -> str:
    # httpx messages embed the request URL, which carries the API key
    if isinstance(exc, httpx.HTTPStatusError):
        return f"YouTube API error: {exc.response.status_code} {exc.response.reason_phrase}"
    if isinstance(exc, httpx.HTTPError):
        return f"YouTube API request failed: {type(exc).__name__}"
    return f"Invalid YouTube API response: {exc}"


def _items(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = data.get("items")
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class YouTubeClient:
    """Channel search against the YouTube Data API v3."""

    result_attributes = RESULT_ATTRIBUTES

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE,
        default_max_results: int = 50,
        max_results_limit: int = 50,
        requests_per_second: float = 8,
        max_attempts: int = 4,
        timeout: float = 20,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_max_results = default_max_results
        self.max_results_limit = max_results_limit
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.limiter = AsyncLimiter(requests_per_second, 1)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "YouTubeClient":
        return cls(
            api_key=settings.youtube_api_key,
            base_url=settings.youtube_base_url,
            default_max_results=settings.youtube_default_max_results,
            max_results_limit=settings.youtube_max_results_limit,
            requests_per_second=settings.youtube_requests_per_second,
            max_attempts=settings.youtube_max_attempts,
            timeout=settings.youtube_timeout_seconds,
            transport=transport,
        )

    def validate_filters(self, keywords: List[str], filters: Optional[Dict[str, Any]] = None) -> None:
        SearchOptions.from_filters(keywords, filters)

    async def search(self, keywords: List[str], filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return await self.search_channels(SearchOptions.from_filters(keywords, filters))

    async def search_channels(self, options: SearchOptions) -> List[Dict[str, Any]]:
        results = []
        async with backoff_client(self._transport, timeout=self.timeout) as client:
            for keyword in options.keywords:
                logger.info(f"Searching channels for keyword: {keyword}", extra={"keyword": keyword})
                results.extend(await self._search_keyword(client, keyword, options))

        channels = remove_duplicates(results)
        channels.sort(key=lambda c: c["subscriberCount"], reverse=True)
        logger.info(f"Found {len(channels)} channels for {len(options.keywords)} keywords")
        return channels

    def build_search_params(self, keyword: str, options: SearchOptions) -> Dict[str, Any]:
        params = {
            "key": self.api_key,
            "part": "snippet",
            "type": "channel",
            "q": keyword,
            "maxResults": min(options.max_results or self.default_max_results, self.max_results_limit),
            "order": options.order,
        }
        if options.channel_type != "any":
            params["channelType"] = options.channel_type
        if options.region_code:
            params["regionCode"] = options.region_code
        if options.relevance_language:
            params["relevanceLanguage"] = options.relevance_language
        if options.published_after:
            params["publishedAfter"] = options.published_after
        if options.published_before:
            params["publishedBefore"] = options.published_before
        return params

    async def _search_keyword(
        self,
        client: httpx.AsyncClient,
        keyword: str,
        options: SearchOptions,
    ) -> List[Dict[str, Any]]:
        try:
            response = await limited_get(
                client,
                self.limiter,
                f"{self.base_url}/search",
                max_attempts=self.max_attempts,
                params=self.build_search_params(keyword, options),
            )
            search_data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Search failed for keyword {keyword}: {describe_error(e)}", extra={"keyword": keyword})
            return []

        if not isinstance(search_data, dict):
            logger.warning(f"Unexpected search response for keyword {keyword}", extra={"keyword": keyword})
            return []

        channel_ids = [
            item["id"]["channelId"]
            for item in _items(search_data)
            if isinstance(item.get("id"), dict) and item["id"].get("channelId")
        ]
        if not channel_ids:
            logger.warning(f"No channels found for keyword: {keyword}", extra={"keyword": keyword})
            return []

        # Not caught: a failed details lookup fails the whole search
        channels = await self.get_channel_details(client, channel_ids)

        records = [to_channel_record(channel) for channel in channels]
        return [record for record in records if matches_filters(record, options)]

    async def get_channel_details(self, client: httpx.AsyncClient, channel_ids: List[str]) -> List[Dict[str, Any]]:
        params = {
            "key": self.api_key,
            "part": CHANNEL_PARTS,
            "id": ",".join(channel_ids),
        }
        try:
            response = await limited_get(
                client,
                self.limiter,
                f"{self.base_url}/channels",
                max_attempts=self.max_attempts,
                params=params,
            )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise YouTubeAPIError(describe_error(e)) from e

        if not isinstance(data, dict):
            raise YouTubeAPIError("Invalid YouTube API response: expected a JSON object")
        return _items(data)
