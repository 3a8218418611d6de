import asyncio
import json
import os
from typing import Any, Dict, List, Optional

# Configure the app before any app module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://127.0.0.1:9/0")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("YOUTUBE_API_KEY", "test-key")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.database import create_tables
from app.core.tasks import BackgroundTaskRunner
from app.schemas.youtube import SearchOptions
from app.services.query_service import QueryOrchestrator
from app.services.query_store import QueryStore
from app.services.youtube_client import RESULT_ATTRIBUTES, YouTubeClient


class FakeCache:
    """In-memory stand-in for ResultCache that records every call."""

    def __init__(self):
        self.values: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.gets: List[str] = []
        self.sets: List[str] = []
        self.deletes: List[str] = []

    async def get(self, key: str) -> Optional[Any]:
        self.gets.append(key)
        value = self.values.get(key)
        return json.loads(value) if value is not None else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        self.sets.append(key)
        self.values[key] = json.dumps(value, ensure_ascii=False, default=str)
        self.ttls[key] = ttl
        return True

    async def delete(self, key: str) -> bool:
        self.deletes.append(key)
        self.values.pop(key, None)
        self.ttls.pop(key, None)
        return True


class FakeProvider:
    """Search provider returning canned records, or raising ``error``."""

    result_attributes = RESULT_ATTRIBUTES

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.records = records or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.release = asyncio.Event()
        self.release.set()

    def validate_filters(self, keywords, filters=None) -> None:
        SearchOptions.from_filters(keywords, filters)

    async def search(self, keywords, filters=None):
        self.calls.append({"keywords": list(keywords), "filters": dict(filters or {})})
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return list(self.records)


def make_channel(
    channel_id: str,
    subscribers: Any = 5000,
    videos: Any = 10,
    views: Any = 100000,
    description: str = "",
    country: Optional[str] = "US",
    custom_url: Optional[str] = None,
    title: Optional[str] = None,
    topics: Optional[List[str]] = None,
    branding_description: Optional[str] = None,
) -> Dict[str, Any]:
    snippet = {
        "title": title or f"Channel {channel_id}",
        "description": description,
        "publishedAt": "2020-01-01T00:00:00Z",
        "thumbnails": {
            "default": {"url": f"https://img.example/{channel_id}/default.jpg"},
            "medium": {"url": f"https://img.example/{channel_id}/medium.jpg"},
            "high": {"url": f"https://img.example/{channel_id}/high.jpg"},
        },
    }
    if country:
        snippet["country"] = country
    if custom_url:
        snippet["customUrl"] = custom_url

    channel = {
        "id": channel_id,
        "snippet": snippet,
        "statistics": {
            "subscriberCount": str(subscribers),
            "videoCount": str(videos),
            "viewCount": str(views),
            "hiddenSubscriberCount": False,
        },
    }
    if branding_description is not None:
        channel["brandingSettings"] = {"channel": {"description": branding_description}}
    if topics is not None:
        channel["topicDetails"] = {"topicCategories": topics}
    return channel


def make_record(channel_id: str, subscribers: int = 5000) -> Dict[str, Any]:
    return {
        "channelId": channel_id,
        "channelTitle": f"Channel {channel_id}",
        "customUrl": "N/A",
        "youtubeUrl": f"https://youtube.com/@{channel_id}",
        "description": "",
        "emails": [],
        "websites": [],
        "instagram": None,
        "twitter": None,
        "tiktok": None,
        "subscriberCount": subscribers,
        "videoCount": 10,
        "viewCount": 1000,
        "avgViewsPerVideo": 100,
        "country": "US",
        "keywords": [],
        "publishedAt": "2020-01-01T00:00:00Z",
        "extractedAt": "2026-01-01T00:00:00+00:00",
        "thumbnails": {"default": None, "medium": None, "high": None},
    }


class FakeYouTubeAPI:
    """Routes /search and /channels requests for httpx.MockTransport.

    ``searches`` maps a keyword to the channel ids it finds, or to an HTTP
    status code to fail with. ``channels`` holds the channel payloads served
    by /channels; ``channels_status`` forces /channels to fail.
    """

    def __init__(self, searches=None, channels=None, channels_status: Optional[int] = None):
        self.searches = searches or {}
        self.channels = {c["id"]: c for c in (channels or [])}
        self.channels_status = channels_status
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/search"):
            found = self.searches.get(request.url.params["q"], [])
            if isinstance(found, int):
                return httpx.Response(found, json={"error": {"code": found}})
            return httpx.Response(200, json={
                "items": [{"id": {"kind": "youtube#channel", "channelId": cid}} for cid in found],
            })
        if request.url.path.endswith("/channels"):
            if self.channels_status is not None:
                return httpx.Response(self.channels_status, json={"error": {"code": self.channels_status}})
            ids = request.url.params["id"].split(",")
            return httpx.Response(200, json={
                "items": [self.channels[cid] for cid in ids if cid in self.channels],
            })
        return httpx.Response(404)

    def paths(self) -> List[str]:
        return [r.url.path.rsplit("/", 1)[-1] for r in self.requests]


def make_youtube_client(api: FakeYouTubeAPI, **kwargs) -> YouTubeClient:
    kwargs.setdefault("max_attempts", 1)
    kwargs.setdefault("requests_per_second", 1000)
    return YouTubeClient(api_key="test-key", transport=httpx.MockTransport(api), **kwargs)


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await create_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_maker):
    return QueryStore(session_maker)


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def runner():
    return BackgroundTaskRunner()


@pytest.fixture
def provider():
    return FakeProvider(records=[make_record("UC1", 9000), make_record("UC2", 20000)])


@pytest.fixture
def orchestrator(store, cache, provider, runner):
    return QueryOrchestrator(
        store=store,
        cache=cache,
        providers={"YOUTUBE": provider},
        task_runner=runner,
        cache_ttl=300,
    )
