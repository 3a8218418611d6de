import json
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import Field

from app.api.endpoints import youtube as youtube_endpoint
from app.core.security import create_access_token
from app.main import app
from app.schemas.youtube import SearchOptions
from tests.conftest import FakeYouTubeAPI, make_channel, make_youtube_client


@pytest_asyncio.fixture
async def client(orchestrator):
    app.state.orchestrator = orchestrator
    app.state.youtube_client = make_youtube_client(FakeYouTubeAPI())
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth(user_id="user-1"):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.mark.asyncio
async def test_query_routes_require_token(client):
    response = await client.get("/query")

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Missing authentication credentials"}
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_invalid_and_expired_tokens_rejected(client):
    response = await client.get("/query", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid authentication token"

    expired = create_access_token("user-1", expires_minutes=-5)
    response = await client.get("/query", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["message"] == "Token has expired"


@pytest.mark.asyncio
async def test_create_then_poll_query(client, runner):
    response = await client.post(
        "/query",
        json={"keywords": ["cats"], "platforms": ["YOUTUBE"], "filters": {"minSubscribers": 1000}},
        headers=auth(),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Query created successfully"
    assert body["data"]["status"] == "PENDING"
    assert body["data"]["userId"] == "user-1"
    query_id = body["data"]["id"]

    await runner.wait_all()

    response = await client.get(f"/query/{query_id}", headers=auth())
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "COMPLETED"
    assert data["totalResults"] == 2
    channels = [json.loads(item) for item in data["results"][0]["data"]]
    assert {c["channelId"] for c in channels} == {"UC1", "UC2"}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"keywords": [], "platforms": ["YOUTUBE"]},
    {"keywords": ["cats"], "platforms": []},
    {"keywords": ["cats"], "platforms": ["MYSPACE"]},
    {"platforms": ["YOUTUBE"]},
])
async def test_malformed_body_is_422(client, body):
    response = await client.post("/query", json=body, headers=auth())
    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"keywords": ["   "], "platforms": ["YOUTUBE"]},
    {"keywords": ["cats"], "platforms": ["YOUTUBE"], "filters": {"order": "random"}},
])
async def test_invalid_query_is_400(client, store, body):
    response = await client.post("/query", json=body, headers=auth())

    assert response.status_code == 400
    assert response.json()["success"] is False
    _, total = await store.paginate(0, 10)
    assert total == 0


@pytest.mark.asyncio
async def test_unknown_query_is_404(client):
    response = await client.get("/query/missing", headers=auth())

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Query not found"}


@pytest.mark.asyncio
async def test_list_queries_paginates(client, runner):
    for i in range(3):
        await client.post("/query", json={"keywords": [f"kw{i}"], "platforms": ["YOUTUBE"]}, headers=auth())
    await runner.wait_all()

    response = await client.get("/query", params={"page": 0, "limit": 2}, headers=auth())
    body = response.json()

    assert response.status_code == 200
    assert [q["keywords"] for q in body["data"]] == [["kw2"], ["kw1"]]
    assert body["pagination"] == {"total": 3, "page": 0, "limit": 2, "hasMore": True}

    response = await client.get("/query", params={"page": 1, "limit": 2}, headers=auth())
    body = response.json()
    assert [q["keywords"] for q in body["data"]] == [["kw0"]]
    assert body["pagination"]["hasMore"] is False


@pytest.mark.asyncio
async def test_list_queries_defaults(client):
    response = await client.get("/query", headers=auth())

    assert response.json()["pagination"] == {"total": 0, "page": 0, "limit": 12, "hasMore": False}


@pytest.mark.asyncio
async def test_list_queries_rejects_bad_limit(client):
    response = await client.get("/query", params={"limit": 0}, headers=auth())
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_youtube_search_applies_default_min_subscribers(client):
    api = FakeYouTubeAPI(
        searches={"cats": ["UC1", "UC2"], "dogs": ["UC3"]},
        channels=[
            make_channel("UC1", subscribers=500),
            make_channel("UC2", subscribers=2000),
            make_channel("UC3", subscribers=7000),
        ],
    )
    app.state.youtube_client = make_youtube_client(api)

    response = await client.get("/youtube/search", params={"keywords": "cats, dogs"}, headers=auth())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert [c["channelId"] for c in body["data"]] == ["UC3", "UC2"]
    assert body["filters"]["keywords"] == ["cats", "dogs"]
    assert body["filters"]["minSubscribers"] == 1000


@pytest.mark.asyncio
async def test_youtube_search_passes_query_options(client):
    api = FakeYouTubeAPI(searches={"cats": []})
    app.state.youtube_client = make_youtube_client(api)

    response = await client.get(
        "/youtube/search",
        params={"keywords": "cats", "maxResults": 10, "order": "date", "regionCode": "KR"},
        headers=auth(),
    )

    assert response.status_code == 200
    params = api.requests[0].url.params
    assert params["maxResults"] == "10"
    assert params["order"] == "date"
    assert params["regionCode"] == "KR"


@pytest.mark.asyncio
async def test_youtube_search_requires_keywords(client):
    response = await client.get("/youtube/search", params={"keywords": " , "}, headers=auth())

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "At least one keyword is required"}


@pytest.mark.asyncio
async def test_youtube_search_upstream_failure_is_502(client):
    api = FakeYouTubeAPI(searches={"cats": ["UC1"]}, channels_status=500)
    app.state.youtube_client = make_youtube_client(api)

    response = await client.get("/youtube/search", params={"keywords": "cats"}, headers=auth())

    assert response.status_code == 502
    body = response.json()
    assert body["success"] is False
    assert "test-key" not in body["message"]


@pytest.mark.asyncio
async def test_invalid_filters_message_names_the_field(client):
    response = await client.post(
        "/query",
        json={"keywords": ["cats"], "platforms": ["YOUTUBE"], "filters": {"maxResults": 0}},
        headers=auth(),
    )

    assert response.status_code == 400
    message = response.json()["message"]
    assert message.startswith("Invalid filters for YOUTUBE: maxResults: ")
    assert "\n" not in message


@pytest.mark.asyncio
async def test_youtube_search_reports_option_errors(client, monkeypatch):
    class TwoLetterRegionOptions(SearchOptions):
        region_code: Optional[str] = Field(default=None, min_length=2, max_length=2)

    monkeypatch.setattr(youtube_endpoint, "SearchOptions", TwoLetterRegionOptions)

    response = await client.get(
        "/youtube/search",
        params={"keywords": "cats", "regionCode": "USA"},
        headers=auth(),
    )

    assert response.status_code == 400
    assert response.json()["message"].startswith("regionCode: ")
