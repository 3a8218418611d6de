from fastapi import Request
from app.services.query_service import QueryOrchestrator
from app.services.youtube_client import YouTubeClient


def get_orchestrator(request: Request) -> QueryOrchestrator:
    return request.app.state.orchestrator


def get_youtube_client(request: Request) -> YouTubeClient:
    return request.app.state.youtube_client
