
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from app.core.settings import settings
from app.core.logging import setup_logging
from app.api.endpoints import health as health_ep
from app.api.endpoints import query as query_ep
from app.api.endpoints import youtube as youtube_ep
from app.services.query_service import QueryNotFoundError, QueryValidationError

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.core.database import async_session_maker, create_tables, engine
    from app.core.redis import ResultCache
    from app.core.scheduler import shutdown_scheduler, start_scheduler
    from app.core.tasks import BackgroundTaskRunner
    from app.models.query import Platform
    from app.services.query_service import QueryOrchestrator
    from app.services.query_store import QueryStore
    from app.services.youtube_client import YouTubeClient

    logger.info("Creating database tables...")
    await create_tables(engine)
    logger.info("Database tables created.")

    cache = ResultCache(settings.redis_url, default_ttl=settings.query_cache_ttl_seconds)
    task_runner = BackgroundTaskRunner()
    youtube_client = YouTubeClient.from_settings(settings)
    orchestrator = QueryOrchestrator(
        store=QueryStore(async_session_maker),
        cache=cache,
        providers={Platform.YOUTUBE.value: youtube_client},
        task_runner=task_runner,
        cache_ttl=settings.query_cache_ttl_seconds,
        owner_scoped=settings.query_owner_scoped,
    )
    app.state.youtube_client = youtube_client
    app.state.orchestrator = orchestrator

    if settings.scheduler_enabled:
        start_scheduler(orchestrator)

    try:
        yield
    finally:
        shutdown_scheduler()
        await task_runner.shutdown(settings.task_shutdown_timeout_seconds)
        await cache.close()
        await engine.dispose()

app = FastAPI(title=settings.app_name, lifespan=lifespan)

@app.exception_handler(QueryNotFoundError)
async def query_not_found_handler(request: Request, exc: QueryNotFoundError):
    return JSONResponse(status_code=404, content={"success": False, "message": str(exc)})

@app.exception_handler(QueryValidationError)
async def query_validation_handler(request: Request, exc: QueryValidationError):
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )

app.include_router(health_ep.router)
app.include_router(query_ep.router)
app.include_router(youtube_ep.router)
