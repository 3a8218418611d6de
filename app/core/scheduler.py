
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from app.core.settings import settings
from app.services.query_service import QueryOrchestrator
import logging

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

def start_scheduler(orchestrator: QueryOrchestrator):
    scheduler.add_job(
        orchestrator.sweep_stale_queries,
        IntervalTrigger(minutes=settings.stale_query_sweep_minutes),
        kwargs={"timeout_minutes": settings.stale_query_timeout_minutes},
        id='sweep_stale_queries',
        name=f'Sweep queries stuck for {settings.stale_query_timeout_minutes} minutes',
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started: stale queries swept every {settings.stale_query_sweep_minutes} minutes")

def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler shutdown")
