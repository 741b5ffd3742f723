"""Main entry point for the hub-engine service.

Startup sequence:
1. Initialize DI container
2. Load the seed hub (if enabled)
3. Run initial friction refresh and confidence refresh
4. Start scheduled background jobs
5. Start HTTP server with FastAPI
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from hub_engine.config import Settings
from hub_engine.container import Container
from hub_engine.routers import hub_router, set_hub_handler
from hub_engine.middleware import PrometheusMiddleware
from hub_engine.metrics import (
    BACKGROUND_JOB_RUNS_TOTAL,
    BACKGROUND_JOB_DURATION_SECONDS,
    BACKGROUND_JOB_LAST_RUN_TIMESTAMP,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global container and scheduler
container: Container = None
scheduler: AsyncIOScheduler = None


async def run_friction_refresh_job():
    """Background job: Score friction for every venue of every hub."""
    job_name = "friction_refresh"
    logger.info("[Scheduler] Running FrictionRefreshJob")
    start_time = time.perf_counter()
    try:
        await container.friction_refresher_service.refresh_all_hubs()
        duration = time.perf_counter() - start_time
        BACKGROUND_JOB_DURATION_SECONDS.labels(job_name=job_name).observe(duration)
        BACKGROUND_JOB_RUNS_TOTAL.labels(job_name=job_name, status="success").inc()
        BACKGROUND_JOB_LAST_RUN_TIMESTAMP.labels(job_name=job_name).set_to_current_time()
        logger.info("[Scheduler] FrictionRefreshJob completed")
    except Exception as e:
        duration = time.perf_counter() - start_time
        BACKGROUND_JOB_DURATION_SECONDS.labels(job_name=job_name).observe(duration)
        BACKGROUND_JOB_RUNS_TOTAL.labels(job_name=job_name, status="error").inc()
        logger.error(f"[Scheduler] FrictionRefreshJob failed: {e}")


async def run_confidence_refresh_job():
    """Background job: Reclassify confidence tiers from state timestamps."""
    job_name = "confidence_refresh"
    logger.debug("[Scheduler] Running ConfidenceRefreshJob")
    start_time = time.perf_counter()
    try:
        container.venue_state_service.refresh_confidence_tiers()
        duration = time.perf_counter() - start_time
        BACKGROUND_JOB_DURATION_SECONDS.labels(job_name=job_name).observe(duration)
        BACKGROUND_JOB_RUNS_TOTAL.labels(job_name=job_name, status="success").inc()
        BACKGROUND_JOB_LAST_RUN_TIMESTAMP.labels(job_name=job_name).set_to_current_time()
    except Exception as e:
        duration = time.perf_counter() - start_time
        BACKGROUND_JOB_DURATION_SECONDS.labels(job_name=job_name).observe(duration)
        BACKGROUND_JOB_RUNS_TOTAL.labels(job_name=job_name, status="error").inc()
        logger.error(f"[Scheduler] ConfidenceRefreshJob failed: {e}")


def start_background_jobs(settings: Settings):
    """Start all background jobs using APScheduler."""
    global scheduler
    scheduler = AsyncIOScheduler()

    # Job 1: Friction refresh
    scheduler.add_job(
        run_friction_refresh_job,
        trigger=IntervalTrigger(minutes=settings.friction_refresh_minutes),
        id="friction_refresh",
        name="Friction Score Refresh",
        replace_existing=True,
    )
    logger.info(
        f"[Scheduler] Scheduled friction refresh every "
        f"{settings.friction_refresh_minutes} minutes"
    )

    # Job 2: Confidence tier refresh
    scheduler.add_job(
        run_confidence_refresh_job,
        trigger=IntervalTrigger(seconds=settings.confidence_refresh_seconds),
        id="confidence_refresh",
        name="Confidence Tier Refresh",
        replace_existing=True,
    )
    logger.info(
        f"[Scheduler] Scheduled confidence refresh every "
        f"{settings.confidence_refresh_seconds} seconds"
    )

    scheduler.start()
    logger.info("[Scheduler] Background jobs started")


async def startup_sequence(settings: Settings):
    """Run initial data loads before starting jobs."""
    global container

    logger.info("[Main] Starting startup sequence")

    logger.info("[Main] Initializing DI container")
    container = Container(settings)

    # Inject handler into router (routes already registered at app creation)
    set_hub_handler(container.hub_handler)

    if settings.seed_on_startup:
        seed_path = settings.get_resource_path(settings.seed_resource)
        logger.info(f"[Main] Seeding hub data from {seed_path}")
        try:
            container.seed_service.load_file(seed_path)
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"[Main] Seeding failed: {e}")
    else:
        logger.info("[Main] Skipping seed (SEED_ON_STARTUP=false)")

    if settings.refresh_on_startup:
        logger.info("[Main] Refreshing friction scores (initial load)")
        try:
            await container.friction_refresher_service.refresh_all_hubs()
            logger.info("[Main] Initial friction refresh completed")
        except Exception as e:
            logger.error(f"[Main] Initial friction refresh failed: {e}")

        try:
            container.venue_state_service.refresh_confidence_tiers()
        except Exception as e:
            logger.error(f"[Main] Initial confidence refresh failed: {e}")
    else:
        logger.info("[Main] Skipping initial refresh (REFRESH_ON_STARTUP=false)")

    logger.info("[Main] Starting periodic jobs")
    start_background_jobs(settings)

    logger.info("[Main] Startup sequence completed")


async def shutdown_sequence():
    """Clean up resources on shutdown."""
    global container, scheduler

    logger.info("[Main] Starting shutdown sequence")

    if scheduler:
        logger.info("[Main] Stopping scheduler")
        scheduler.shutdown(wait=False)

    if container:
        logger.info("[Main] Shutting down container")
        await container.shutdown()

    logger.info("[Main] Shutdown sequence completed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    await startup_sequence(settings)
    yield
    await shutdown_sequence()


# Create FastAPI app
settings = Settings()
logging.getLogger().setLevel(settings.log_level.upper())

app = FastAPI(
    title="Hub Engine API",
    description="Venue state engine: friction, confidence, Open Door and delta sync",
    version="1.0.0",
    lifespan=lifespan,
)

# Add Prometheus metrics middleware
app.add_middleware(PrometheusMiddleware)

# Register router at app creation time (before uvicorn starts)
app.include_router(hub_router)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/metrics", response_class=PlainTextResponse)
def metrics():
    """Prometheus metrics endpoint for scraping."""
    return PlainTextResponse(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


if __name__ == "__main__":
    import uvicorn

    logger.info("[Main] Starting hub-engine")
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )
