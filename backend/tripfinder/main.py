import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tripfinder.config import settings

LOG_DIR = Path(__file__).resolve().parent.parent / "logs"


def configure_logging() -> None:
    """Console plus a rotating tripfinder.log, level from LOG_LEVEL."""
    LOG_DIR.mkdir(exist_ok=True)
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    file_handler = RotatingFileHandler(
        LOG_DIR / "tripfinder.log",
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(), file_handler],
    )
    # Provider transports log every request at INFO
    for name in ("httpcore", "httpx", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()

from tripfinder.routers import flights, hotels
from tripfinder.services.amadeus_client import amadeus_client
from tripfinder.services.cache_service import cache_service
from tripfinder.services.places_client import places_client
from tripfinder.services.token_manager import token_manager

logger = logging.getLogger(__name__)


async def run_enrichment_backfill() -> int:
    from tripfinder.database import async_session_factory
    from tripfinder.services.hotel_service import hotel_service
    from tripfinder.services.metadata_repository import SqlHotelMetadataRepository

    async with async_session_factory() as db:
        count = await hotel_service.backfill_enrichment(SqlHotelMetadataRepository(db))
    if count:
        logger.info(f"Enrichment backfill: {count} hotels updated")
    return count


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.scheduler_enabled:
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.interval import IntervalTrigger

            scheduler = AsyncIOScheduler()
            scheduler.add_job(
                run_enrichment_backfill,
                IntervalTrigger(hours=settings.enrichment_backfill_interval_hours),
                id="enrichment_backfill",
            )
            scheduler.start()
            logger.info("Background scheduler started")
        except Exception as e:
            logger.error(f"Scheduler failed to start: {e}")
            scheduler = None

    yield

    # Shutdown
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    await amadeus_client.close()
    await token_manager.close()
    await places_client.close()
    await cache_service.close()


app = FastAPI(
    title="TripFinder",
    description="Hotel and flight search aggregated across travel data providers",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(hotels.router, prefix="/api/search", tags=["hotels"])
app.include_router(flights.router, prefix="/api/search", tags=["flights"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "tripfinder"}
