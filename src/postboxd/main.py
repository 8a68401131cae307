"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from postboxd.api.routes import admin, health
from postboxd.config import settings
from postboxd.tasks.bfi_import_job import (
    run_daily_health_check,
    run_scheduled_changes_import,
    run_scheduled_full_import,
)

logger = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """Register the BFI import and health check jobs (all times UTC)."""
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_scheduled_full_import,
        trigger=CronTrigger(
            day_of_week=settings.bfi_full_import_day, hour=settings.bfi_full_import_hour, minute=0
        ),
        id="bfi_full_import",
        name="Weekly BFI guide PDF + programme changes import",
        replace_existing=True,
    )
    scheduler.add_job(
        run_scheduled_changes_import,
        trigger=CronTrigger(hour=settings.bfi_changes_import_hour, minute=0),
        id="bfi_changes_import",
        name="Daily BFI programme changes import",
        replace_existing=True,
    )
    scheduler.add_job(
        run_daily_health_check,
        trigger=CronTrigger(hour=settings.health_check_hour, minute=0),
        id="health_check",
        name="Daily scraper health check",
        replace_existing=True,
    )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: configure and start the scheduler
    scheduler = create_scheduler()
    scheduler.start()
    logger.info(
        f"Scheduler started: full import {settings.bfi_full_import_day} "
        f"{settings.bfi_full_import_hour:02d}:00, changes daily {settings.bfi_changes_import_hour:02d}:00, "
        f"health check daily {settings.health_check_hour:02d}:00"
    )

    yield

    # Shutdown: stop the scheduler gracefully
    scheduler.shutdown(wait=False)
    logger.info("Scheduler shut down")


# Create FastAPI app
app = FastAPI(
    title="Postboxd API",
    description="London cinema listings ingestion",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "https://pictures.london",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(admin.router, prefix="/api", tags=["admin"])
