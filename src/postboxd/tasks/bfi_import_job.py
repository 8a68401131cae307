"""Scheduled jobs: BFI imports and the daily scraper health check."""

import logging

from postboxd.database import session_scope
from postboxd.scrapers.bfi_pdf import run_bfi_import, run_programme_changes_import
from postboxd.services.alerts import send_health_alert
from postboxd.services.scraper_health import (
    HealthCheckResult,
    run_full_health_check,
    save_health_snapshot,
)

logger = logging.getLogger(__name__)

SCHEDULER_TRIGGER = "scheduler"


async def run_scheduled_full_import() -> None:
    """Weekly full import (guide PDF + programme changes)."""
    result = await run_bfi_import(SCHEDULER_TRIGGER)
    logger.info(f"Scheduled BFI full import finished: {result.status}")


async def run_scheduled_changes_import() -> None:
    """Daily programme changes import."""
    result = await run_programme_changes_import(SCHEDULER_TRIGGER)
    logger.info(f"Scheduled BFI changes import finished: {result.status}")


async def run_daily_health_check() -> HealthCheckResult:
    """Snapshot every cinema's health and alert on anomalies."""
    logger.info("Starting daily health check")

    async with session_scope() as db:
        result = await run_full_health_check(db)
        for metrics in result.metrics:
            save_health_snapshot(db, metrics)

    if result.alerts:
        critical = any(alert.is_critical for alert in result.alerts)
        try:
            await send_health_alert([alert.message for alert in result.alerts], critical)
        except Exception as e:
            logger.error(f"Failed to send health alert: {e}", exc_info=True)

    summary = result.summary()
    logger.info(
        f"Health check complete: {summary['healthy']} healthy, {summary['warning']} warning, "
        f"{summary['critical']} critical, {summary['alert_count']} alerts"
    )
    return result
