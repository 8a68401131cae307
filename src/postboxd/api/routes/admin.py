"""Admin API endpoints for BFI imports and scraper health."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from postboxd.config import settings
from postboxd.database import get_db
from postboxd.scrapers.bfi_pdf import run_bfi_import, run_programme_changes_import
from postboxd.services.pipeline import get_last_import_run
from postboxd.services.scraper_health import (
    HEALTHY_SCORE,
    WARNING_SCORE,
    CinemaHealthMetrics,
    get_cinema_health_metrics,
    get_recent_health_snapshots,
    run_full_health_check,
)

logger = logging.getLogger(__name__)
router = APIRouter()

ADMIN_TRIGGER = "admin-api"

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class SavedCounts(BaseModel):
    added: int
    updated: int
    failed: int


class ImportResponse(BaseModel):
    """Outcome of a manually triggered import."""

    success: bool
    status: str
    type: str
    pdf_screenings: int
    changes_screenings: int
    total_screenings: int
    saved: SavedCounts
    source_status: dict[str, str]
    error_codes: list[str]
    errors: list[str]
    duration_ms: int
    pdf_info: dict[str, Any] | None = None
    changes_info: dict[str, Any] | None = None


class LastRun(BaseModel):
    id: str
    run_type: str
    status: str
    triggered_by: str | None
    started_at: datetime
    finished_at: datetime
    duration_ms: int
    source_status: dict[str, str]
    screenings: dict[str, int]
    error_codes: list[str]
    errors: list[str]


class ImportStatusResponse(BaseModel):
    last_run: LastRun | None
    next_scheduled_run: datetime
    schedule: dict[str, datetime]


def next_daily_run(now: datetime, hour: int) -> datetime:
    """Next occurrence of HH:00 UTC strictly after now."""
    candidate = now.astimezone(timezone.utc).replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def next_weekly_run(now: datetime, weekday: int, hour: int) -> datetime:
    """Next occurrence of the given weekday (Monday=0) at HH:00 UTC strictly after now."""
    now_utc = now.astimezone(timezone.utc)
    days_ahead = (weekday - now_utc.weekday()) % 7
    candidate = (now_utc + timedelta(days=days_ahead)).replace(
        hour=hour, minute=0, second=0, microsecond=0
    )
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate


@router.post("/admin/bfi-import", response_model=ImportResponse)
async def trigger_bfi_import(
    changes_only: bool = Query(False, description="Only import the programme changes page"),
) -> ImportResponse:
    """
    Manually run a BFI import.

    The full import parses the latest guide PDF plus programme changes and
    can take a minute; `changes_only=true` is the quick daily variant.
    """
    if changes_only:
        result = await run_programme_changes_import(ADMIN_TRIGGER)
    else:
        result = await run_bfi_import(ADMIN_TRIGGER)

    return ImportResponse(
        success=result.success,
        status=result.status,
        type="changes-only" if changes_only else "full-import",
        pdf_screenings=result.pdf_screenings,
        changes_screenings=result.changes_screenings,
        total_screenings=result.total_screenings,
        saved=SavedCounts(
            added=result.saved.added,
            updated=result.saved.updated,
            failed=result.saved.failed,
        ),
        source_status=result.source_status,
        error_codes=result.error_codes,
        errors=result.errors,
        duration_ms=result.duration_ms,
        pdf_info=result.pdf_info,
        changes_info=result.changes_info,
    )


@router.get("/admin/bfi/status", response_model=ImportStatusResponse)
async def bfi_import_status(db: AsyncSession = Depends(get_db)) -> ImportStatusResponse:
    """Last import run plus the next scheduled runs."""
    run = await get_last_import_run(db)

    now = datetime.now(timezone.utc)
    next_changes = next_daily_run(now, settings.bfi_changes_import_hour)
    next_full = next_weekly_run(
        now, WEEKDAYS.index(settings.bfi_full_import_day), settings.bfi_full_import_hour
    )

    last_run = None
    if run is not None:
        last_run = LastRun(
            id=str(run.id),
            run_type=run.run_type,
            status=run.status,
            triggered_by=run.triggered_by,
            started_at=run.started_at,
            finished_at=run.finished_at,
            duration_ms=run.duration_ms,
            source_status=run.source_status,
            screenings={
                "pdf": run.pdf_screenings,
                "programme_changes": run.changes_screenings,
                "total": run.total_screenings,
                "added": run.added,
                "updated": run.updated,
                "failed": run.failed,
            },
            error_codes=run.error_codes,
            errors=run.errors,
        )

    return ImportStatusResponse(
        last_run=last_run,
        next_scheduled_run=min(next_changes, next_full),
        schedule={
            "next_full_import_at": next_full,
            "next_programme_changes_at": next_changes,
        },
    )


def _metrics_dict(metrics: CinemaHealthMetrics) -> dict[str, Any]:
    return {
        "cinema_id": metrics.cinema_id,
        "cinema_name": metrics.cinema_name,
        "chain": metrics.chain,
        "total_future_screenings": metrics.total_future_screenings,
        "next_14d_screenings": metrics.next_14d_screenings,
        "next_7d_screenings": metrics.next_7d_screenings,
        "last_scrape_at": metrics.last_scrape_at,
        "hours_since_last_scrape": metrics.hours_since_last_scrape,
        "overall_health_score": metrics.overall_health_score,
        "freshness_score": metrics.freshness_score,
        "volume_score": metrics.volume_score,
        "is_anomaly": metrics.is_anomaly,
        "anomaly_reasons": [reason.value for reason in metrics.anomaly_reasons],
        "chain_median": metrics.chain_median,
        "percent_of_chain_median": metrics.percent_of_chain_median,
        "alert_type": metrics.alert_type,
    }


@router.get("/admin/health")
async def scraper_health(
    cinema_id: str | None = None,
    history: bool = False,
    history_days: int = Query(7, ge=1, le=90),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Scraper health for every cinema, worst first.

    With `cinema_id`, returns that cinema's metrics and optionally its
    recent snapshot history.
    """
    if cinema_id:
        metrics = await get_cinema_health_metrics(db, cinema_id)
        if metrics is None:
            raise HTTPException(status_code=404, detail="Cinema not found")

        response: dict[str, Any] = {"metrics": _metrics_dict(metrics)}
        if history:
            snapshots = await get_recent_health_snapshots(db, cinema_id, history_days)
            response["history"] = [
                {
                    "snapshot_at": snapshot.snapshot_at,
                    "overall_health_score": snapshot.overall_health_score,
                    "freshness_score": snapshot.freshness_score,
                    "volume_score": snapshot.volume_score,
                    "total_future_screenings": snapshot.total_future_screenings,
                    "anomaly_reasons": snapshot.anomaly_reasons,
                    "alert_type": snapshot.alert_type,
                }
                for snapshot in snapshots
            ]
        return response

    result = await run_full_health_check(db)
    metrics_sorted = sorted(result.metrics, key=lambda m: m.overall_health_score)

    return {
        "timestamp": result.timestamp,
        "summary": result.summary(),
        "thresholds": {"healthy_score": HEALTHY_SCORE, "warning_score": WARNING_SCORE},
        "metrics": [_metrics_dict(m) for m in metrics_sorted],
        "alerts": [
            {
                "cinema_id": alert.cinema_id,
                "cinema_name": alert.cinema_name,
                "alert_type": alert.alert_type,
                "message": alert.message,
                "hours_since_last_scrape": alert.hours_since_last_scrape,
                "screenings_count": alert.screenings_count,
            }
            for alert in result.alerts
        ],
    }
