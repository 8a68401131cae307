"""Tests for the admin import and health API endpoints."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from postboxd.api.routes.admin import next_daily_run, next_weekly_run
from postboxd.database import get_db
from postboxd.models import HealthSnapshot, ImportRun
from postboxd.scrapers.bfi_pdf import ImportResult
from postboxd.services.pipeline import PipelineResult
from postboxd.services.scraper_health import (
    AnomalyReason,
    CinemaHealthMetrics,
    HealthAlert,
    HealthCheckResult,
)

NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)  # a Monday


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_import_result(status: str = "success", **overrides) -> ImportResult:
    values = dict(
        status=status,
        pdf_screenings=120,
        changes_screenings=4,
        total_screenings=122,
        saved=PipelineResult(added=100, updated=20, failed=2),
        source_status={"pdf": "success", "programme_changes": "success"},
        error_codes=[],
        errors=[],
        duration_ms=5321,
        pdf_info={"label": "November 2026", "content_hash": "abc"},
        changes_info={"last_updated": "18 October 2026"},
    )
    values.update(overrides)
    return ImportResult(**values)


def make_metrics(cinema_id: str, score: int, reasons: list[AnomalyReason] | None = None) -> CinemaHealthMetrics:
    return CinemaHealthMetrics(
        cinema_id=cinema_id,
        cinema_name=cinema_id.replace("-", " ").title(),
        chain="BFI",
        total_future_screenings=50,
        next_14d_screenings=30,
        next_7d_screenings=15,
        last_scrape_at=NOW,
        hours_since_last_scrape=2,
        overall_health_score=score,
        freshness_score=score,
        volume_score=score,
        anomaly_reasons=reasons or [],
    )


def override_db(db: object | None = None):
    async def _override():
        yield db or AsyncMock()

    return _override


async def request(app: FastAPI, method: str, url: str):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.request(method, url)


# ---------------------------------------------------------------------------
# Schedule helpers
# ---------------------------------------------------------------------------


class TestNextRuns:
    def test_daily_later_today(self) -> None:
        assert next_daily_run(NOW, 10) == datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)

    def test_daily_tomorrow_when_passed(self) -> None:
        assert next_daily_run(NOW, 6) == datetime(2026, 10, 20, 6, 0, tzinfo=timezone.utc)

    def test_daily_exact_hour_is_not_next(self) -> None:
        at_ten = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)
        assert next_daily_run(at_ten, 10) == datetime(2026, 10, 20, 10, 0, tzinfo=timezone.utc)

    def test_weekly_this_week(self) -> None:
        assert next_weekly_run(NOW, 6, 6) == datetime(2026, 10, 25, 6, 0, tzinfo=timezone.utc)

    def test_weekly_same_day_passed(self) -> None:
        assert next_weekly_run(NOW, 0, 6) == datetime(2026, 10, 26, 6, 0, tzinfo=timezone.utc)

    def test_weekly_same_day_later(self) -> None:
        assert next_weekly_run(NOW, 0, 12) == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# POST /api/admin/bfi-import
# ---------------------------------------------------------------------------


class TestTriggerImport:
    async def test_full_import(self, test_app: FastAPI) -> None:
        with patch(
            "postboxd.api.routes.admin.run_bfi_import",
            AsyncMock(return_value=make_import_result()),
        ) as run:
            response = await request(test_app, "POST", "/api/admin/bfi-import")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["type"] == "full-import"
        assert data["saved"] == {"added": 100, "updated": 20, "failed": 2}
        assert data["pdf_info"]["label"] == "November 2026"
        run.assert_awaited_once_with("admin-api")

    async def test_changes_only(self, test_app: FastAPI) -> None:
        result = make_import_result(
            pdf_screenings=0,
            source_status={"pdf": "empty", "programme_changes": "success"},
            pdf_info=None,
        )
        with (
            patch("postboxd.api.routes.admin.run_programme_changes_import", AsyncMock(return_value=result)) as changes,
            patch("postboxd.api.routes.admin.run_bfi_import", AsyncMock()) as full,
        ):
            response = await request(test_app, "POST", "/api/admin/bfi-import?changes_only=true")

        data = response.json()
        assert data["type"] == "changes-only"
        assert data["pdf_info"] is None
        changes.assert_awaited_once_with("admin-api")
        full.assert_not_called()

    async def test_failed_run_is_reported_not_raised(self, test_app: FastAPI) -> None:
        result = make_import_result(
            "failed",
            total_screenings=0,
            saved=PipelineResult(),
            source_status={"pdf": "failed", "programme_changes": "failed"},
            error_codes=["PDF_NOT_FOUND", "PROGRAMME_CHANGES_FAILED", "NO_SCREENINGS_PARSED"],
            errors=["No PDF found", "Programme changes fetch failed: boom", "No screenings found"],
        )
        with patch("postboxd.api.routes.admin.run_bfi_import", AsyncMock(return_value=result)):
            response = await request(test_app, "POST", "/api/admin/bfi-import")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["status"] == "failed"
        assert data["error_codes"][-1] == "NO_SCREENINGS_PARSED"


# ---------------------------------------------------------------------------
# GET /api/admin/bfi/status
# ---------------------------------------------------------------------------


class TestImportStatus:
    async def test_no_runs_yet(self, test_app: FastAPI) -> None:
        test_app.dependency_overrides[get_db] = override_db()
        try:
            with patch("postboxd.api.routes.admin.get_last_import_run", AsyncMock(return_value=None)):
                response = await request(test_app, "GET", "/api/admin/bfi/status")
        finally:
            test_app.dependency_overrides.clear()

        assert response.status_code == 200
        data = response.json()
        assert data["last_run"] is None
        schedule = data["schedule"]
        assert data["next_scheduled_run"] == min(
            schedule["next_full_import_at"], schedule["next_programme_changes_at"]
        )

    async def test_last_run(self, test_app: FastAPI) -> None:
        run = ImportRun(
            id=uuid.UUID("12345678-1234-5678-1234-567812345678"),
            run_type="full",
            status="degraded",
            triggered_by="scheduler",
            source_status={"pdf": "success", "programme_changes": "failed"},
            pdf_screenings=120,
            changes_screenings=0,
            total_screenings=120,
            added=5,
            updated=115,
            failed=0,
            error_codes=["PROGRAMME_CHANGES_FAILED"],
            errors=["Programme changes fetch failed: timeout"],
            started_at=datetime(2026, 10, 18, 6, 0, tzinfo=timezone.utc),
            finished_at=datetime(2026, 10, 18, 6, 1, tzinfo=timezone.utc),
            duration_ms=60000,
        )
        test_app.dependency_overrides[get_db] = override_db()
        try:
            with patch("postboxd.api.routes.admin.get_last_import_run", AsyncMock(return_value=run)):
                response = await request(test_app, "GET", "/api/admin/bfi/status")
        finally:
            test_app.dependency_overrides.clear()

        last_run = response.json()["last_run"]
        assert last_run["id"] == "12345678-1234-5678-1234-567812345678"
        assert last_run["status"] == "degraded"
        assert last_run["screenings"] == {
            "pdf": 120,
            "programme_changes": 0,
            "total": 120,
            "added": 5,
            "updated": 115,
            "failed": 0,
        }
        assert last_run["error_codes"] == ["PROGRAMME_CHANGES_FAILED"]


# ---------------------------------------------------------------------------
# GET /api/admin/health
# ---------------------------------------------------------------------------


class TestScraperHealth:
    async def test_all_cinemas_worst_first(self, test_app: FastAPI) -> None:
        stale = make_metrics("bfi-imax", 25, [AnomalyReason.CRITICAL_STALE])
        result = HealthCheckResult(
            timestamp=NOW,
            metrics=[make_metrics("bfi-southbank", 95), stale],
            alerts=[
                HealthAlert(
                    cinema_id="bfi-imax",
                    cinema_name="Bfi Imax",
                    alert_type="critical_stale",
                    message="Bfi Imax: critically stale (80h since last scrape)",
                    hours_since_last_scrape=80,
                    screenings_count=50,
                )
            ],
        )
        test_app.dependency_overrides[get_db] = override_db()
        try:
            with patch("postboxd.api.routes.admin.run_full_health_check", AsyncMock(return_value=result)):
                response = await request(test_app, "GET", "/api/admin/health")
        finally:
            test_app.dependency_overrides.clear()

        data = response.json()
        assert [m["cinema_id"] for m in data["metrics"]] == ["bfi-imax", "bfi-southbank"]
        assert data["metrics"][0]["anomaly_reasons"] == ["critical_stale"]
        assert data["summary"] == {
            "total_cinemas": 2,
            "healthy": 1,
            "warning": 0,
            "critical": 1,
            "alert_count": 1,
        }
        assert data["thresholds"] == {"healthy_score": 80, "warning_score": 60}
        assert data["alerts"][0]["alert_type"] == "critical_stale"

    async def test_unknown_cinema(self, test_app: FastAPI) -> None:
        test_app.dependency_overrides[get_db] = override_db()
        try:
            with patch("postboxd.api.routes.admin.get_cinema_health_metrics", AsyncMock(return_value=None)):
                response = await request(test_app, "GET", "/api/admin/health?cinema_id=nope")
        finally:
            test_app.dependency_overrides.clear()

        assert response.status_code == 404
        assert response.json()["detail"] == "Cinema not found"

    async def test_single_cinema_with_history(self, test_app: FastAPI) -> None:
        snapshot = HealthSnapshot(
            cinema_id="bfi-southbank",
            snapshot_at=NOW,
            total_future_screenings=50,
            overall_health_score=95.0,
            freshness_score=98.0,
            volume_score=90.0,
            anomaly_reasons=[],
            alert_type=None,
        )
        history = AsyncMock(return_value=[snapshot])
        test_app.dependency_overrides[get_db] = override_db()
        try:
            with (
                patch(
                    "postboxd.api.routes.admin.get_cinema_health_metrics",
                    AsyncMock(return_value=make_metrics("bfi-southbank", 95)),
                ),
                patch("postboxd.api.routes.admin.get_recent_health_snapshots", history),
            ):
                response = await request(
                    test_app, "GET", "/api/admin/health?cinema_id=bfi-southbank&history=true&history_days=3"
                )
        finally:
            test_app.dependency_overrides.clear()

        data = response.json()
        assert data["metrics"]["overall_health_score"] == 95
        assert len(data["history"]) == 1
        assert data["history"][0]["freshness_score"] == 98.0
        assert history.await_args.args[1:] == ("bfi-southbank", 3)

    async def test_history_days_validated(self, test_app: FastAPI) -> None:
        test_app.dependency_overrides[get_db] = override_db(MagicMock())
        try:
            response = await request(test_app, "GET", "/api/admin/health?history_days=365")
        finally:
            test_app.dependency_overrides.clear()

        assert response.status_code == 422
