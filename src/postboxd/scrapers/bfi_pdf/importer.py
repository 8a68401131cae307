"""
BFI import orchestrator.

Combines the monthly guide PDF with the programme changes page:

1. Make sure the BFI Southbank and BFI IMAX cinemas exist
2. Fetch and parse the latest guide PDF (full imports only)
3. Fetch and parse programme changes
4. Merge and deduplicate (changes win over the PDF)
5. Save each venue's screenings
6. Grade the run, persist an audit record and alert when it was not clean

Source and save failures are recorded as error codes on the result; the
entry points do not raise for them.
"""

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlparse

from postboxd.scrapers.bfi_pdf.fetcher import FetchedPDF, fetch_latest_pdf
from postboxd.scrapers.bfi_pdf.pdf_parser import ParseResult, parse_pdf
from postboxd.scrapers.bfi_pdf.programme_changes import (
    ProgrammeChangesResult,
    fetch_programme_changes,
)
from postboxd.scrapers.models import ImportRunRecord, RawScreening, Venue
from postboxd.services import pipeline
from postboxd.services.alerts import send_import_alert
from postboxd.services.pipeline import PipelineResult
from postboxd.utils.text import key_segment

logger = logging.getLogger(__name__)

BFI_SOUTHBANK = "bfi-southbank"
BFI_IMAX = "bfi-imax"

BFI_VENUES: dict[str, Venue] = {
    BFI_SOUTHBANK: Venue(
        id=BFI_SOUTHBANK,
        name="BFI Southbank",
        short_name="BFI",
        website="https://www.bfi.org.uk/bfi-southbank",
        address={"street": "Belvedere Road", "area": "South Bank", "postcode": "SE1 8XT"},
        features=("independent", "repertory", "archive", "world-cinema"),
        chain="BFI",
    ),
    BFI_IMAX: Venue(
        id=BFI_IMAX,
        name="BFI IMAX",
        short_name="IMAX",
        website="https://www.bfi.org.uk/bfi-imax",
        address={"street": "1 Charlie Chaplin Walk", "area": "Waterloo", "postcode": "SE1 8XR"},
        features=("imax", "blockbusters", "3d"),
        chain="BFI",
    ),
}

# Error codes
VENUE_INIT_FAILED = "VENUE_INIT_FAILED"
PDF_NOT_FOUND = "PDF_NOT_FOUND"
PDF_FETCH_PARSE_FAILED = "PDF_FETCH_PARSE_FAILED"
PROGRAMME_CHANGES_FAILED = "PROGRAMME_CHANGES_FAILED"
NO_SCREENINGS_PARSED = "NO_SCREENINGS_PARSED"
SAVE_SOUTHBANK_FAILED = "SAVE_SOUTHBANK_FAILED"
SAVE_IMAX_FAILED = "SAVE_IMAX_FAILED"

SAVE_ERROR_CODES = {
    BFI_SOUTHBANK: (SAVE_SOUTHBANK_FAILED, "Southbank"),
    BFI_IMAX: (SAVE_IMAX_FAILED, "IMAX"),
}

IMAX_PATH_SEGMENT = re.compile(r"/imax(?:/|$)")


@dataclass(frozen=True)
class ImportIssue:
    code: str
    message: str


@dataclass
class SourceOutcome:
    """Result of one source step, captured as a value so sources stay independent."""

    status: str  # success | empty | failed
    screenings: list[RawScreening] = field(default_factory=list)
    info: dict[str, Any] | None = None
    error: ImportIssue | None = None


@dataclass
class ImportResult:
    status: str  # success | degraded | failed
    pdf_screenings: int
    changes_screenings: int
    total_screenings: int
    saved: PipelineResult
    source_status: dict[str, str]
    error_codes: list[str]
    errors: list[str]
    duration_ms: int
    pdf_info: dict[str, Any] | None = None
    changes_info: dict[str, Any] | None = None

    @property
    def success(self) -> bool:
        return self.status != "failed"

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "success": self.success}


@dataclass
class ImportDependencies:
    """External collaborators of the importer; tests swap these for fakes."""

    fetch_pdf: Callable[[], Awaitable[FetchedPDF | None]] = fetch_latest_pdf
    parse_pdf: Callable[[FetchedPDF], Awaitable[ParseResult]] = parse_pdf
    fetch_changes: Callable[[], Awaitable[ProgrammeChangesResult]] = fetch_programme_changes
    ensure_cinema: Callable[[Venue], Awaitable[Any]] = pipeline.ensure_cinema_exists
    save_screenings: Callable[[str, Sequence[RawScreening]], Awaitable[PipelineResult]] = (
        pipeline.save_screenings
    )
    persist_run: Callable[[ImportRunRecord], Awaitable[Any]] = pipeline.persist_import_run
    send_alert: Callable[[ImportRunRecord], Awaitable[Any]] = send_import_alert


# ---------------------------------------------------------------------------
# Venue routing and deduplication
# ---------------------------------------------------------------------------


def is_imax_booking_url(booking_url: str | None) -> bool:
    """Whether a booking URL points at the IMAX booking site."""
    if not booking_url:
        return False
    try:
        parsed = urlparse(booking_url)
        path = parsed.path.lower()
        host = (parsed.hostname or "").lower()
    except ValueError:
        normalized = booking_url.lower()
        return "bfiimax" in normalized or "/imax/" in normalized

    return "bfiimax" in f"{host}{path}" or bool(IMAX_PATH_SEGMENT.search(path))


def venue_key(screening: RawScreening) -> str:
    """Screen label decides first; the booking URL is the fallback."""
    if "IMAX" in (screening.screen or "").upper() or is_imax_booking_url(screening.booking_url):
        return BFI_IMAX
    return BFI_SOUTHBANK


def screening_key(screening: RawScreening) -> str:
    """Venue-aware dedup key: venue, title, minute (UTC) and screen."""
    minute = screening.start_time.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M")
    return "|".join(
        (
            venue_key(screening),
            key_segment(screening.film_title),
            minute,
            key_segment(screening.screen),
        )
    )


def merge_screenings(
    pdf_screenings: Sequence[RawScreening],
    changes_screenings: Sequence[RawScreening],
) -> list[RawScreening]:
    """Merge both sources; on a key collision the programme change wins."""
    merged: dict[str, RawScreening] = {}
    for screening in pdf_screenings:
        merged[screening_key(screening)] = screening
    for screening in changes_screenings:
        merged[screening_key(screening)] = screening
    return list(merged.values())


def grade_run(
    total_screenings: int,
    source_status: dict[str, str],
    issues: Sequence[ImportIssue],
    allow_empty: bool = False,
) -> str:
    if total_screenings == 0 and not allow_empty:
        return "failed"
    if "failed" in source_status.values() or issues:
        return "degraded"
    return "success"


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def _record(issues: list[ImportIssue], code: str, message: str) -> None:
    issues.append(ImportIssue(code, message))
    logger.error(f"[{code}] {message}")


async def _ensure_venues(deps: ImportDependencies, issues: list[ImportIssue]) -> None:
    try:
        for venue in BFI_VENUES.values():
            await deps.ensure_cinema(venue)
    except Exception as e:
        _record(issues, VENUE_INIT_FAILED, f"Failed to ensure venues exist: {e}")


async def _pdf_source(deps: ImportDependencies) -> SourceOutcome:
    fetched: FetchedPDF | None = None
    try:
        fetched = await deps.fetch_pdf()
        if fetched is None:
            return SourceOutcome("failed", error=ImportIssue(PDF_NOT_FOUND, "No PDF found"))
        parsed = await deps.parse_pdf(fetched)
    except Exception as e:
        info = _pdf_info(fetched) if fetched else None
        return SourceOutcome(
            "failed",
            info=info,
            error=ImportIssue(PDF_FETCH_PARSE_FAILED, f"PDF fetch/parse failed: {e}"),
        )

    logger.info(
        f"BFI import: PDF {fetched.info.label} parsed, "
        f"{len(parsed.screenings)} screenings from {len(parsed.films)} films"
    )
    return SourceOutcome(
        "success" if parsed.screenings else "empty",
        screenings=list(parsed.screenings),
        info=_pdf_info(fetched),
    )


def _pdf_info(fetched: FetchedPDF) -> dict[str, Any]:
    return {"label": fetched.info.label, "content_hash": fetched.content_hash}


async def _changes_source(deps: ImportDependencies) -> SourceOutcome:
    try:
        changes = await deps.fetch_changes()
    except Exception as e:
        return SourceOutcome(
            "failed",
            error=ImportIssue(PROGRAMME_CHANGES_FAILED, f"Programme changes fetch failed: {e}"),
        )

    logger.info(
        f"BFI import: {len(changes.screenings)} screenings from {len(changes.changes)} programme changes"
    )
    return SourceOutcome(
        "success" if changes.screenings else "empty",
        screenings=list(changes.screenings),
        info={"last_updated": changes.last_updated},
    )


async def _save_by_venue(
    screenings: Sequence[RawScreening],
    deps: ImportDependencies,
    issues: list[ImportIssue],
) -> PipelineResult:
    """
    Save each venue's screenings, Southbank then IMAX.

    Partitions share film rows, so they are saved one at a time. One venue
    failing leaves the other intact.
    """
    partitions: dict[str, list[RawScreening]] = {BFI_SOUTHBANK: [], BFI_IMAX: []}
    for screening in screenings:
        partitions[venue_key(screening)].append(screening)

    total = PipelineResult()
    for cinema_id, items in partitions.items():
        if not items:
            continue
        try:
            outcome = await deps.save_screenings(cinema_id, items)
        except Exception as e:
            code, name = SAVE_ERROR_CODES[cinema_id]
            _record(issues, code, f"Failed to save {name} screenings: {e}")
            continue

        logger.info(
            f"BFI import: {cinema_id} {len(items)} screenings, added={outcome.added}, "
            f"updated={outcome.updated}, failed={outcome.failed}"
        )
        total += outcome
    return total


async def _best_effort(step: Awaitable[Any], description: str) -> None:
    try:
        await step
    except Exception as e:
        logger.error(f"BFI import: failed to {description}: {e}", exc_info=True)


async def _finalize(
    result: ImportResult,
    run_type: str,
    started_at: datetime,
    triggered_by: str | None,
    deps: ImportDependencies,
) -> ImportResult:
    """Persist the run record and alert when needed, without letting either fail the run."""
    record = ImportRunRecord(
        run_type=run_type,
        status=result.status,
        triggered_by=triggered_by or "unknown",
        source_status=dict(result.source_status),
        pdf_screenings=result.pdf_screenings,
        changes_screenings=result.changes_screenings,
        total_screenings=result.total_screenings,
        added=result.saved.added,
        updated=result.saved.updated,
        failed=result.saved.failed,
        error_codes=tuple(result.error_codes),
        errors=tuple(result.errors),
        started_at=started_at,
        finished_at=started_at + timedelta(milliseconds=result.duration_ms),
        duration_ms=result.duration_ms,
    )

    steps = [_best_effort(deps.persist_run(record), "persist run record")]
    if result.status != "success":
        steps.append(_best_effort(deps.send_alert(record), "send alert"))
    await asyncio.gather(*steps)

    logger.info(
        f"BFI {run_type} import {result.status} in {result.duration_ms}ms: "
        f"added={result.saved.added}, updated={result.saved.updated}, failed={result.saved.failed}"
    )
    return result


def _build_result(
    *,
    pdf: SourceOutcome | None,
    changes: SourceOutcome,
    total_screenings: int,
    saved: PipelineResult,
    issues: list[ImportIssue],
    started: float,
    allow_empty: bool,
) -> ImportResult:
    source_status = {
        "pdf": pdf.status if pdf else "empty",
        "programme_changes": changes.status,
    }
    return ImportResult(
        status=grade_run(total_screenings, source_status, issues, allow_empty),
        pdf_screenings=len(pdf.screenings) if pdf else 0,
        changes_screenings=len(changes.screenings),
        total_screenings=total_screenings,
        saved=saved,
        source_status=source_status,
        error_codes=[issue.code for issue in issues],
        errors=[issue.message for issue in issues],
        duration_ms=int((time.monotonic() - started) * 1000),
        pdf_info=pdf.info if pdf else None,
        changes_info=changes.info,
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def run_bfi_import(
    triggered_by: str | None = None, *, deps: ImportDependencies | None = None
) -> ImportResult:
    """Run the full import: guide PDF plus programme changes."""
    deps = deps or ImportDependencies()
    started_at = datetime.now(timezone.utc)
    started = time.monotonic()
    issues: list[ImportIssue] = []

    logger.info(f"BFI full import started (triggered by {triggered_by or 'unknown'})")
    await _ensure_venues(deps, issues)

    pdf, changes = await asyncio.gather(_pdf_source(deps), _changes_source(deps))
    for outcome in (pdf, changes):
        if outcome.error:
            _record(issues, outcome.error.code, outcome.error.message)

    merged = merge_screenings(pdf.screenings, changes.screenings)
    logger.info(f"BFI import: {len(merged)} screenings after merge")

    saved = PipelineResult()
    if merged:
        saved = await _save_by_venue(merged, deps, issues)
    else:
        _record(issues, NO_SCREENINGS_PARSED, "No screenings found from PDF or programme changes")

    result = _build_result(
        pdf=pdf,
        changes=changes,
        total_screenings=len(merged),
        saved=saved,
        issues=issues,
        started=started,
        allow_empty=False,
    )
    return await _finalize(result, "full", started_at, triggered_by, deps)


async def run_programme_changes_import(
    triggered_by: str | None = None, *, deps: ImportDependencies | None = None
) -> ImportResult:
    """Import only the programme changes page. An empty page is not a failure."""
    deps = deps or ImportDependencies()
    started_at = datetime.now(timezone.utc)
    started = time.monotonic()
    issues: list[ImportIssue] = []

    logger.info(f"BFI changes import started (triggered by {triggered_by or 'unknown'})")
    await _ensure_venues(deps, issues)

    changes = await _changes_source(deps)
    if changes.error:
        _record(issues, changes.error.code, changes.error.message)

    saved = PipelineResult()
    if changes.screenings:
        saved = await _save_by_venue(changes.screenings, deps, issues)

    result = _build_result(
        pdf=None,
        changes=changes,
        total_screenings=len(changes.screenings),
        saved=saved,
        issues=issues,
        started=started,
        allow_empty=True,
    )
    return await _finalize(result, "changes", started_at, triggered_by, deps)
