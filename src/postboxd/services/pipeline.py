"""Storage pipeline: venues, screenings and import run records."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from postboxd.config import settings
from postboxd.database import session_scope
from postboxd.models import Cinema, ImportRun, Screening
from postboxd.scrapers.models import ImportRunRecord, RawScreening, Venue
from postboxd.services.film_matcher import FilmMatcher
from postboxd.services.gemini_client import GeminiClient
from postboxd.services.scraper_health import post_scrape_health_check
from postboxd.services.tmdb_client import TMDbClient
from postboxd.title_extraction import TitleExtractor

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Counts from saving one batch of screenings."""

    added: int = 0
    updated: int = 0
    failed: int = 0

    def __add__(self, other: "PipelineResult") -> "PipelineResult":
        return PipelineResult(
            added=self.added + other.added,
            updated=self.updated + other.updated,
            failed=self.failed + other.failed,
        )


def default_title_extractor() -> TitleExtractor | None:
    """AI title extractor when Gemini is configured, otherwise pattern extraction only."""
    if not settings.gemini_api_key:
        return None
    return TitleExtractor(GeminiClient())


async def ensure_cinema_exists(venue: Venue) -> Cinema:
    """Create the cinema row for a venue, or refresh its static details."""
    async with session_scope() as db:
        cinema = await db.get(Cinema, venue.id)
        if cinema is None:
            cinema = Cinema(id=venue.id)
            db.add(cinema)
            logger.info(f"Created cinema {venue.id}")

        cinema.name = venue.name
        cinema.short_name = venue.short_name
        cinema.chain = venue.chain
        cinema.website = venue.website
        cinema.address = dict(venue.address)
        cinema.features = list(venue.features)
        return cinema


async def save_screenings(
    cinema_id: str,
    screenings: Sequence[RawScreening],
    *,
    tmdb_client: TMDbClient | None = None,
    title_extractor: TitleExtractor | None = None,
) -> PipelineResult:
    """
    Match films and upsert screenings for one cinema.

    Each screening is saved in its own savepoint, so a bad row is counted
    as failed without losing the rest of the batch. The cinema's
    `last_scraped_at` is stamped even when the batch is empty.

    Raises:
        SQLAlchemyError: The session itself could not be opened or committed
    """
    result = PipelineResult()
    scraped_at = datetime.now(timezone.utc)
    if title_extractor is None:
        title_extractor = default_title_extractor()

    async with session_scope() as db:
        matcher = FilmMatcher(db, tmdb_client, title_extractor)

        for raw in screenings:
            try:
                async with db.begin_nested():
                    created = await _upsert_screening(db, matcher, cinema_id, raw, scraped_at)
            except Exception as e:
                result.failed += 1
                logger.warning(
                    f"Failed to save '{raw.film_title}' at {raw.start_time} for {cinema_id}: {e}"
                )
                continue

            if created:
                result.added += 1
            else:
                result.updated += 1

        cinema = await db.get(Cinema, cinema_id)
        if cinema is not None:
            cinema.last_scraped_at = scraped_at

    logger.info(
        f"Saved {cinema_id}: {result.added} added, {result.updated} updated, {result.failed} failed"
    )

    try:
        await post_scrape_health_check(cinema_id)
    except Exception as e:
        logger.warning(f"Post-save health check failed for {cinema_id}: {e}")

    return result


async def _upsert_screening(
    db: AsyncSession,
    matcher: FilmMatcher,
    cinema_id: str,
    raw: RawScreening,
    scraped_at: datetime,
) -> bool:
    """Insert or update one screening. Returns True when a new row was created."""
    film = await matcher.match_or_create_film(raw.film_title, raw.year)

    stmt = select(Screening).where(
        Screening.cinema_id == cinema_id,
        Screening.film_id == film.id,
        Screening.start_time == raw.start_time,
        Screening.screen.is_not_distinct_from(raw.screen),
    )
    existing = (await db.execute(stmt)).scalar_one_or_none()

    if existing is None:
        db.add(
            Screening(
                cinema_id=cinema_id,
                film_id=film.id,
                start_time=raw.start_time,
                screen=raw.screen,
                format=raw.format,
                booking_url=raw.booking_url,
                event_type=raw.event_type,
                event_description=raw.event_description,
                source_id=raw.source_id,
                raw_title=raw.film_title,
                scraped_at=scraped_at,
            )
        )
        await db.flush()
        return True

    existing.booking_url = raw.booking_url
    existing.format = raw.format
    existing.event_type = raw.event_type
    existing.event_description = raw.event_description
    existing.source_id = raw.source_id
    existing.raw_title = raw.film_title
    existing.scraped_at = scraped_at
    return False


async def persist_import_run(record: ImportRunRecord) -> ImportRun:
    """Insert the audit row for a finished import run."""
    async with session_scope() as db:
        run = ImportRun(
            run_type=record.run_type,
            status=record.status,
            triggered_by=record.triggered_by,
            source_status=dict(record.source_status),
            pdf_screenings=record.pdf_screenings,
            changes_screenings=record.changes_screenings,
            total_screenings=record.total_screenings,
            added=record.added,
            updated=record.updated,
            failed=record.failed,
            error_codes=list(record.error_codes),
            errors=list(record.errors),
            started_at=record.started_at,
            finished_at=record.finished_at,
            duration_ms=record.duration_ms,
        )
        db.add(run)
        return run


async def get_last_import_run(db: AsyncSession, run_type: str | None = None) -> ImportRun | None:
    """Most recent import run, optionally restricted to one run type."""
    stmt = select(ImportRun).order_by(ImportRun.finished_at.desc()).limit(1)
    if run_type:
        stmt = stmt.where(ImportRun.run_type == run_type)
    return (await db.execute(stmt)).scalar_one_or_none()
