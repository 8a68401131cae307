"""Film matching service with title extraction, fuzzy matching and TMDb integration."""

import logging
import re

from rapidfuzz import fuzz
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from postboxd.models.film import Film
from postboxd.models.film_alias import FilmAlias
from postboxd.services.tmdb_client import TMDbClient
from postboxd.title_extraction import (
    PatternExtractionResult,
    TitleExtractor,
    extract_film_title_sync,
    generate_search_variations,
)
from postboxd.title_extraction.ai_extractor import extract_version_suffix
from postboxd.utils.text import normalise_title, slugify

logger = logging.getLogger(__name__)

TRAILING_YEAR = re.compile(r"\s*\((\d{4})\)\s*$")


class FilmMatcher:
    """
    Service for matching cinema listing titles to canonical film records.

    Uses a multi-stage matching process:
    1. Check film_aliases for an exact match on the raw title
    2. Detect non-film events (quizzes, talks) and store them without TMDb
    3. Extract the canonical film title (patterns, then AI for ambiguous listings)
    4. Fuzzy match against existing films
    5. Search TMDb with title variations if no local match
    6. Create new film from TMDb or a placeholder
    7. Store alias for future lookups
    """

    FUZZY_THRESHOLD = 85  # Minimum similarity score for fuzzy matching
    MIN_TMDB_CONFIDENCE = 0.5  # Pattern confidence below this skips TMDb (compilations)

    def __init__(
        self,
        db: AsyncSession,
        tmdb_client: TMDbClient | None = None,
        title_extractor: TitleExtractor | None = None,
    ) -> None:
        """
        Initialize film matcher.

        Args:
            db: Database session
            tmdb_client: TMDb client (creates default if not provided)
            title_extractor: AI title extractor; pattern extraction only if not provided
        """
        self.db = db
        self.tmdb_client = tmdb_client or TMDbClient()
        self.title_extractor = title_extractor

    async def match_or_create_film(self, raw_title: str, year: int | None = None) -> Film:
        """
        Match a raw cinema title to an existing film or create a new one.

        Args:
            raw_title: Film title as it appears in the listing
            year: Release year hint from the source, if any

        Returns:
            Matched or newly created Film object
        """
        normalized_title = normalise_title(raw_title)

        film = await self._check_alias(normalized_title)
        if film:
            logger.debug(f"Found via alias: '{raw_title}' -> {film.title}")
            return film

        extraction = extract_film_title_sync(raw_title)
        if extraction.is_non_film:
            film = await self._create_placeholder(extraction.extracted_title, None, is_non_film=True)
            logger.info(f"Non-film event: '{raw_title}'")
            await self._store_alias(normalized_title, film.id)
            return film

        canonical_title = await self._canonical_title(extraction)
        year = year or self._title_year(canonical_title)
        logger.info(f"Matching film: '{raw_title}' -> '{canonical_title}'")

        film = await self._fuzzy_match(canonical_title)
        if film:
            logger.info(f"Found via fuzzy match: {film.title}")
            await self._store_alias(normalized_title, film.id)
            return film

        if extraction.confidence >= self.MIN_TMDB_CONFIDENCE:
            film = await self._create_from_tmdb(canonical_title, year)
            if film:
                logger.info(f"Created from TMDb: {film.title}")
                await self._store_alias(normalized_title, film.id)
                return film

        film = await self._create_placeholder(canonical_title, year)
        logger.info(f"Created placeholder: {film.title}")
        await self._store_alias(normalized_title, film.id)
        return film

    async def _canonical_title(self, extraction: PatternExtractionResult) -> str:
        """Version-stripped title used for matching."""
        if self.title_extractor is not None:
            result = await self.title_extractor.extract_cached(extraction.extracted_title)
            return result.canonical_title

        version_info = extract_version_suffix(extraction.extracted_title)
        if version_info:
            return version_info[0]
        return extraction.extracted_title

    async def _check_alias(self, normalized_title: str) -> Film | None:
        """Check if normalized title exists in film_aliases table."""
        query = (
            select(Film)
            .join(FilmAlias)
            .where(FilmAlias.normalized_title == normalized_title)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _fuzzy_match(self, title: str) -> Film | None:
        """Fuzzy match a canonical title against existing films."""
        query = select(Film).where(Film.is_non_film.is_(False))
        result = await self.db.execute(query)
        films = result.scalars().all()

        if not films:
            return None

        best_score = 0.0
        best_film = None
        candidate = TRAILING_YEAR.sub("", title).lower()

        for film in films:
            score = fuzz.ratio(candidate, film.title.lower())
            if score > best_score:
                best_score = score
                best_film = film

        if best_score >= self.FUZZY_THRESHOLD and best_film:
            logger.info(f"Fuzzy match: {best_score:.1f}% - '{title}' -> '{best_film.title}'")
            return best_film

        return None

    async def _create_from_tmdb(self, title: str, year: int | None) -> Film | None:
        """Create film from TMDb data, trying each search variation in turn."""
        search_result = None
        for variation in generate_search_variations(title):
            search_result = await self.tmdb_client.search_film(variation, year)
            if search_result:
                break
        if not search_result:
            return None

        tmdb_id = search_result["id"]

        # Another listing may already have resolved to this TMDb film
        existing = await self.db.execute(select(Film).where(Film.tmdb_id == tmdb_id))
        existing_film = existing.scalar_one_or_none()
        if existing_film:
            return existing_film

        details = await self.tmdb_client.get_film_details(tmdb_id)
        if not details:
            return None

        credits = details.get("credits", {})
        tmdb_title = details.get("title", title)
        tmdb_year = self._extract_year(details.get("release_date"))
        directors = self.tmdb_client.extract_directors(credits)
        countries = self.tmdb_client.extract_countries(details)
        cast = self.tmdb_client.extract_cast(credits)

        film = Film(
            id=self._generate_film_id(tmdb_title, tmdb_year),
            title=tmdb_title,
            year=tmdb_year,
            tmdb_id=tmdb_id,
            directors=directors or None,
            countries=countries or None,
            cast=cast or None,
            overview=details.get("overview"),
            poster_path=details.get("poster_path"),
            runtime=details.get("runtime"),
        )
        return await self._add_film(film)

    async def _create_placeholder(
        self, title: str, year: int | None, is_non_film: bool = False
    ) -> Film:
        """Create a placeholder film when no TMDb match is found."""
        display_title = TRAILING_YEAR.sub("", title).strip() or title

        film = Film(
            id=self._generate_film_id(display_title, year),
            title=display_title,
            year=year,
            tmdb_id=None,
            is_non_film=is_non_film,
        )
        return await self._add_film(film)

    async def _add_film(self, film: Film) -> Film:
        """Insert a film, reusing the existing row if another listing created it first."""
        existing = await self.db.get(Film, film.id)
        if existing:
            logger.debug(f"Film {film.id!r} already exists, reusing.")
            return existing

        try:
            async with self.db.begin_nested():
                self.db.add(film)
        except IntegrityError:
            existing = await self.db.get(Film, film.id)
            if existing:
                logger.debug(f"Film {film.id!r} created concurrently, reusing.")
                return existing
            raise

        return film

    async def _store_alias(self, normalized_title: str, film_id: str) -> None:
        """Store a film alias for faster future lookups."""
        query = select(FilmAlias).where(FilmAlias.normalized_title == normalized_title)
        result = await self.db.execute(query)
        if result.scalar_one_or_none():
            return

        self.db.add(FilmAlias(normalized_title=normalized_title, film_id=film_id))
        await self.db.flush()

    def _title_year(self, title: str) -> int | None:
        match = TRAILING_YEAR.search(title)
        return int(match.group(1)) if match else None

    def _extract_year(self, release_date: str | None) -> int | None:
        """Extract year from TMDb release date string."""
        if not release_date:
            return None
        try:
            return int(release_date[:4])
        except (ValueError, IndexError):
            return None

    def _generate_film_id(self, title: str, year: int | None) -> str:
        """Generate a film ID from title and year."""
        slug = slugify(title) or "untitled"
        if year:
            return f"{slug}-{year}"
        return slug
