"""
BFI guide PDF parser.

Parses the accessible (text-based) BFI Southbank guide. The extracted text
has no structure beyond lines, so film blocks are recognised with line-level
patterns:

    FILM TITLE
    Original Title (if different)
    Country YYYY. Director Name. With Actor One, Actor Two. 120min. Digital 4K. 15.
    Film description and context...
    SAT 24 JAN 18:00 NFT1 AD
    SUN 25 JAN 14:30 NFT3 CC

Accessibility flags: AD (audio description), DS (descriptive subtitles),
CC (closed captions), BSL (BSL interpreted).
"""

import asyncio
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pdfplumber

from postboxd.scrapers.bfi_pdf.fetcher import FetchedPDF
from postboxd.scrapers.bfi_pdf.url_builder import build_bfi_search_url
from postboxd.scrapers.models import RawScreening

logger = logging.getLogger(__name__)

LONDON_TZ = ZoneInfo("Europe/London")

# PDF screen names → cinema IDs; unknown screens belong to Southbank
VENUE_MAP: dict[str, str] = {
    "NFT1": "bfi-southbank",
    "NFT2": "bfi-southbank",
    "NFT3": "bfi-southbank",
    "NFT4": "bfi-southbank",
    "STUDIO": "bfi-southbank",
    "BFI IMAX": "bfi-imax",
    "IMAX": "bfi-imax",
    "BFI REUBEN LIBRARY": "bfi-southbank",
}
DEFAULT_CINEMA_ID = "bfi-southbank"

MONTHS: dict[str, int] = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}

SEASON_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        r"^[A-Z\s]+SEASON$",
        r"^BIG SCREEN CLASSICS$",
        r"^MEMBER EXCLUSIVES$",
        r"^PROJECTING THE ARCHIVE$",
        r"^EXPERIMENTA$",
        r"^AFRICAN ODYSSEYS$",
        r"^WOMAN WITH A MOVIE CAMERA$",
        r"^IN THE FRAME:",
        r"^RE-RELEASES$",
        r"^NEW RELEASES$",
        r"^PREVIEWS$",
        r"^RELAXED SCREENINGS$",
    )
)

_DAYS = r"MON|TUE|WED|THU|FRI|SAT|SUN"
_MONTHS = r"JAN|FEB|MAR|APR|MAY|JUN|JUL|AUG|SEP|OCT|NOV|DEC"

# "SAT 24 JAN 18:00 NFT1"
SCREENING_LINE_PATTERN = re.compile(
    rf"\b({_DAYS})\s+\d{{1,2}}\s+({_MONTHS})\s+\d{{1,2}}:\d{{2}}\s+(NFT\d|IMAX|STUDIO)",
    re.IGNORECASE,
)
SCREENING_PATTERN = re.compile(
    rf"\b({_DAYS})\s+(\d{{1,2}})\s+({_MONTHS})\s+(\d{{1,2}}):(\d{{2}})\s+(NFT\d|IMAX|STUDIO|BFI IMAX)",
    re.IGNORECASE,
)
SCREENING_SEPARATOR = re.compile(r"[;,]")
ACCESSIBILITY_FLAGS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (flag, re.compile(rf"\b{flag}\b")) for flag in ("AD", "DS", "CC", "BSL")
)

# Metadata line sub-patterns
YEAR_PATTERN = re.compile(r"\b(19|20)\d{2}\b")
RUNTIME_PATTERN = re.compile(r"\b(\d{2,3})min\b", re.IGNORECASE)
DIRECTOR_MARKER = re.compile(r"\bDirector\b|\bDir\.", re.IGNORECASE)
CERTIFICATE_PATTERN = re.compile(r"\b(U|PG|12A?|15|18|TBC)\b\.?\s*$")
DIRECTOR_PATTERN = re.compile(r"(?:Director|Dir\.)\s+([^.]+)\.", re.IGNORECASE)
CAST_PATTERN = re.compile(r"With\s+([^.]+)\.")
COUNTRIES_PATTERN = re.compile(r"^([A-Za-z\-/\s]+)\s+\d{4}")
COUNTRY_SEPARATOR = re.compile(r"[-/]")
FORMATS: tuple[str, ...] = (
    "Digital 4K", "Digital", "DCP 4K", "DCP", "35mm", "70mm", "70mm IMAX", "IMAX Laser",
)

# Event cues and title cleanup on output
EVENT_TYPE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("q_and_a", re.compile(r"\+\s*Q\s*&?\s*A", re.IGNORECASE)),
    ("intro", re.compile(r"\+\s*intro", re.IGNORECASE)),
    ("discussion", re.compile(r"\+\s*discussion", re.IGNORECASE)),
    ("preview", re.compile(r"preview", re.IGNORECASE)),
    ("premiere", re.compile(r"premiere", re.IGNORECASE)),
)
EVENT_SUFFIX_PATTERN = re.compile(r"\s*\+\s*(Q\s*&?\s*A|intro|discussion|panel).*$", re.IGNORECASE)
EVENT_PREFIX_PATTERN = re.compile(r"^(Preview|UK Premiere|Premiere)[:\s]+", re.IGNORECASE)

MAX_TITLE_LENGTH = 100
MAX_ORIGINAL_TITLE_LENGTH = 80
MIN_DESCRIPTION_LENGTH = 20
METADATA_LOOKAHEAD = 4


@dataclass
class ParsedScreening:
    day: str
    date: int
    month: str
    time: str
    venue: str  # Raw screen token, e.g. "NFT1"
    cinema_id: str
    datetime: datetime
    accessibility_flags: list[str] = field(default_factory=list)


@dataclass
class ParsedFilm:
    title: str
    original_title: str | None = None
    year: int | None = None
    director: str | None = None
    cast: list[str] | None = None
    runtime: int | None = None
    format: str | None = None
    certificate: str | None = None
    countries: list[str] | None = None
    description: str | None = None
    season: str | None = None
    screenings: list[ParsedScreening] = field(default_factory=list)


@dataclass
class ParseResult:
    films: list[ParsedFilm]
    screenings: list[RawScreening]
    parse_errors: list[str]
    pdf_label: str


def extract_text(content: bytes) -> str:
    """Extract the text of every page of a PDF, pages joined by newlines."""
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        return "\n".join(page.extract_text() or "" for page in pdf.pages)


async def parse_pdf(fetched: FetchedPDF) -> ParseResult:
    """Parse a downloaded guide PDF into films and future screenings."""
    logger.info(f"BFI PDF: parsing {fetched.info.label}")
    text = await asyncio.to_thread(extract_text, fetched.content)
    coverage_start = fetched.info.months.start if fetched.info.months else None
    return parse_text(text, fetched.info.label, coverage_start=coverage_start)


def parse_text(
    text: str,
    label: str,
    coverage_start: date | None = None,
    now: datetime | None = None,
) -> ParseResult:
    """
    Parse extracted guide text.

    Args:
        text: Text extracted from the guide PDF
        label: Guide label, e.g. "January 2026" (used in source IDs)
        coverage_start: First day the guide covers; its year is the base year for dates
        now: Reference time for year rollover and past-screening filtering

    Returns:
        Films with at least one screening, and their future screenings
    """
    now = now or datetime.now(LONDON_TZ)
    base_year = coverage_start.year if coverage_start else now.year
    lines = [line.strip() for line in text.splitlines() if line.strip()]

    films: list[ParsedFilm] = []
    parse_errors: list[str] = []
    current_season: str | None = None

    i = 0
    while i < len(lines):
        line = lines[i]

        if is_season_header(line):
            current_season = line
            i += 1
            continue

        parsed = _try_parse_film(lines, i, base_year, now, current_season, parse_errors)
        if parsed is None:
            i += 1
            continue

        film, i = parsed
        if film is not None:
            films.append(film)

    screenings = _to_raw_screenings(films, label, now)
    logger.info(f"BFI PDF: parsed {len(films)} films with {len(screenings)} screenings from {label}")

    return ParseResult(films=films, screenings=screenings, parse_errors=parse_errors, pdf_label=label)


def is_season_header(line: str) -> bool:
    """Check for an all-caps season/strand header such as "BIG SCREEN CLASSICS"."""
    if len(line) < 5 or len(line) > 50:
        return False
    if line != line.upper():
        return False
    return any(pattern.search(line) for pattern in SEASON_PATTERNS)


def is_screening_line(line: str) -> bool:
    return bool(SCREENING_LINE_PATTERN.search(line))


def is_metadata_line(line: str) -> bool:
    """A metadata line has a year and either a runtime or a director marker."""
    return bool(YEAR_PATTERN.search(line)) and bool(
        RUNTIME_PATTERN.search(line) or DIRECTOR_MARKER.search(line)
    )


def is_description_line(line: str) -> bool:
    if len(line) < MIN_DESCRIPTION_LENGTH:
        return False
    return not (is_screening_line(line) or is_metadata_line(line) or is_season_header(line))


def parse_metadata_line(line: str) -> dict:
    """
    Parse a metadata line into film fields.

    "UK-France 1972. Director Ken Loach. With Carol White, Terence Stamp. 101min. 35mm. 15."
    """
    metadata: dict = {}

    year_match = YEAR_PATTERN.search(line)
    if year_match:
        metadata["year"] = int(year_match.group(0))

    runtime_match = RUNTIME_PATTERN.search(line)
    if runtime_match:
        metadata["runtime"] = int(runtime_match.group(1))

    cert_match = CERTIFICATE_PATTERN.search(line)
    if cert_match:
        metadata["certificate"] = cert_match.group(1)

    for film_format in FORMATS:
        if film_format in line:
            metadata["format"] = film_format
            break

    director_match = DIRECTOR_PATTERN.search(line)
    if director_match:
        metadata["director"] = director_match.group(1).strip()

    cast_match = CAST_PATTERN.search(line)
    if cast_match:
        metadata["cast"] = [name.strip() for name in cast_match.group(1).split(",")]

    countries_match = COUNTRIES_PATTERN.match(line)
    if countries_match:
        countries = [c.strip() for c in COUNTRY_SEPARATOR.split(countries_match.group(1))]
        metadata["countries"] = [c for c in countries if c]

    return metadata


def resolve_year(month: int, base_year: int, now: datetime) -> int:
    """
    Resolve the year of a guide date that carries no year.

    A month more than one month before the current month belongs to the
    following year (a December guide listing January dates).
    """
    if month < now.month - 1:
        return base_year + 1
    return base_year


def parse_screening_line(
    line: str,
    base_year: int,
    now: datetime,
    parse_errors: list[str] | None = None,
) -> list[ParsedScreening]:
    """Parse every "DAY DD MON HH:MM VENUE [FLAGS]" occurrence on a line."""
    screenings: list[ParsedScreening] = []

    for part in SCREENING_SEPARATOR.split(line):
        match = SCREENING_PATTERN.search(part)
        if not match:
            continue

        day, day_of_month, month_token, hours, minutes, venue = match.groups()
        month = MONTHS[month_token.upper()]
        year = resolve_year(month, base_year, now)

        try:
            start_time = datetime(
                year, month, int(day_of_month), int(hours), int(minutes), tzinfo=LONDON_TZ
            )
        except ValueError as e:
            message = f"Invalid screening date '{match.group(0)}': {e}"
            logger.debug(f"BFI PDF: {message}")
            if parse_errors is not None:
                parse_errors.append(message)
            continue

        venue_upper = venue.upper()
        screenings.append(
            ParsedScreening(
                day=day.upper(),
                date=int(day_of_month),
                month=month_token.upper(),
                time=f"{hours}:{minutes}",
                venue=venue_upper,
                cinema_id=VENUE_MAP.get(venue_upper, DEFAULT_CINEMA_ID),
                datetime=start_time,
                accessibility_flags=[
                    flag for flag, pattern in ACCESSIBILITY_FLAGS if pattern.search(part)
                ],
            )
        )

    return screenings


def _try_parse_film(
    lines: list[str],
    start: int,
    base_year: int,
    now: datetime,
    season: str | None,
    parse_errors: list[str],
) -> tuple[ParsedFilm | None, int] | None:
    """
    Parse a film block starting at `start`.

    Returns the film and the next line index, or None when `start` does not
    open a block. A block with a metadata line but no screenings returns
    `(None, next_index)`; scanning resumes after its description.
    """
    title_line = lines[start]
    if is_screening_line(title_line) or is_metadata_line(title_line):
        return None
    if len(title_line) > MAX_TITLE_LENGTH:
        return None

    film = ParsedFilm(title=title_line, season=season)

    has_metadata = False
    i = start + 1
    while i < len(lines) and i <= start + METADATA_LOOKAHEAD:
        line = lines[i]
        if is_metadata_line(line):
            for key, value in parse_metadata_line(line).items():
                setattr(film, key, value)
            has_metadata = True
            i += 1
            break
        if not is_screening_line(line) and len(line) < MAX_ORIGINAL_TITLE_LENGTH:
            film.original_title = line
        i += 1

    while i < len(lines):
        line = lines[i]
        if is_screening_line(line):
            film.screenings.extend(parse_screening_line(line, base_year, now, parse_errors))
            i += 1
        elif is_description_line(line):
            film.description = f"{film.description} {line}" if film.description else line
            i += 1
        else:
            break

    if not film.screenings:
        return (None, i) if has_metadata else None
    return film, i


def event_type_for(title: str) -> str | None:
    for event_type, pattern in EVENT_TYPE_PATTERNS:
        if pattern.search(title):
            return event_type
    return None


def clean_title(title: str) -> str:
    """Strip "+ Q&A"-style suffixes and leading "Preview"/"Premiere" markers."""
    title = EVENT_SUFFIX_PATTERN.sub("", title)
    title = EVENT_PREFIX_PATTERN.sub("", title)
    return title.strip()


def _to_raw_screenings(films: list[ParsedFilm], label: str, now: datetime) -> list[RawScreening]:
    screenings: list[RawScreening] = []

    for film in films:
        film_title = clean_title(film.title)
        event_type = event_type_for(film.title)
        title_key = re.sub(r"\s+", "-", film_title.lower())

        for screening in film.screenings:
            if screening.datetime < now:
                continue

            screenings.append(
                RawScreening(
                    film_title=film_title,
                    start_time=screening.datetime,
                    screen=screening.venue,
                    format=film.format,
                    booking_url=build_bfi_search_url(film_title, screening.venue),
                    event_type=event_type,
                    source_id=f"bfi-pdf-{label}-{title_key}-{screening.datetime.isoformat()}",
                    year=film.year,
                    director=film.director,
                )
            )

    return screenings
