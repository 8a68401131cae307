"""
BFI programme changes parser.

The programme changes page lists edits made since the monthly guide went
to print: one heading per film, followed by a short note such as
"Cancelled: Sat 24 Jan 18:00 NFT1" or "Additional screening Tue 27 Jan
20:40 NFT3". Every affected slot becomes a `RawScreening` unless the change
removes it.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx
from bs4 import BeautifulSoup, Tag

from postboxd.config import settings
from postboxd.scrapers.bfi_pdf.fetcher import REQUEST_HEADERS
from postboxd.scrapers.bfi_pdf.pdf_parser import clean_title, event_type_for, resolve_year
from postboxd.scrapers.bfi_pdf.url_builder import build_bfi_search_url
from postboxd.scrapers.models import RawScreening
from postboxd.utils.text import collapse_whitespace, decode_html_entities

logger = logging.getLogger(__name__)

LONDON_TZ = ZoneInfo("Europe/London")

HEADING_TAGS = ("h2", "h3", "h4")

MONTH_MAP = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

# "Sat 24 Jan 18:00 NFT1", "Saturday 24 January 18.00 BFI IMAX"
SLOT_PATTERN = re.compile(
    r"\b(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)[a-z]*\s+(\d{1,2})(?:st|nd|rd|th)?\s+"
    r"(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+"
    r"(\d{1,2})[:.](\d{2})"
    r"(?:\s*(?:in\s+)?(NFT\s?\d|BFI\s+IMAX|IMAX|Studio|BFI\s+Reuben\s+Library))?",
    re.IGNORECASE,
)

LAST_UPDATED_PATTERN = re.compile(r"Last\s+updated:?\s*(.+)", re.IGNORECASE)

# First match wins
CHANGE_TYPE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("cancelled", re.compile(r"\bcancel+ed\b|\bwithdrawn\b|\bno longer\b", re.IGNORECASE)),
    ("rescheduled", re.compile(r"\bre-?scheduled\b|\bpostponed\b|\bmoved to\b", re.IGNORECASE)),
    ("venue_change", re.compile(r"\b(?:screen|venue)\s+change\b|\bnow in\b", re.IGNORECASE)),
    ("time_change", re.compile(r"\btime\s+change\b|\bnew time\b|\bnow (?:starts|begins)\b", re.IGNORECASE)),
    ("additional_screening", re.compile(r"\badditional\b|\bextra\b|\badded\b", re.IGNORECASE)),
    ("new_screening", re.compile(r"\bnew screening\b|\bnow screening\b", re.IGNORECASE)),
)

# Change types whose first slot is the old one being replaced
MOVED_CHANGE_TYPES = frozenset({"rescheduled", "time_change", "venue_change"})


@dataclass
class ProgrammeChange:
    film_title: str
    change_type: str
    details: str
    booking_url: str | None = None
    slots: list[tuple[datetime, str | None]] = field(default_factory=list)


@dataclass
class ProgrammeChangesResult:
    changes: list[ProgrammeChange]
    screenings: list[RawScreening]
    last_updated: str | None
    parse_errors: list[str]


async def fetch_programme_changes(client: httpx.AsyncClient | None = None) -> ProgrammeChangesResult:
    """
    Download and parse the programme changes page.

    Raises:
        httpx.HTTPError: The page could not be fetched
    """
    if client is None:
        async with httpx.AsyncClient(
            timeout=settings.scrape_timeout, follow_redirects=True, headers=REQUEST_HEADERS
        ) as own_client:
            return await fetch_programme_changes(own_client)

    response = await client.get(settings.bfi_changes_url)
    response.raise_for_status()
    return parse_changes_page(response.text)


def parse_changes_page(html: str, now: datetime | None = None) -> ProgrammeChangesResult:
    """Parse the programme changes page HTML into changes and future screenings."""
    now = now or datetime.now(LONDON_TZ)
    soup = BeautifulSoup(html, "html.parser")

    changes: list[ProgrammeChange] = []
    parse_errors: list[str] = []

    for heading in soup.find_all(HEADING_TAGS):
        try:
            change = _parse_change_block(heading, now)
        except ValueError as e:
            parse_errors.append(f"{heading.get_text(strip=True)}: {e}")
            continue
        if change:
            changes.append(change)

    screenings = [
        screening
        for change in changes
        for screening in _change_screenings(change, now)
    ]

    last_updated = _find_last_updated(soup)
    logger.info(
        f"BFI changes: {len(changes)} changes, {len(screenings)} screenings "
        f"(last updated {last_updated or 'unknown'})"
    )
    return ProgrammeChangesResult(
        changes=changes,
        screenings=screenings,
        last_updated=last_updated,
        parse_errors=parse_errors,
    )


def classify_change(text: str) -> str:
    for change_type, pattern in CHANGE_TYPE_PATTERNS:
        if pattern.search(text):
            return change_type
    return "update"


def parse_slots(text: str, now: datetime) -> list[tuple[datetime, str | None]]:
    """Find every "Day DD Mon HH:MM [SCREEN]" occurrence in a block of text."""
    slots: list[tuple[datetime, str | None]] = []
    for match in SLOT_PATTERN.finditer(text):
        day_of_month, month_token, hours, minutes, screen = match.groups()
        month = MONTH_MAP[month_token[:3].lower()]
        year = resolve_year(month, now.year, now)
        start_time = datetime(
            year, month, int(day_of_month), int(hours), int(minutes), tzinfo=LONDON_TZ
        )
        slots.append((start_time, _normalise_screen(screen)))
    return slots


def _normalise_screen(screen: str | None) -> str | None:
    if not screen:
        return None
    return collapse_whitespace(screen).upper().replace("NFT ", "NFT")


def _block_elements(heading: Tag) -> list[Tag]:
    """Siblings following a heading up to the next heading."""
    elements: list[Tag] = []
    for sibling in heading.find_next_siblings():
        if sibling.name in HEADING_TAGS:
            break
        elements.append(sibling)
    return elements


def _parse_change_block(heading: Tag, now: datetime) -> ProgrammeChange | None:
    title = collapse_whitespace(decode_html_entities(heading.get_text(" ", strip=True)))
    if not title:
        return None

    elements = _block_elements(heading)
    details = collapse_whitespace(" ".join(el.get_text(" ", strip=True) for el in elements))
    slots = parse_slots(details, now)
    if not slots:
        # Section headings and intro copy carry no dated slots
        return None

    booking_url = None
    for element in elements:
        link = element if element.name == "a" else element.find("a", href=True)
        if link is not None and "whatson.bfi.org.uk" in str(link.get("href", "")):
            booking_url = str(link["href"])
            break

    return ProgrammeChange(
        film_title=title,
        change_type=classify_change(details),
        details=details,
        booking_url=booking_url,
        slots=slots,
    )


def _change_screenings(change: ProgrammeChange, now: datetime) -> list[RawScreening]:
    """Screenings that exist after a change; cancelled slots produce none."""
    if change.change_type == "cancelled":
        return []

    slots = change.slots
    if change.change_type in MOVED_CHANGE_TYPES and len(slots) > 1:
        slots = slots[1:]

    film_title = clean_title(change.film_title)
    event_type = event_type_for(change.film_title)
    title_key = re.sub(r"\s+", "-", film_title.lower())

    screenings: list[RawScreening] = []
    for start_time, screen in slots:
        if start_time < now:
            continue
        screenings.append(
            RawScreening(
                film_title=film_title,
                start_time=start_time,
                screen=screen,
                booking_url=change.booking_url or build_bfi_search_url(film_title, screen),
                event_type=event_type,
                event_description=change.details or None,
                source_id=f"bfi-changes-{title_key}-{start_time.isoformat()}",
            )
        )
    return screenings


def _find_last_updated(soup: BeautifulSoup) -> str | None:
    for line in soup.get_text("\n").splitlines():
        match = LAST_UPDATED_PATTERN.search(line)
        if match:
            return match.group(1).strip() or None
    return None
