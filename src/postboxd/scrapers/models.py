"""Data models shared by every ingestion source."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class RawScreening:
    """
    One screening as seen on a source, before film matching.

    Every source (guide PDF, programme changes page) produces this shape.
    The storage pipeline turns it into a `Screening` row; the record itself
    is never persisted.
    """

    film_title: str  # Title as listed, possibly noisy
    start_time: datetime  # Timezone-aware
    booking_url: str
    screen: str | None = None  # Auditorium label, e.g. "NFT1", "IMAX"
    format: str | None = None  # e.g. "35mm", "Digital 4K"
    event_type: str | None = None  # q_and_a | intro | discussion | preview | premiere
    event_description: str | None = None
    source_id: str | None = None
    year: int | None = None
    director: str | None = None

    def __post_init__(self) -> None:
        """Validate that start_time is timezone-aware and a booking URL is present."""
        if self.start_time.tzinfo is None:
            raise ValueError("start_time must be timezone-aware")
        if not self.booking_url:
            raise ValueError("booking_url is required")


@dataclass(frozen=True)
class Venue:
    """Static definition of a cinema the importer makes sure exists."""

    id: str
    name: str
    short_name: str
    website: str
    address: dict[str, str]
    features: tuple[str, ...] = ()
    chain: str | None = None


@dataclass(frozen=True)
class ImportRunRecord:
    """Outcome of one import run, persisted once and never updated."""

    run_type: str  # full | changes
    status: str  # success | degraded | failed
    triggered_by: str
    source_status: dict[str, str]  # {"pdf": ..., "programme_changes": ...}
    pdf_screenings: int
    changes_screenings: int
    total_screenings: int
    added: int
    updated: int
    failed: int
    error_codes: tuple[str, ...]
    errors: tuple[str, ...]
    started_at: datetime
    finished_at: datetime
    duration_ms: int
