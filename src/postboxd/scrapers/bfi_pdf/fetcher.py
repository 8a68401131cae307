"""
BFI guide PDF fetcher.

Discovers the monthly BFI Southbank guide PDFs linked from the guide page
and downloads the accessible (text-based) versions, which parse far more
reliably than the designed print PDFs.
"""

import calendar
import hashlib
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from urllib.parse import urljoin
from zoneinfo import ZoneInfo

import httpx
from bs4 import BeautifulSoup, Tag

from postboxd.config import settings

logger = logging.getLogger(__name__)

LONDON_TZ = ZoneInfo("Europe/London")

REQUEST_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept-Language": "en-GB,en;q=0.9",
}

MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)
MONTH_MAP = {name: index for index, name in enumerate(MONTH_NAMES, start=1)}

_MONTH_ALT = "|".join(MONTH_NAMES)

# "January 2026", "December-January 2026", "December 2025 - January 2026"
COVERAGE_PATTERN = re.compile(
    rf"\b({_MONTH_ALT})(?:\s+(\d{{4}}))?(?:\s*(?:-|–|to|/)\s*({_MONTH_ALT}))?\s+(\d{{4}})\b",
    re.IGNORECASE,
)

# BFI media library links: https://www.bfi.org.uk/media/12345/download
MEDIA_ID_PATTERN = re.compile(r"/media/(\d+)(?:/|$)")


@dataclass(frozen=True)
class CoverageMonths:
    """Date range covered by one guide (first day of start month to last day of end month)."""

    start: date
    end: date


@dataclass(frozen=True)
class PDFInfo:
    """One guide as listed on the guide page."""

    label: str  # e.g. "January 2026"
    accessible_pdf_url: str
    media_id: str
    full_pdf_url: str | None = None
    months: CoverageMonths | None = None


@dataclass(frozen=True)
class FetchedPDF:
    """A downloaded guide PDF plus its SHA-256 content hash."""

    info: PDFInfo
    content: bytes
    content_hash: str
    fetched_at: datetime = field(default_factory=lambda: datetime.now(LONDON_TZ))


def parse_coverage(text: str) -> tuple[str, CoverageMonths] | None:
    """
    Parse a guide label into its coverage months.

    Examples:
        "BFI Southbank guide January 2026" → ("January 2026", 2026-01-01..2026-01-31)
        "December-January 2026" → ("December-January 2026", 2025-12-01..2026-01-31)
    """
    match = COVERAGE_PATTERN.search(text)
    if not match:
        return None

    start_name, start_year, end_name, end_year = match.groups()
    start_month = MONTH_MAP[start_name.lower()]
    end_month = MONTH_MAP[end_name.lower()] if end_name else start_month
    end_year_int = int(end_year)

    if start_year:
        start_year_int = int(start_year)
    elif end_month < start_month:
        # "December-January 2026": the start month belongs to the previous year
        start_year_int = end_year_int - 1
    else:
        start_year_int = end_year_int

    last_day = calendar.monthrange(end_year_int, end_month)[1]
    coverage = CoverageMonths(
        start=date(start_year_int, start_month, 1),
        end=date(end_year_int, end_month, last_day),
    )
    return match.group(0).strip(), coverage


def _link_coverage(link: Tag) -> tuple[str, CoverageMonths] | None:
    """Coverage label for a link: its own text first, then the enclosing block's."""
    own = " ".join(
        str(part)
        for part in (link.get_text(" ", strip=True), link.get("title"), link.get("aria-label"))
        if part
    )
    coverage = parse_coverage(own)
    if coverage is None:
        parent = link.find_parent(["li", "p", "div", "section"])
        if parent is not None:
            coverage = parse_coverage(parent.get_text(" ", strip=True))
    return coverage


def parse_guide_page(html: str, base_url: str | None = None) -> list[PDFInfo]:
    """
    Extract guide PDFs from the guide page HTML.

    Accessible and full (print) versions of the same guide are paired by
    their coverage label. Guides without an accessible version are skipped.
    """
    base_url = base_url or settings.bfi_guide_url
    soup = BeautifulSoup(html, "html.parser")

    accessible: dict[str, tuple[str, str, CoverageMonths]] = {}
    full: dict[str, str] = {}

    for link in soup.find_all("a", href=True):
        href = urljoin(base_url, str(link["href"]))
        own_text = link.get_text(" ", strip=True).lower()
        if ".pdf" not in href.lower() and "/media/" not in href and "pdf" not in own_text:
            continue

        coverage = _link_coverage(link)
        if coverage is None:
            logger.debug(f"BFI guide: no coverage label for PDF link {href}")
            continue

        label, months = coverage
        media_match = MEDIA_ID_PATTERN.search(href)
        media_id = media_match.group(1) if media_match else hashlib.sha1(href.encode()).hexdigest()[:12]

        if "accessible" in own_text or "accessible" in href.lower():
            accessible.setdefault(label, (href, media_id, months))
        else:
            full.setdefault(label, href)

    guides = [
        PDFInfo(
            label=label,
            accessible_pdf_url=href,
            media_id=media_id,
            full_pdf_url=full.get(label),
            months=months,
        )
        for label, (href, media_id, months) in accessible.items()
    ]
    guides.sort(key=lambda info: info.months.start if info.months else date.min, reverse=True)
    return guides


async def discover_pdfs(client: httpx.AsyncClient | None = None) -> list[PDFInfo]:
    """
    List the guide PDFs currently linked from the BFI guide page, newest first.

    Raises:
        httpx.HTTPError: The guide page could not be fetched
    """
    if client is None:
        async with httpx.AsyncClient(
            timeout=settings.scrape_timeout, follow_redirects=True, headers=REQUEST_HEADERS
        ) as own_client:
            return await discover_pdfs(own_client)

    response = await client.get(settings.bfi_guide_url)
    response.raise_for_status()
    guides = parse_guide_page(response.text, str(response.url))
    logger.info(f"BFI guide: found {len(guides)} accessible guide PDFs")
    return guides


async def download_pdf(info: PDFInfo, client: httpx.AsyncClient | None = None) -> FetchedPDF:
    """
    Download one guide's accessible PDF and hash its content.

    Raises:
        httpx.HTTPError: The PDF could not be downloaded
        ValueError: The response is not a PDF
    """
    if client is None:
        async with httpx.AsyncClient(
            timeout=settings.scrape_timeout, follow_redirects=True, headers=REQUEST_HEADERS
        ) as own_client:
            return await download_pdf(info, own_client)

    response = await client.get(info.accessible_pdf_url)
    response.raise_for_status()
    content = response.content
    if not content.startswith(b"%PDF"):
        raise ValueError(f"Response for {info.label} is not a PDF ({info.accessible_pdf_url})")

    content_hash = hashlib.sha256(content).hexdigest()
    logger.info(f"BFI guide: downloaded {info.label} ({len(content)} bytes, {content_hash[:12]})")
    return FetchedPDF(info=info, content=content, content_hash=content_hash)


async def fetch_latest_pdf() -> FetchedPDF | None:
    """Download the most recent guide, or return None when no guide is listed."""
    async with httpx.AsyncClient(
        timeout=settings.scrape_timeout, follow_redirects=True, headers=REQUEST_HEADERS
    ) as client:
        guides = await discover_pdfs(client)
        if not guides:
            logger.warning("BFI guide: no accessible guide PDFs listed")
            return None
        return await download_pdf(guides[0], client)
