"""BFI Southbank / BFI IMAX listings from the monthly guide PDF and programme changes."""

from postboxd.scrapers.bfi_pdf.fetcher import FetchedPDF, PDFInfo, fetch_latest_pdf
from postboxd.scrapers.bfi_pdf.importer import (
    ImportDependencies,
    ImportResult,
    run_bfi_import,
    run_programme_changes_import,
)
from postboxd.scrapers.bfi_pdf.pdf_parser import ParseResult, parse_pdf
from postboxd.scrapers.bfi_pdf.programme_changes import (
    ProgrammeChangesResult,
    fetch_programme_changes,
)
from postboxd.scrapers.bfi_pdf.url_builder import build_bfi_search_url

__all__ = [
    "FetchedPDF",
    "ImportDependencies",
    "ImportResult",
    "PDFInfo",
    "ParseResult",
    "ProgrammeChangesResult",
    "build_bfi_search_url",
    "fetch_latest_pdf",
    "fetch_programme_changes",
    "parse_pdf",
    "run_bfi_import",
    "run_programme_changes_import",
]
