"""
AI-assisted film title extraction.

Clean-looking titles are handled locally with a heuristic. Ambiguous ones
("Saturday Morning Picture Club: ...", ALL CAPS listings, titles with
screening years) go to the model once; any failure falls back to basic
local cleaning with low confidence.
"""

import asyncio
import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Literal

from postboxd.services.gemini_client import TextGenerator, strip_code_fences
from postboxd.title_extraction.patterns import (
    BASIC_CRUFT_PATTERNS,
    EVENT_PREFIX_PATTERNS,
    FRANCHISE_PATTERN,
    TRAILING_YEAR_PATTERN,
    VERSION_SUFFIX_PATTERNS,
)
from postboxd.utils.text import collapse_whitespace

logger = logging.getLogger(__name__)

Confidence = Literal["high", "medium", "low"]
CONFIDENCE_LEVELS: frozenset[str] = frozenset({"high", "medium", "low"})

BATCH_DELAY_SECONDS = 0.5

VERSION_LEADING_PUNCTUATION = re.compile(r"^[\s:\-]+")

EXTRACTION_PROMPT = """Extract film title information from this cinema screening listing.

Listing: "{raw_title}"

Return ONLY a JSON object (no markdown) with:
- title: The display title (as shown, with version if present)
- canonical: The base film title without version suffixes like "Director's Cut", "Final Cut", "Extended Edition", "Redux", "Restored", "Remastered" (for matching/deduplication)
- version: The version/cut if present (e.g., "Final Cut", "Director's Cut")
- event: Event type if any (e.g., "35mm screening", "Q&A", "kids screening")
- confidence: "high" | "medium" | "low"

IMPORTANT: "canonical" should strip version suffixes but keep legitimate subtitles.
- "Apocalypse Now : Final Cut" → canonical: "Apocalypse Now", version: "Final Cut"
- "Blade Runner : The Final Cut" → canonical: "Blade Runner", version: "The Final Cut"
- "Star Wars: A New Hope" → canonical: "Star Wars: A New Hope" (subtitle, not version)
- "Amadeus: Director's Cut" → canonical: "Amadeus", version: "Director's Cut"

Examples:
- "Saturday Morning Picture Club: The Muppets Christmas Carol" → {{"title": "The Muppets Christmas Carol", "canonical": "The Muppets Christmas Carol", "event": "kids screening", "confidence": "high"}}
- "Apocalypse Now : Final Cut" → {{"title": "Apocalypse Now : Final Cut", "canonical": "Apocalypse Now", "version": "Final Cut", "confidence": "high"}}
- "35mm: Casablanca (PG)" → {{"title": "Casablanca", "canonical": "Casablanca", "event": "35mm screening", "confidence": "high"}}"""


@dataclass(frozen=True)
class AIExtractionResult:
    """Display and canonical titles for one listing."""

    film_title: str
    canonical_title: str  # Version-stripped, used for matching/deduplication
    confidence: Confidence
    version: str | None = None  # e.g. "Final Cut", "Director's Cut"
    event_type: str | None = None


@dataclass(frozen=True)
class ParsedTitle:
    """Validated fields of a model response."""

    title: str | None = None
    canonical: str | None = None
    version: str | None = None
    event: str | None = None
    confidence: Confidence | None = None


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_model_response(text: str) -> ParsedTitle | None:
    """
    Parse a model response into a `ParsedTitle`.

    Returns None when the text is not a JSON object, so callers never have
    to deal with half-parsed data.
    """
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    confidence = data.get("confidence")
    return ParsedTitle(
        title=_optional_str(data.get("title")),
        canonical=_optional_str(data.get("canonical")),
        version=_optional_str(data.get("version")),
        event=_optional_str(data.get("event")),
        confidence=confidence if confidence in CONFIDENCE_LEVELS else None,
    )


def extract_version_suffix(title: str) -> tuple[str, str] | None:
    """
    Split a version suffix off a title.

    "Apocalypse Now : Final Cut" → ("Apocalypse Now", "Final Cut")
    """
    for pattern in VERSION_SUFFIX_PATTERNS:
        match = pattern.search(title)
        if match:
            base_title = title[: match.start()].strip()
            version = VERSION_LEADING_PUNCTUATION.sub("", match.group(0)).strip()
            return base_title, version
    return None


def has_version_suffix(title: str) -> bool:
    return any(pattern.search(title) for pattern in VERSION_SUFFIX_PATTERNS)


def is_likely_clean_title(title: str) -> bool:
    """
    Check whether a title can skip the model call.

    Event prefixes/add-ons, trailing "(YYYY)", ALL CAPS and very long titles
    all need extraction. Version suffixes are handled locally. A short colon
    prefix ("Kids Club: ...") needs extraction unless it names a franchise
    ("Star Wars: A New Hope").
    """
    normalized = title.lower().strip()

    if any(pattern.search(normalized) for pattern in EVENT_PREFIX_PATTERNS):
        return False

    if TRAILING_YEAR_PATTERN.search(title):
        return False

    if title == title.upper() and len(title) > 3:
        return False

    if len(title) > 60:
        return False

    if has_version_suffix(title):
        return True

    if ":" in normalized:
        before_colon = normalized.split(":", 1)[0]
        if len(before_colon.split()) <= 2 and not FRANCHISE_PATTERN.search(before_colon):
            return False

    return True


def clean_basic_cruft(title: str) -> str:
    """Strip BBFC certificates, bracketed notes, format and event add-on suffixes."""
    cleaned = collapse_whitespace(title)
    for pattern in BASIC_CRUFT_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return cleaned.strip()


def local_result(raw_title: str, confidence: Confidence) -> AIExtractionResult:
    """Build a result from local cleaning only, splitting any version suffix."""
    display_title = clean_basic_cruft(raw_title)
    version_info = extract_version_suffix(display_title)
    if version_info:
        base_title, version = version_info
        return AIExtractionResult(
            film_title=display_title,
            canonical_title=base_title,
            version=version,
            confidence=confidence,
        )
    return AIExtractionResult(
        film_title=display_title,
        canonical_title=display_title,
        confidence=confidence,
    )


class TitleExtractor:
    """
    Async title extractor backed by an injected text generator.

    Results are cached per instance, keyed by the raw listing title.

    Examples:
        "Saturday Morning Picture Club: The Muppets Christmas Carol"
            → "The Muppets Christmas Carol"
        "Apocalypse Now : Final Cut"
            → film_title "Apocalypse Now : Final Cut", canonical "Apocalypse Now"
    """

    def __init__(self, client: TextGenerator, batch_delay: float = BATCH_DELAY_SECONDS) -> None:
        self.client = client
        self.batch_delay = batch_delay
        self._cache: dict[str, AIExtractionResult] = {}

    async def extract(self, raw_title: str) -> AIExtractionResult:
        """Extract a title. Never raises: model failures fall back to local cleaning."""
        if is_likely_clean_title(raw_title):
            return local_result(raw_title, "high")

        try:
            text = await self.client.generate_text(EXTRACTION_PROMPT.format(raw_title=raw_title))
        except Exception as e:
            logger.warning(f"AI title extraction failed for '{raw_title}': {e}")
            return local_result(raw_title, "low")

        parsed = parse_model_response(text)
        if parsed is None:
            logger.warning(f"Unparseable AI title response for '{raw_title}': {text[:200]!r}")
            return local_result(raw_title, "low")

        display_title = clean_basic_cruft(parsed.title or raw_title)
        return AIExtractionResult(
            film_title=display_title,
            canonical_title=parsed.canonical or display_title,
            version=parsed.version,
            event_type=parsed.event,
            confidence=parsed.confidence or "medium",
        )

    async def extract_cached(self, raw_title: str) -> AIExtractionResult:
        cached = self._cache.get(raw_title)
        if cached is not None:
            return cached

        result = await self.extract(raw_title)
        self._cache[raw_title] = result
        return result

    async def batch_extract(self, raw_titles: Iterable[str]) -> dict[str, AIExtractionResult]:
        """
        Extract many titles, deduplicated.

        Clean titles are resolved locally first. Titles needing the model are
        then processed one at a time with `batch_delay` seconds between calls.
        """
        results: dict[str, AIExtractionResult] = {}
        needs_extraction: list[str] = []

        for title in dict.fromkeys(raw_titles):
            if is_likely_clean_title(title):
                results[title] = await self.extract(title)
            else:
                needs_extraction.append(title)

        for i, title in enumerate(needs_extraction):
            results[title] = await self.extract(title)
            if i < len(needs_extraction) - 1:
                await asyncio.sleep(self.batch_delay)

        logger.info(
            f"Extracted {len(results)} titles ({len(needs_extraction)} needed the model)"
        )
        return results

    def clear_cache(self) -> None:
        self._cache.clear()
