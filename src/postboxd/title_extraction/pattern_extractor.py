"""
Synchronous, pattern-based film title extraction.

Strips event prefixes ("Saturday Morning Picture Club: ..."), suffixes
("... + Q&A") and special wrappers ('X presents "..."') from cinema listing
titles so the remaining text can be matched against TMDb.
"""

import logging
from dataclasses import dataclass

from postboxd.title_extraction.patterns import (
    DOUBLE_FEATURE_PATTERN,
    EVENT_PREFIX_REGEXES,
    FESTIVAL_PREFIXES,
    LIVE_BROADCAST_KEYWORDS,
    NON_FILM_PATTERNS,
    PRESENTS_PATTERN,
    SINGALONG_PATTERN,
    TITLE_SUFFIXES,
)
from postboxd.utils.text import collapse_whitespace, decode_html_entities

logger = logging.getLogger(__name__)

QUOTE_CHARS = "\"'“”"


@dataclass(frozen=True)
class PatternExtractionResult:
    """Outcome of a pattern-based extraction."""

    original_title: str
    extracted_title: str
    is_compilation: bool = False
    is_live_broadcast: bool = False
    is_non_film: bool = False
    confidence: float = 1.0
    methods: tuple[str, ...] = ()

    @property
    def extraction_method(self) -> str:
        """Composite method name, e.g. "prefix_removal+suffix_removal", or "none"."""
        return "+".join(self.methods) if self.methods else "none"


def is_non_film_title(title: str) -> bool:
    """Check whether a listing is a non-film event (quiz, reading group, gig...)."""
    return any(pattern.search(title) for pattern in NON_FILM_PATTERNS)


def is_live_broadcast_prefix(prefix: str) -> bool:
    lowered = prefix.lower()
    return any(keyword in lowered for keyword in LIVE_BROADCAST_KEYWORDS)


def extract_film_title_sync(title: str) -> PatternExtractionResult:
    """
    Extract the film title from a cinema event listing.

    Examples:
        "Saturday Morning Picture Club: The Gruffalo" → "The Gruffalo"
        "Queer Horror Nights: CARRIE with Shadow Cast" → "CARRIE"
        'Funeral Parade presents "A Star Is Born (1954)"' → "A Star Is Born (1954)"
        "Met Opera Live: Eugene Onegin (2026)" → "Eugene Onegin" (live broadcast)
        "LSFF: Midnight Movies" → "Midnight Movies" (compilation, low confidence)

    Non-film detection runs first and wins over every other pattern. A title
    that no pattern changes is returned as-is with method "none" and
    confidence 1.0, so the function is idempotent on its own output.
    """
    decoded = decode_html_entities(title)

    if is_non_film_title(decoded):
        return PatternExtractionResult(
            original_title=title,
            extracted_title=decoded.strip(),
            is_non_film=True,
            confidence=0.0,
            methods=("non_film_detected",),
        )

    extracted = decoded.strip()
    methods: list[str] = []
    confidence = 1.0
    is_compilation = False
    is_live_broadcast = False

    def record(method: str) -> None:
        if method not in methods:
            methods.append(method)

    # 'Presenter presents "Film"' wins outright
    presents = PRESENTS_PATTERN.match(extracted)
    if presents:
        extracted = presents.group(1).strip()
        record("presents_pattern")
        confidence = 0.95

    singalong = SINGALONG_PATTERN.match(extracted)
    if singalong:
        extracted = singalong.group(1).strip()
        record("singalong_pattern")
        confidence = min(confidence, 0.9)

    for prefix, regex in EVENT_PREFIX_REGEXES:
        if not regex.match(extracted):
            continue

        extracted = regex.sub("", extracted, count=1)
        record("prefix_removal")

        if prefix.upper() in FESTIVAL_PREFIXES:
            is_compilation = True
            confidence = 0.3
        else:
            confidence = min(confidence, 0.9)

        if is_live_broadcast_prefix(prefix):
            is_live_broadcast = True
        break

    for regex in TITLE_SUFFIXES:
        if regex.search(extracted):
            extracted = regex.sub("", extracted, count=1)
            record("suffix_removal")
            confidence = min(confidence, 0.85)

    # "Film One + Film Two": a suffix already consumed the "+ ..." tail otherwise
    if " + " in extracted and "suffix_removal" not in methods:
        double = DOUBLE_FEATURE_PATTERN.match(extracted)
        if double:
            extracted = double.group(1).strip()
            record("double_feature_first")
            confidence = min(confidence, 0.7)

    extracted = collapse_whitespace(extracted).strip(QUOTE_CHARS).strip()

    if not extracted:
        logger.debug(f"Extraction emptied title {title!r}, keeping original")
        return PatternExtractionResult(original_title=title, extracted_title=title)

    if not methods:
        return PatternExtractionResult(original_title=title, extracted_title=extracted)

    return PatternExtractionResult(
        original_title=title,
        extracted_title=extracted,
        is_compilation=is_compilation,
        is_live_broadcast=is_live_broadcast,
        confidence=confidence,
        methods=tuple(methods),
    )


