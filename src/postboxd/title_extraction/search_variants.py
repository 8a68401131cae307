"""Alternative search titles for TMDb matching."""

import re

from postboxd.title_extraction.pattern_extractor import extract_film_title_sync

TRAILING_YEAR = re.compile(r"\s*\(\d{4}\)$")
TRAILING_ELLIPSIS = re.compile(r"(?:\.{2,}|…)$")


def generate_search_variations(title: str) -> list[str]:
    """
    Generate search titles to try against TMDb, best candidate first.

    The pattern-extracted title always leads. The original listing is kept
    as a fallback when extraction changed it with reasonable confidence,
    followed by year-stripped, "The"/"A" article and ellipsis variants.
    """
    result = extract_film_title_sync(title)
    base = result.extracted_title
    variations = [base]

    if base != result.original_title and result.confidence > 0.5:
        variations.append(result.original_title)

    without_year = TRAILING_YEAR.sub("", base)
    if without_year != base:
        variations.append(without_year)

    if base.startswith("The "):
        variations.append(base[4:])
    else:
        variations.append(f"The {base}")

    if base.startswith("A "):
        variations.append(base[2:])

    without_ellipsis = TRAILING_ELLIPSIS.sub("", base)
    if without_ellipsis != base:
        variations.append(without_ellipsis)

    # Deduplicate, preserving order
    return [v for v in dict.fromkeys(variations) if v]
