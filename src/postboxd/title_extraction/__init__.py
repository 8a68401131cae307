"""
Film title extraction.

Single entry point for all title extraction needs:
- sync pattern extraction (`extract_film_title_sync`) for fast loops
- async AI extraction (`TitleExtractor`) for the import pipeline, with
  per-instance caching and batch extraction
- search variations for TMDb matching
"""

from postboxd.title_extraction.ai_extractor import (
    AIExtractionResult,
    TitleExtractor,
    is_likely_clean_title,
)
from postboxd.title_extraction.pattern_extractor import (
    PatternExtractionResult,
    extract_film_title_sync,
    is_non_film_title,
)
from postboxd.title_extraction.search_variants import generate_search_variations

__all__ = [
    "AIExtractionResult",
    "PatternExtractionResult",
    "TitleExtractor",
    "extract_film_title_sync",
    "generate_search_variations",
    "is_likely_clean_title",
    "is_non_film_title",
]
