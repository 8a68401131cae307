"""Text normalization utilities for film titles and lookup keys."""

import html
import re

# Byte sequences that show up when UTF-8 text has been decoded as Latin-1/cp1252,
# e.g. "CafÃ©" for "Café" or "Donâ€™t" for "Don’t".
MOJIBAKE_MARKERS = ("Ã", "Â", "â€")


def decode_html_entities(text: str) -> str:
    """
    Decode HTML entities and repair common mojibake.

    Handles numeric ("&#39;", "&#x27;") and named ("&amp;", "&eacute;")
    entities, then attempts to repair UTF-8 that was mis-decoded as Latin-1,
    which is how "&#195;&#169;" style double encodings reach us.

    Examples:
        "Singin&#39; in the Rain" → "Singin' in the Rain"
        "Lock, Stock &amp; Two Smoking Barrels" → "Lock, Stock & Two Smoking Barrels"
        "Am&#195;&#169;lie" → "Amélie"
    """
    if "&" in text:
        text = html.unescape(text)
    return repair_mojibake(text)


def repair_mojibake(text: str) -> str:
    """Best-effort repair of UTF-8 text that was decoded as Latin-1/cp1252."""
    if not any(marker in text for marker in MOJIBAKE_MARKERS):
        return text

    for encoding in ("cp1252", "latin-1"):
        try:
            return text.encode(encoding).decode("utf-8")
        except (UnicodeEncodeError, UnicodeDecodeError):
            continue
    return text


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and strip the ends."""
    return re.sub(r"\s+", " ", text).strip()


def normalise_title(title: str) -> str:
    """
    Normalize a raw listing title into an alias lookup key.

    The key is case- and whitespace-insensitive so that "NOSFERATU" and
    "Nosferatu " resolve to the same alias row.
    """
    return collapse_whitespace(decode_html_entities(title)).lower()


def key_segment(text: str | None, default: str = "unknown") -> str:
    """
    Build one segment of a composite dedup key.

    Lowercases and replaces whitespace runs with hyphens:
        "Apocalypse Now" → "apocalypse-now"
        None → "unknown"
    """
    if not text or not text.strip():
        return default
    return re.sub(r"\s+", "-", text.strip().lower())


def slugify(text: str) -> str:
    """
    Convert text to a URL-safe slug.

    Args:
        text: Text to slugify

    Returns:
        Lowercase slug with hyphens
    """
    text = text.lower()
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"[^a-z0-9-]", "", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")
