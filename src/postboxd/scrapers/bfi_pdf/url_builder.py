"""
BFI booking URL builder.

The BFI runs two booking sites (Southbank and IMAX), each with a static
article_search_id GUID that must be passed for search to work.
"""

from urllib.parse import quote

BFI_SEARCH_CONFIG: dict[str, dict[str, str]] = {
    "bfi-southbank": {
        "base_url": "https://whatson.bfi.org.uk/Online",
        "search_id": "25E7EA2E-291F-44F9-8EBC-E560154FDAEB",
    },
    "bfi-imax": {
        "base_url": "https://whatson.bfi.org.uk/imax/Online",
        "search_id": "49C49C83-6BA0-420C-A784-9B485E36E2E0",
    },
}

# Characters encodeURIComponent-style encoding leaves alone
URI_COMPONENT_SAFE = "!~*'()"


def is_imax_venue(venue_or_cinema_id: str | None) -> bool:
    """Check whether a screen name ("IMAX", "BFI IMAX") or cinema ID means BFI IMAX."""
    if not venue_or_cinema_id:
        return False
    return (
        venue_or_cinema_id.upper() in ("IMAX", "BFI IMAX")
        or venue_or_cinema_id == "bfi-imax"
    )


def build_bfi_search_url(title: str, venue_or_cinema_id: str | None = None) -> str:
    """
    Build a BFI booking search URL for a film title.

    IMAX screens (or the "bfi-imax" cinema ID) route to the IMAX booking
    site; everything else goes to Southbank.

    Args:
        title: Film title to search for
        venue_or_cinema_id: Screen name (e.g. "IMAX", "NFT1") or cinema ID

    Returns:
        Search URL on the matching booking site
    """
    key = "bfi-imax" if is_imax_venue(venue_or_cinema_id) else "bfi-southbank"
    config = BFI_SEARCH_CONFIG[key]
    encoded_title = quote(title, safe=URI_COMPONENT_SAFE)

    return (
        f"{config['base_url']}/default.asp?doWork::WScontent::search=1"
        f"&BOparam::WScontent::search::article_search_id={config['search_id']}"
        f"&BOset::WScontent::SearchCriteria::search_criteria={encoded_title}"
    )
