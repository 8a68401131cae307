"""
Shared title extraction patterns.

Event prefixes, title suffixes, version suffixes, non-film keywords and the
special-case patterns used by both the pattern extractor and the AI
extractor. Every table is an immutable tuple evaluated in order; where a
caller stops at the first match, earlier entries win.
"""

import re

# Colon-delimited prefixes that wrap the real film title,
# e.g. "Saturday Morning Picture Club: Song of the Sea".
EVENT_PREFIXES: tuple[str, ...] = (
    # Dining/drinking events
    "DRINK & DINE",
    "Drink and Dine",
    "DINE & DRINK",
    # Cinema clubs/series
    "Arabic Cinema Club",
    "Saturday Morning Picture Club",
    "Classic Matinee",
    "Varda Film Club",
    "Artist's Film Picks",
    "Films For Workers",
    "Reclaim the Frame presents",
    "Sonic Cinema",
    "The Liberated Film Club",
    "Underscore Cinema",
    "Dub Me Always",
    "Carers & Babies",
    "Carers and Babies",
    # Special screenings
    "Queer Horror Nights",
    "A FESTIVE FEAST",
    "Funeral Parade presents",
    "UK PREMIERE",
    # Live broadcasts
    "Met Opera Live",
    "Met Opera Encore",
    "National Theatre Live",
    "NT Live",
    "Royal Opera House",
    "ROH Live",
    "Royal Ballet",
    "Bolshoi Ballet",
    "Berliner Philharmoniker Live",
    # Documentaries/exhibitions
    "EXHIBITION ON SCREEN",
    "Doc 'N Roll",
    "Doc N Roll",
    # Festival screenings, usually shorts compilations
    "LSFF",
    "LFF",
    "BFI Flare",
    # Format-based
    "35mm",
    "70mm",
    "4K",
    "IMAX",
)

# Prefix matching is case-insensitive, so case variants above are not repeated.
EVENT_PREFIX_REGEXES: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (prefix, re.compile(rf"^{re.escape(prefix)}:\s*", re.IGNORECASE))
    for prefix in EVENT_PREFIXES
)

# Festival prefixes mark compilations: low confidence for single-film matching.
FESTIVAL_PREFIXES: frozenset[str] = frozenset({"LSFF", "LFF", "BFI FLARE"})

LIVE_BROADCAST_KEYWORDS: tuple[str, ...] = ("opera", "theatre", "ballet", "nt live", "roh")

# Cheap "does this need extraction?" signals for the AI extractor.
EVENT_PREFIX_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(saturday|sunday|weekday)\s+(morning|afternoon)",
        r"^(kids?|family|toddler|baby)\s*(club|time|film)",
        r"^(uk|world)\s+premiere",
        r"^(35|70)mm[:\s]",
        r"^(imax|4k|restoration)[:\s]",
        r"^(sing[\s-]?a[\s-]?long|quote[\s-]?a[\s-]?long)[:\s]",
        r"^(preview|sneak|advance)[:\s]",
        r"^(special|member'?s?)\s+screening",
        r"^(double|triple)\s+(feature|bill)",
        r"^(cult|classic|christmas)\s+(classic|film)",
        r"^(late\s+night|midnight)",
        r"^(marathon|retrospective|tribute)[:\s]",
        r"^(q\s*&\s*a|live\s+q)",
        r"^(intro(duced)?\s+by|with\s+q)",
        # Cinema-specific event series
        r"^(classic\s+matinee)[:\s]",
        r"^(queer|horror|comedy|sci-?fi)\s+(night|horror|film)",
        r"^(doc\s*'?n'?\s*roll)[:\s]",
        r"^(lsff|bfi|afi|tiff)[:\s]",
        r"^(underscore\s+cinema)[:\s]",
        r"^(neurospicy|dyke\s+tv)[:\s!]",
        # Event add-ons at the end of the title
        r"\+\s*q\s*&?\s*a\s*$",
        r"with\s+shadow\s+cast",
        r"\+\s*(discussion|intro|live)",
    )
)

# Suffixes stripped by the pattern extractor. Every matching entry is applied.
TITLE_SUFFIXES: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        # Q&A and intro
        r"\s*\+\s*Q&(?:amp;)?A.*$",
        r"\s*\+\s*Intro.*$",
        r"\s*\+\s*Introduction.*$",
        r"\s*\+\s*Panel.*$",
        r"\s*\+\s*Discussion.*$",
        r"\s*with\s+Q&(?:amp;)?A.*$",
        # Special events
        r"\s*with\s+Shadow\s+Cast.*$",
        r"\s*with\s+Live\s+.*$",
        r"\s*\+\s*PJ\s+Party.*$",
        r"\s*\+\s*Pajama\s+Party.*$",
        # Format/restoration markers
        r"\s*\(4K\s+Restoration\)$",
        r"\s*\(4K\s+Remaster(?:ed)?\)$",
        r"\s*\(4K\s+Re-?release\)$",
        r"\s*\(Restored\)$",
        r"\s*\(Digital\s+Restoration\)$",
        r"\s*\(Director'?s?\s+Cut\)$",
        r"\s*\(Extended\s+(?:Edition|Cut)\)$",
        r"\s*\(Original\s+Cut\)$",
        r"\s*\(Theatrical\s+Cut\)$",
        r"\s*4K$",
        r"\s*\(35mm\)$",
        # Anniversary editions
        r"\s*[-•]\s*\d+(?:th|st|nd|rd)?\s+Anniversary.*$",
        r"\s*\(\d+(?:th|st|nd|rd)?\s+Anniversary\)$",
        # Preview/encore screenings
        r"\s*-\s*Preview$",
        r"\s*\(Preview\)$",
        r"\s*\(\d{4}\s+Encore\)$",
        r"\s*Encore$",
        # Double bills
        r"\s*Double[- ]?Bill$",
        r"\s*\+\s+.+Double[- ]?Bill$",
        # Screening-year markers (not release years)
        r"\s*\(202[5-9]\)$",
        r"\s*\(203\d\)$",
        r"\s*TBC$",
        r"\s+Sing-?A?-?Long!?$",
        r":\s*Extended\s+Edition$",
        r"\s+-\s+Original\s+Cut$",
        # Drink add-ons
        r"\s*\+\s*(?:Prosecco|Mulled\s+Wine).*$",
    )
)

# Different cuts of the same film: stripped for the canonical title, kept for display.
VERSION_SUFFIX_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\s*:\s*(?:The\s+)?Final\s+Cut$",
        r"\s*:\s*Director'?s?\s+Cut$",
        r"\s*:\s*Extended\s+(?:Edition|Cut)$",
        r"\s*:\s*Original\s+(?:Edition|Cut)$",
        r"\s*:\s*Theatrical\s+(?:Edition|Cut)$",
        r"\s*:\s*(?:Redux|Remastered|Restored|Re-?release)$",
        r"\s*:\s*Ultimate\s+(?:Edition|Cut)$",
        r"\s*:\s*Uncut$",
        r"\s*:\s*Special\s+Edition$",
        r"\s+-\s*(?:The\s+)?Final\s+Cut$",
        r"\s+-\s*Director'?s?\s+Cut$",
        r"\s+-\s*Extended\s+(?:Edition|Cut)$",
        r"\s+-\s*(?:Redux|Remastered|Restored)$",
    )
)

# Listings that are not films at all (quizzes, readings, gigs).
NON_FILM_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bQuiz\b",
        r"\bReading\s+Group\b",
        r"\bCaf[eé]s?\s+Philo\b",
        r"\bCompetition\b",
        r"\bStory\s+Time\b",
        r"\bBaby\s+Comptines\b",
        r"\bLanguage\s+Activity\b",
        r"\bIn\s+conversation\s+with\b",
        r"\bCome\s+and\s+Sing\b",
        r"\bMarathon$",
        r"\bOrgan\s+Trio\b",
        r"\bBlues\s+at\b",
        r"\bFunky\s+Stuff\b",
        r"\bMusic\s+Video\s+Preservation\b",
        r"\bComedy:",
        r"\bClub\s+Room\s+Comedy\b",
        r"\bVinyl\s+Reggae\b",
        r"\bVinyl\s+Sisters\b",
        r"\bAnimated\s+Shorts\s+for\b",
    )
)

# Basic cruft removed from display titles by the AI extractor's local path.
BASIC_CRUFT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\s*\((U|PG|12A?|15|18)\*?\)\s*$",  # BBFC certificate
        r"\s*\[.*?\]\s*$",  # bracketed notes
        r"\s*-\s*(35mm|70mm|4k|imax)\s*$",  # format suffix
        r"\s*\+\s*(q\s*&\s*a|discussion|intro)\s*$",  # event add-on
    )
)

# 'Presenter presents "Film Title"'
PRESENTS_PATTERN = re.compile(r"^.+\s+presents?\s+[\"“](.+)[\"”]$", re.IGNORECASE)

# "Sing-A-Long-A Film Title"
SINGALONG_PATTERN = re.compile(r"^Sing-?A-?Long-?A?\s+(.+)$", re.IGNORECASE)

# "Film One + Film Two": first film only
DOUBLE_FEATURE_PATTERN = re.compile(r"^(.+?)\s*\+\s*.+$")

# Franchises whose colon introduces a real subtitle, not an event prefix
FRANCHISE_PATTERN = re.compile(
    r"^(star\s+wars|indiana|harry|lord|mission|pirates|fast|jurassic|matrix|batman|"
    r"spider|alien|terminator|mad|back|die|lethal|home|rocky|rambo|godfather|toy|"
    r"finding|avengers|guardians|shrek|dark)",
    re.IGNORECASE,
)

TRAILING_YEAR_PATTERN = re.compile(r"\(\d{4}\)\s*$")
