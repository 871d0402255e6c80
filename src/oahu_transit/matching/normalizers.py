import re
import unicodedata
from functools import lru_cache

# ʻokina and the apostrophes commonly typed in its place
OKINA_CHARACTERS = "ʻ‘’'`"

# Generic tokens to ignore in coverage calculations
GENERIC_TOKENS = frozenset({
    "stop", "bus", "station", "transit", "the", "opp", "fs", "ns",
    "street", "mauka", "makai", "north", "south", "east", "west",
})

# Street abbreviations as TheBus writes them (lowercase -> expanded)
ABBREVIATIONS: dict[str, str] = {
    r"\bst\b": "street",
    r"\bave?\b": "avenue",
    r"\bblvd\b": "boulevard",
    r"\bhwy\b": "highway",
    r"\bpkwy\b": "parkway",
    r"\bdr\b": "drive",
    r"\brd\b": "road",
    r"\bpl\b": "place",
    r"\bln\b": "lane",
    r"\bctr\b": "center",
    r"\btc\b": "transit center",
    r"\bhnl\b": "airport",
    r"\bkap\b": "kapiolani",
}
_ABBREVIATION_PATTERNS = [(re.compile(p), r) for p, r in ABBREVIATIONS.items()]

# Cross-street separators ("KAPIOLANI BLVD + ATKINSON DR", "King St / Alakea St")
CROSS_STREET_SEPARATORS = re.compile(r"\s*(?:\+|/|&|@)\s*|\s+(?:at|and)\s+", re.IGNORECASE)


@lru_cache(maxsize=4096)
def remove_diacritics(text: str) -> str:
    """Strip kahakō and other combining marks, and drop ʻokina.

    Example: "Waiʻanae Kōkua" -> "Waianae Kokua"
    """
    normalized = unicodedata.normalize("NFD", text)
    stripped = "".join(c for c in normalized if unicodedata.category(c) != "Mn")
    return stripped.translate({ord(c): None for c in OKINA_CHARACTERS})


@lru_cache(maxsize=4096)
def normalize_text(text: str) -> str:
    """Normalize a place or stop name for fuzzy matching.

    Example: "KAPIʻOLANI BLVD + ATKINSON DR" -> "kapiolani boulevard + atkinson drive"
    """
    result = remove_diacritics(text.lower().strip())
    for pattern, replacement in _ABBREVIATION_PATTERNS:
        result = pattern.sub(replacement, result)
    return " ".join(result.split())


@lru_cache(maxsize=1024)
def parse_cross_street(query: str) -> tuple[str, str] | None:
    """Split "X + Y" style queries into two normalized street names."""
    parts = CROSS_STREET_SEPARATORS.split(query)
    if len(parts) == 2:
        street1 = normalize_text(parts[0])
        street2 = normalize_text(parts[1])
        if street1 and street2:
            return (street1, street2)
    return None


def get_meaningful_tokens(text: str) -> set[str]:
    """Tokens of normalized text minus generic and one-letter words.

    Example: "Ala Moana Center (Kona St)" -> {"ala", "moana", "center", "kona"}
    """
    normalized = normalize_text(text)
    raw_tokens = re.split(r"[\s/+&()\-,.]+", normalized)
    return {t for t in raw_tokens if len(t) > 1 and t not in GENERIC_TOKENS}
