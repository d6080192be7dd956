"""
Rule-based intent classification for the coordinator.

Categories, checked in priority order: search (property search request),
translate (translate earlier results), other.
"""

import re

SEARCH = "search"
TRANSLATE = "translate"
OTHER = "other"

_TRANSLATE_PATTERNS = [
    r"\btranslat\w*",
    r"\btraduc\w*",
    r"\b(in|into|to) spanish\b",
    r"\ben español\b",
]

_SEARCH_KEYWORDS = [
    "find", "search", "looking for", "look for", "show me", "show", "list",
    "property", "properties", "listing", "listings", "house", "houses", "home", "homes",
    "flat", "flats", "apartment", "apartments", "unit", "units", "condo", "townhouse",
    "bedroom", "bedrooms", "bed", "beds", "room", "rooms", "bathroom",
    "for sale", "for rent", "to rent", "rent", "buy", "auction", "sold",
    "school", "schools", "agent", "address", "street", "suburb", "near",
]

_SEARCH_RE = re.compile(r"\b(" + "|".join(re.escape(k) for k in _SEARCH_KEYWORDS) + r")\b")
_TRANSLATE_RE = re.compile("|".join(_TRANSLATE_PATTERNS))
_BEDROOM_RE = re.compile(r"\b\d+\s*-?\s*(bed|bedroom|br|room)s?\b")


def is_translation_request(text: str) -> bool:
    return bool(_TRANSLATE_RE.search((text or "").lower()))


def is_property_search(text: str) -> bool:
    """Property search request: listing vocabulary and not a request to translate earlier output."""
    lowered = (text or "").lower()
    if is_translation_request(lowered):
        return False
    return bool(_SEARCH_RE.search(lowered) or _BEDROOM_RE.search(lowered))


def classify_intent(text: str) -> str:
    if is_property_search(text):
        return SEARCH
    if is_translation_request(text):
        return TRANSLATE
    return OTHER
