# ===== UTILITY FUNCTIONS =====
import re
from typing import Any, Iterable, List, Optional

from library_mirror.config import STEAM_COVER_URL_TEMPLATE

# C0 controls, DEL and the C1 block.
_CONTROL_CHARS = re.compile(r'[\u0000-\u001F\u007F-\u009F]')
# Unpaired UTF-16 surrogates (not encodable as UTF-8).
_SURROGATES = re.compile(r'[\uD800-\uDFFF]')
# Zero-width and invisible formatting characters (ZWSP/ZWNJ/ZWJ, direction marks,
# bidi embeddings and isolates, word joiners, BOM, soft hyphen).
_INVISIBLE_CHARS = re.compile(r'[\u00AD\u200B-\u200F\u202A-\u202E\u2060-\u2064\u2066-\u2069\uFEFF]')

_YEAR_PATTERN = re.compile(r'\b(?:19|20)\d{2}\b', re.ASCII)


def sanitize(value: str) -> str:
    """
    Removes characters that corrupt stored or serialized text and trims the result.
    Idempotent: sanitize(sanitize(s)) == sanitize(s).
    """
    if not value:
        return ""
    cleaned = _CONTROL_CHARS.sub('', value)
    cleaned = _SURROGATES.sub('', cleaned)
    cleaned = _INVISIBLE_CHARS.sub('', cleaned)
    return cleaned.strip()


def sanitize_optional(value: Any) -> Optional[str]:
    """Sanitizes a nullable string field; empty results collapse to None."""
    if not isinstance(value, str):
        return None
    return sanitize(value) or None


def sanitize_genres(names: Iterable[Any]) -> List[str]:
    """Sanitizes genre names, dropping empties and repeats while keeping order."""
    result: List[str] = []
    for name in names or []:
        cleaned = sanitize_optional(name)
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


def fallback_name(app_id: int) -> str:
    return f"App {app_id}"


def default_cover_url(app_id: int) -> str:
    return STEAM_COVER_URL_TEMPLATE.format(app_id=app_id)


def parse_release_year(date_text: Any) -> Optional[int]:
    """Returns the first 19xx/20xx year found in a free-text release date."""
    if not isinstance(date_text, str):
        return None
    match = _YEAR_PATTERN.search(date_text)
    return int(match.group(0)) if match else None


def first_non_empty(values: Any) -> Optional[str]:
    """First element of an upstream name list (developers, publishers), if any."""
    if not isinstance(values, list) or not values:
        return None
    first = values[0]
    return first if isinstance(first, str) and first else None
