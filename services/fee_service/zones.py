"""Best-effort extraction of a delivery zone (barangay) from a free-text address."""
import re
from typing import Optional, Sequence

_BARANGAY_PREFIX = re.compile(r"^barangay\s+", re.IGNORECASE)

# Shorter bare names ("po", "ii") match far too many unrelated words.
MIN_BARE_NAME_LENGTH = 3


def address_text(street: Optional[str], city: Optional[str]) -> str:
    return f"{(street or '').lower()} {(city or '').lower()}"


def bare_zone_name(zone: str) -> str:
    return _BARANGAY_PREFIX.sub("", zone.lower()).strip()


def _word(pattern: str) -> re.Pattern:
    return re.compile(rf"\b{pattern}\b", re.IGNORECASE)


def match_zone(text: str, zones: Sequence[str]) -> Optional[str]:
    """
    Return the first zone found in `text`, or None.

    Every zone is first tried by its bare place name ("tayaga"); only when none
    matches are the prefixed spellings tried ("barangay tayaga", "brgy. tayaga",
    or the stored name itself). Zones are scanned in the order given.
    """
    text = text.lower()

    for zone in zones:
        bare = bare_zone_name(zone)
        if len(bare) >= MIN_BARE_NAME_LENGTH and _word(re.escape(bare)).search(text):
            return zone

    for zone in zones:
        bare = re.escape(bare_zone_name(zone))
        patterns = (
            _word(rf"barangay\s+{bare}"),
            _word(rf"brgy[\s.]\s*{bare}"),
            _word(re.escape(zone.lower())),
        )
        if any(pattern.search(text) for pattern in patterns):
            return zone

    return None
