"""
Scene heading (slug line) helpers.

"INT. JASON'S PENTHOUSE - NIGHT" -> location "JASON'S PENTHOUSE", NIGHT.
"""

import re

from callsheet.core.constants import HEADING_TIME_KEYWORDS, TimeOfDay

UNKNOWN_LOCATION = "Unknown Location"

_LOCATION_PATTERN = re.compile(
    r"(?:INT\.?/EXT\.?|EXT\.?/INT\.?|I/E\.?|INT\.|EXT\.)\s+(.+?)(?:\s+-\s+|$)",
    re.IGNORECASE,
)


def location_from_heading(heading: str) -> str:
    """Location named in a heading, or UNKNOWN_LOCATION."""
    match = _LOCATION_PATTERN.search(heading or "")
    if not match:
        return UNKNOWN_LOCATION
    return match.group(1).strip() or UNKNOWN_LOCATION


def time_of_day_from_heading(heading: str) -> TimeOfDay:
    """First time-of-day keyword found in a heading; DAY when none is."""
    upper = (heading or "").upper()
    for keyword, time_of_day in HEADING_TIME_KEYWORDS:
        if keyword in upper:
            return time_of_day
    return TimeOfDay.DAY
