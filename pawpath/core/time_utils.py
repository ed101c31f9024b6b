"""
Utilities for parsing activity times and estimating activity durations.
"""

import logging
import re

logger = logging.getLogger(__name__)

# Sort key for activities without a usable time: after every real time of day
NO_TIME = 9999

_HH_MM = re.compile(r"^(\d{1,2}):(\d{2})(am|pm)?$")
_H_ONLY = re.compile(r"^(\d{1,2})(am|pm)$")
_COMPACT_24H = re.compile(r"^(\d{2})(\d{2})$")


def parse_time_to_minutes(time_str: str | None) -> int:
    """
    Convert a time string to minutes since midnight.

    Accepts "14:30", "9:00 AM", "5pm" and "1430". Missing or unparseable
    values return ``NO_TIME`` so they sort after every valid time.
    """
    if not time_str:
        return NO_TIME

    cleaned = re.sub(r"\s+", "", time_str.lower())
    meridiem = None

    match = _HH_MM.match(cleaned)
    if match:
        hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3)
    elif match := _H_ONLY.match(cleaned):
        hour, minute, meridiem = int(match.group(1)), 0, match.group(2)
    elif match := _COMPACT_24H.match(cleaned):
        hour, minute = int(match.group(1)), int(match.group(2))
    else:
        logger.debug("[TimeParse] Could not parse time string '%s'", time_str)
        return NO_TIME

    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        logger.debug("[TimeParse] Out of range time '%s'", time_str)
        return NO_TIME

    return hour * 60 + minute


def minutes_to_hhmm(minutes: int) -> str:
    """Convert minutes since midnight to 24-hour HH:MM."""
    minutes = minutes % (24 * 60)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_between(start: str | None, end: str | None) -> int | None:
    start_m = parse_time_to_minutes(start)
    end_m = parse_time_to_minutes(end)
    if start_m == NO_TIME or end_m == NO_TIME or end_m <= start_m:
        return None
    return end_m - start_m


# Base durations by place type (in minutes)
TYPE_DURATIONS = {
    "museum": 150,
    "art_gallery": 120,
    "tourist_attraction": 90,
    "restaurant": 90,
    "cafe": 45,
    "bar": 120,
    "park": 90,
    "dog_park": 60,
    "hiking_area": 150,
    "shopping_mall": 120,
    "store": 60,
    "beach": 120,
    "landmark": 60,
    "historical_landmark": 60,
    "stadium": 180,
    "performing_arts_theater": 150,
    "zoo": 180,
}

# Fallback durations by activity type (in minutes)
ACTIVITY_TYPE_DURATIONS = {
    "flight": 60,
    "transfer": 60,
    "accommodation": 30,
    "meal": 75,
    "activity": 120,
    "placeholder": 90,
    "preparation": 60,
}


def estimate_activity_duration(place_types: list[str] | None, activity_type: str | None = None) -> int:
    """
    Estimate how long an activity will take.

    Args:
        place_types: Places API types of the underlying venue (may be empty)
        activity_type: Semantic activity type used when no place type matches

    Returns:
        Estimated duration in minutes
    """
    for ptype in place_types or []:
        if ptype in TYPE_DURATIONS:
            return TYPE_DURATIONS[ptype]
    return ACTIVITY_TYPE_DURATIONS.get(activity_type or "", 90)
