"""
Value cleaners for session fields.

Canonicalises class names, days, times and locations so that records coming
from independently maintained sources group and match consistently.
"""

import logging
import re
from functools import lru_cache
from typing import List, Optional, Pattern, Tuple

from studio_analytics.config import Config

logger = logging.getLogger(__name__)

DAY_NAMES = {
    "monday": "Monday",
    "tuesday": "Tuesday",
    "wednesday": "Wednesday",
    "thursday": "Thursday",
    "friday": "Friday",
    "saturday": "Saturday",
    "sunday": "Sunday",
    "mon": "Monday",
    "tue": "Tuesday",
    "wed": "Wednesday",
    "thu": "Thursday",
    "fri": "Friday",
    "sat": "Saturday",
    "sun": "Sunday",
}

WEEKEND_DAYS = {"Saturday", "Sunday"}

_TIME_12H = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)
_TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})(:\d{2})?")
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_EXPRESS = re.compile(r"express", re.IGNORECASE)
_PLUS = re.compile(r"plus", re.IGNORECASE)


@lru_cache(maxsize=None)
def _compiled_class_patterns(patterns: Tuple[Tuple[str, str], ...]) -> List[Tuple[Pattern, str]]:
    return [(re.compile(pattern, re.IGNORECASE), canonical) for pattern, canonical in patterns]


def compile_keyword_pattern(keywords) -> Optional[Pattern]:
    """
    Build a case-insensitive alternation from a keyword list.

    Args:
        keywords: Iterable of plain-text keywords

    Returns:
        Compiled pattern, or None if there are no keywords
    """
    cleaned = [k.strip() for k in keywords if k and k.strip()]
    if not cleaned:
        return None
    return re.compile("|".join(re.escape(k) for k in cleaned), re.IGNORECASE)


def normalize_token(value: str) -> str:
    """Lowercase and strip everything that is not a letter or digit."""
    return _NON_ALNUM.sub("", str(value or "").lower())


def normalize_time(time_str: str) -> str:
    """
    Normalise a time string to 24-hour HH:MM.

    "7:30 PM" -> "19:30", "7:05" -> "07:05", "07:05:00" -> "07:05".
    Unrecognised values are lowercased and stripped.
    """
    if not time_str:
        return ""
    time_str = str(time_str).strip()

    match = _TIME_12H.match(time_str)
    if match:
        hours, minutes, period = match.groups()
        hour = int(hours)
        if period.upper() == "PM" and hour != 12:
            hour += 12
        if period.upper() == "AM" and hour == 12:
            hour = 0
        return f"{hour:02d}:{minutes}"

    match = _TIME_24H.match(time_str)
    if match:
        return f"{int(match.group(1)):02d}:{match.group(2)}"

    return time_str.lower()


def time_hour(time_str: str) -> int:
    """Hour of day (0-23) of a time string, 0 if it cannot be parsed."""
    normalized = normalize_time(time_str)
    try:
        return int(normalized.split(":")[0])
    except ValueError:
        return 0


@lru_cache(maxsize=4096)
def clean_class(session_name: str) -> str:
    """
    Map a raw class/session name to its canonical class name.

    Matching follows Config.CLASS_NAME_PATTERNS in order; an "Express" variant
    keeps the suffix. Hosted events collapse to "Studio Hosted Class". Names
    that match nothing are returned unchanged.
    """
    if not session_name:
        return ""

    is_express = bool(_EXPRESS.search(session_name))
    for pattern, canonical in _compiled_class_patterns(tuple(Config.CLASS_NAME_PATTERNS)):
        if not pattern.search(session_name):
            continue
        if canonical == "Studio Cardio Barre" and _PLUS.search(session_name):
            return "Studio Cardio Barre Plus"
        if canonical == "Studio Pre/Post Natal":
            return canonical
        return f"{canonical} Express" if is_express else canonical

    hosted = compile_keyword_pattern(Config.HOSTED_CLASS_KEYWORDS)
    if hosted is not None and hosted.search(session_name):
        return "Studio Hosted Class"

    return session_name


@lru_cache(maxsize=1024)
def clean_location(location: str) -> str:
    """Collapse whitespace, standardise comma spacing and title-case each word."""
    if not location:
        return ""
    result = re.sub(r"\s+", " ", location.strip())
    result = re.sub(r",\s*", ", ", result)
    return " ".join(word[:1].upper() + word[1:].lower() for word in result.split(" "))


def clean_day(day: str) -> str:
    """Full day name for abbreviations and any casing; unknown values pass through."""
    if not day:
        return ""
    return DAY_NAMES.get(str(day).strip().lower(), day)


def clean_time(time_str: str) -> str:
    """Drop seconds from a time string ("07:30:00" -> "07:30")."""
    if not time_str:
        return ""
    return ":".join(str(time_str).split(":")[:2])


def is_weekend(day: str) -> bool:
    return clean_day(day) in WEEKEND_DAYS


def clear_caches() -> None:
    """Drop cached cleaned values, e.g. after changing Config.CLASS_NAME_PATTERNS."""
    clean_class.cache_clear()
    clean_location.cache_clear()
    _compiled_class_patterns.cache_clear()
    logger.debug("Cleaner caches cleared")
