"""
Active/Inactive status classification.

Tags each session record against the active weekly schedule using a loose
fuzzy match on class name, location and start time. Without a schedule,
recent sessions count as active.
"""

import logging
import re
from dataclasses import replace
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from studio_analytics.cleaners import clean_day, normalize_time, normalize_token
from studio_analytics.config import Config
from studio_analytics.models import ActiveScheduleEntry, ScheduleTable, SessionRecord, SessionStatus

logger = logging.getLogger(__name__)

_LEADING_STUDIO = re.compile(r"^studio")
_LEADING_THE = re.compile(r"^the")


def build_schedule_table(entries: Iterable[ActiveScheduleEntry]) -> ScheduleTable:
    """
    Index schedule entries by canonical day name.

    Args:
        entries: Active schedule entries in any order

    Returns:
        Mapping of day name ("Monday", ...) to a tuple of that day's entries
    """
    buckets: Dict[str, List[ActiveScheduleEntry]] = {}
    for entry in entries:
        buckets.setdefault(clean_day(entry.day), []).append(entry)
    table = {day: tuple(day_entries) for day, day_entries in buckets.items()}
    logger.info(f"Built schedule table: {sum(len(v) for v in table.values())} slots across {len(table)} days")
    return table


def _strip_class_prefix(normalized: str) -> str:
    return _LEADING_THE.sub("", _LEADING_STUDIO.sub("", normalized))


def _contains_either(a: str, b: str) -> bool:
    return a in b or b in a


def class_matches(session_class: str, scheduled_class: str) -> bool:
    """Normalised class names contain one another, with or without a leading "studio"/"the"."""
    session_norm = normalize_token(session_class)
    scheduled_norm = normalize_token(scheduled_class)
    return (
        _contains_either(_strip_class_prefix(session_norm), _strip_class_prefix(scheduled_norm))
        or _contains_either(session_norm, scheduled_norm)
    )


def location_matches(session_location: str, scheduled_location: str) -> bool:
    return _contains_either(normalize_token(session_location), normalize_token(scheduled_location))


def time_matches(session_time: str, scheduled_time: str) -> bool:
    """HH:MM of one time is a prefix of the other's. A missing time never matches."""
    session_hm = normalize_time(session_time)[:5]
    scheduled_hm = normalize_time(scheduled_time)[:5]
    if not session_hm or not scheduled_hm:
        return False
    return session_hm.startswith(scheduled_hm) or scheduled_hm.startswith(session_hm)


def _within_fallback_window(session_date: date, today: date) -> bool:
    return session_date >= today - timedelta(days=Config.ACTIVE_FALLBACK_DAYS)


def classify_status(
    record: SessionRecord,
    schedule: ScheduleTable,
    today: Optional[date] = None
) -> SessionStatus:
    """
    Classify one session record as Active or Inactive.

    With an empty schedule the record is Active iff its date falls within the
    trailing Config.ACTIVE_FALLBACK_DAYS days of `today` (evaluated at call
    time, so results can shift across a day boundary). Otherwise the record is
    Active iff an entry in its day's bucket matches on class, location and time.

    Args:
        record: Session record to classify
        schedule: Day-indexed active schedule
        today: Reference date for the fallback window (default: date.today())

    Returns:
        SessionStatus.ACTIVE or SessionStatus.INACTIVE
    """
    if not schedule:
        if record.date is None:
            return SessionStatus.INACTIVE
        reference = today if today is not None else date.today()
        return SessionStatus.ACTIVE if _within_fallback_window(record.date, reference) else SessionStatus.INACTIVE

    bucket = schedule.get(clean_day(record.day_of_week), ())
    for entry in bucket:
        if (
            class_matches(record.class_name, entry.class_name)
            and location_matches(record.location, entry.location)
            and time_matches(record.time, entry.time)
        ):
            return SessionStatus.ACTIVE

    return SessionStatus.INACTIVE


def classify_records(
    records: Iterable[SessionRecord],
    schedule: ScheduleTable,
    today: Optional[date] = None,
    clock: Callable[[], date] = date.today
) -> List[SessionRecord]:
    """
    Return copies of the records with their status set.

    Args:
        records: Session records (not modified)
        schedule: Day-indexed active schedule
        today: Fixed reference date; when omitted `clock` is read once per record

    Returns:
        New list of records in the input order
    """
    classified = []
    active = 0
    for record in records:
        status = classify_status(record, schedule, today if today is not None else clock())
        if status is SessionStatus.ACTIVE:
            active += 1
        classified.append(record if record.status is status else replace(record, status=status))

    mode = "schedule" if schedule else f"{Config.ACTIVE_FALLBACK_DAYS}-day fallback"
    logger.info(f"Classified {len(classified)} sessions using {mode}: {active} active, {len(classified) - active} inactive")
    return classified
