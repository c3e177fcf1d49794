"""
Filtering of tagged session records.

Applies the dashboard's compound predicate: hosted-class exclusion, date
range, set-membership filters, status and free-text search.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Pattern

from studio_analytics.cleaners import compile_keyword_pattern
from studio_analytics.config import Config
from studio_analytics.models import FilterCriteria, SessionRecord, SessionStatus, StatusFilter

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("class_name", "trainer", "location", "class_type")


def is_hosted_class(record: SessionRecord, pattern: Optional[Pattern]) -> bool:
    """True if the session or class name matches a hosted-event keyword."""
    if pattern is None:
        return False
    return bool(pattern.search(record.session_name or "") or pattern.search(record.class_name or ""))


def matches_search(record: SessionRecord, query: str) -> bool:
    """Case-insensitive substring match over class, trainer, location and type."""
    needle = query.lower()
    return any(needle in str(getattr(record, name) or "").lower() for name in SEARCH_FIELDS)


def _status_allowed(record: SessionRecord, status_filter: StatusFilter) -> bool:
    if status_filter is StatusFilter.ACTIVE:
        return record.status is SessionStatus.ACTIVE
    if status_filter is StatusFilter.INACTIVE:
        return record.status is SessionStatus.INACTIVE
    return True


def record_passes(
    record: SessionRecord,
    criteria: FilterCriteria,
    hosted_pattern: Optional[Pattern] = None,
    today: Optional[date] = None
) -> bool:
    """
    Evaluate the filter predicate for one record.

    Future-session and hosted-class exclusion always apply. After them, a
    non-empty search query decides the record on its own: the substring match
    replaces the date, set-membership and status clauses instead of narrowing
    them. Without a query those clauses short-circuit in order: date range,
    trainer, location, class type, class name, status.
    """
    if criteria.exclude_future_sessions and record.date >= (today or date.today()):
        return False
    if criteria.exclude_hosted_classes and is_hosted_class(record, hosted_pattern):
        return False
    query = (criteria.search_query or "").strip()
    if query:
        return matches_search(record, query)
    if criteria.date_from is not None and record.date < criteria.date_from:
        return False
    if criteria.date_to is not None and record.date > criteria.date_to:
        return False
    if criteria.trainers and record.trainer not in criteria.trainers:
        return False
    if criteria.locations and record.location not in criteria.locations:
        return False
    if criteria.class_types and record.class_type not in criteria.class_types:
        return False
    if criteria.class_names and record.class_name not in criteria.class_names:
        return False
    if not _status_allowed(record, criteria.status_filter):
        return False
    return True


def filter_records(
    records: Iterable[SessionRecord],
    criteria: FilterCriteria,
    hosted_keywords: Optional[Iterable[str]] = None,
    today: Optional[date] = None
) -> List[SessionRecord]:
    """
    Apply filter criteria to session records.

    Args:
        records: Tagged session records (not modified)
        criteria: Filter criteria
        hosted_keywords: Keywords marking hosted events (default: Config.HOSTED_CLASS_KEYWORDS)
        today: Reference date for exclude_future_sessions (default: date.today())

    Returns:
        New list of matching records, in input order
    """
    keywords = Config.HOSTED_CLASS_KEYWORDS if hosted_keywords is None else hosted_keywords
    hosted_pattern = compile_keyword_pattern(keywords) if criteria.exclude_hosted_classes else None

    records = list(records)
    filtered = [r for r in records if record_passes(r, criteria, hosted_pattern, today)]

    logger.info(f"Filtered {len(records)} sessions to {len(filtered)}")
    if criteria.search_query:
        logger.debug(f"Search query '{criteria.search_query}' applied")
    return filtered


def unique_values(records: Iterable[SessionRecord], field_name: str) -> List[str]:
    """Sorted distinct non-empty values of a record field, for filter option lists."""
    values = {str(getattr(r, field_name)) for r in records if getattr(r, field_name, None)}
    return sorted(values)


def similar_class_summary(
    records: Iterable[SessionRecord],
    class_name: str,
    day_of_week: str,
    time: str,
    location: str
) -> Optional[Dict[str, Any]]:
    """
    Average check-ins for sessions of the same class in the same slot.

    Returns:
        Dict with avg_check_ins (1 decimal), total_sessions and last_session_date,
        or None if no session matches
    """
    similar = [
        r for r in records
        if r.class_name == class_name and r.day_of_week == day_of_week
        and r.time == time and r.location == location
    ]
    if not similar:
        return None

    total = sum(r.checked_in for r in similar)
    dates = sorted(r.date for r in similar if r.date is not None)
    return {
        "avg_check_ins": round(total / len(similar), 1),
        "total_sessions": len(similar),
        "last_session_date": dates[-1] if dates else None,
    }
