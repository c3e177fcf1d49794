"""
Grouping of filtered session records.

Partitions sessions by a composite key chosen from the grouping modes and
builds one GroupedRow with derived metrics per key.
"""

import logging
from collections import namedtuple
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from studio_analytics.cleaners import clean_class, clean_day, clean_location, clean_time, is_weekend, time_hour
from studio_analytics.config import Config
from studio_analytics.metrics import GROUP_AGGREGATIONS, metrics_from_summary, records_frame
from studio_analytics.models import GroupBy, GroupedRow, SessionRecord

logger = logging.getLogger(__name__)

# Key component name -> value extracted from a record
KEY_FIELDS: Dict[str, Callable[[SessionRecord], str]] = {
    "class": lambda r: clean_class(r.display_class),
    "day": lambda r: clean_day(r.day_of_week),
    "time": lambda r: clean_time(r.time),
    "location": lambda r: clean_location(r.location),
    "trainer": lambda r: r.trainer or "",
    "type": lambda r: r.class_type or "",
    "date": lambda r: r.date.isoformat() if r.date is not None else "",
    "session_name": lambda r: r.session_name or "",
}

SLOT = ("class", "day", "time", "location")

GroupingMode = namedtuple("GroupingMode", ["fields", "predicate", "label"])


def _mode(fields, predicate=None, label=None) -> GroupingMode:
    return GroupingMode(tuple(fields), predicate, label)


GROUPING_MODES: Dict[GroupBy, GroupingMode] = {
    GroupBy.CLASS_DAY_TIME_LOCATION: _mode(SLOT),
    GroupBy.CLASS_DAY_TIME_LOCATION_TRAINER: _mode(SLOT + ("trainer",)),
    GroupBy.CLASS: _mode(["class"]),
    GroupBy.TYPE: _mode(["type"]),
    GroupBy.TRAINER: _mode(["trainer"]),
    GroupBy.LOCATION: _mode(["location"]),
    GroupBy.DAY: _mode(["day"]),
    GroupBy.DATE: _mode(["date"]),
    GroupBy.TIME: _mode(["time"]),
    GroupBy.SESSION_NAME: _mode(["session_name"]),
    GroupBy.LOCATION_CLASS: _mode(["location", "class"]),
    GroupBy.CLASS_DAY: _mode(["class", "day"]),
    GroupBy.CLASS_DAY_TRAINER: _mode(["class", "day", "trainer"]),
    GroupBy.DAY_TIME_LOCATION: _mode(["day", "time", "location"]),
    GroupBy.CLASS_TIME: _mode(["class", "time"]),
    GroupBy.TRAINER_LOCATION: _mode(["trainer", "location"]),
    GroupBy.DAY_LOCATION: _mode(["day", "location"]),
    GroupBy.TIME_LOCATION: _mode(["time", "location"]),
    GroupBy.CLASS_TYPE: _mode(["class", "type"]),
    GroupBy.TYPE_LOCATION: _mode(["type", "location"]),
    GroupBy.TRAINER_DAY: _mode(["trainer", "day"]),
    GroupBy.CLASS_TRAINER: _mode(["class", "trainer"]),
    GroupBy.DAY_TIME: _mode(["day", "time"]),
    GroupBy.CLASS_LOCATION: _mode(["class", "location"]),
    GroupBy.TRAINER_TIME: _mode(["trainer", "time"]),
    GroupBy.AM_SESSIONS: _mode(SLOT, lambda r: time_hour(r.time) < 12, "AM"),
    GroupBy.PM_SESSIONS: _mode(SLOT, lambda r: time_hour(r.time) >= 12, "PM"),
    GroupBy.MORNING_CLASSES: _mode(SLOT, lambda r: 6 <= time_hour(r.time) < 12, "Morning (6am-12pm)"),
    GroupBy.EVENING_CLASSES: _mode(SLOT, lambda r: 17 <= time_hour(r.time) < 21, "Evening (5pm-9pm)"),
    GroupBy.WEEKDAY: _mode(SLOT, lambda r: not is_weekend(r.day_of_week), "Weekday"),
    GroupBy.WEEKEND: _mode(SLOT, lambda r: is_weekend(r.day_of_week), "Weekend"),
}

# GroupedRow display attribute -> (raw value, displayed value)
DISPLAY_FIELDS: Dict[str, Tuple[Callable[[SessionRecord], object], Callable[[SessionRecord], str]]] = {
    "class_name": (lambda r: r.display_class, KEY_FIELDS["class"]),
    "day_of_week": (lambda r: r.day_of_week, KEY_FIELDS["day"]),
    "time": (lambda r: r.time, KEY_FIELDS["time"]),
    "location": (lambda r: r.location, KEY_FIELDS["location"]),
    "trainer": (lambda r: r.trainer, KEY_FIELDS["trainer"]),
    "class_type": (lambda r: r.class_type, KEY_FIELDS["type"]),
    "session_name": (lambda r: r.session_name, KEY_FIELDS["session_name"]),
    "date": (lambda r: r.date, KEY_FIELDS["date"]),
}


def group_key(record: SessionRecord, group_by: GroupBy) -> Optional[Tuple[str, ...]]:
    """
    Composite key of a record under a grouping mode.

    Returns:
        Tuple of cleaned field values, or None if the mode excludes the record
        (e.g. a PM session under AMSessions)
    """
    mode = GROUPING_MODES[GroupBy(group_by)]
    if mode.predicate is not None and not mode.predicate(record):
        return None
    return tuple(KEY_FIELDS[name](record) for name in mode.fields)


def render_group_value(key: Tuple[str, ...], group_by: GroupBy) -> str:
    """Display string of a group key, prefixed with the mode label if it has one."""
    mode = GROUPING_MODES[GroupBy(group_by)]
    value = Config.GROUP_KEY_SEPARATOR.join(key)
    return f"{mode.label} - {value}" if mode.label else value


def _display_values(children: Sequence[SessionRecord]) -> Dict[str, str]:
    first = children[0]
    display = {}
    for name, (raw, shown) in DISPLAY_FIELDS.items():
        if any(raw(child) != raw(first) for child in children[1:]):
            display[name] = Config.MULTIPLE_VALUES_LABEL
        else:
            display[name] = shown(first)
    return display


def group_records(
    records: Sequence[SessionRecord],
    group_by: GroupBy,
    min_check_ins: int = 0,
    min_classes: int = 0,
    weights: Optional[Dict[str, float]] = None
) -> List[GroupedRow]:
    """
    Group session records by a composite key and compute per-group metrics.

    Records are appended to their group in encounter order and groups are
    emitted in first-seen order. Groups with fewer than `min_classes` sessions
    or fewer than `min_check_ins` total check-ins are dropped.

    Args:
        records: Filtered session records
        group_by: Grouping mode
        min_check_ins: Minimum summed check-ins for a group to be kept
        min_classes: Minimum number of sessions for a group to be kept
        weights: Composite score weights (default: Config.COMPOSITE_WEIGHTS)

    Returns:
        List of unranked GroupedRow objects
    """
    group_by = GroupBy(group_by)
    mode = GROUPING_MODES[group_by]
    logger.info(f"Grouping {len(records)} sessions by {group_by.value}")

    included = [r for r in records if mode.predicate is None or mode.predicate(r)]
    skipped = len(records) - len(included)
    if skipped:
        logger.debug(f"{skipped} sessions outside the {group_by.value} mode were skipped")
    if not included:
        logger.info("Built 0 groups (no sessions to group)")
        return []

    df = records_frame(included)
    key_cols = [f"key_{name}" for name in mode.fields]
    for name, col in zip(mode.fields, key_cols):
        df[col] = [KEY_FIELDS[name](r) for r in included]

    # sort=False keeps groups and group numbers in first-seen order
    grouped = df.groupby(key_cols, sort=False)
    df["group_id"] = grouped.ngroup()
    summary = grouped.agg(**{
        name: pd.NamedAgg(column=col, aggfunc=how)
        for name, (col, how) in GROUP_AGGREGATIONS.items()
    })
    summary["group_id"] = np.arange(len(summary))

    kept = summary[(summary["classes"] >= min_classes) & (summary["total_check_ins"] >= min_check_ins)]
    dropped = len(summary) - len(kept)

    group_ids = df["group_id"].to_numpy()
    check_ins = df["checked_in"].to_numpy()
    rows = []
    for _, totals in kept.iterrows():
        positions = np.flatnonzero(group_ids == totals["group_id"])
        children = tuple(included[i] for i in positions)
        key = tuple(df[col].iat[positions[0]] for col in key_cols)
        rows.append(GroupedRow(
            group_by=group_by,
            group_value=render_group_value(key, group_by),
            key=key,
            children=children,
            metrics=metrics_from_summary(totals, check_ins[positions], weights),
            **_display_values(children),
        ))

    logger.info(f"Built {len(rows)} groups ({dropped} below thresholds dropped)")
    return rows
