"""
Data loading utilities: collaborator DataFrames to domain objects.

Converts session and active-schedule frames (from CSV uploads or remote
tables) into SessionRecord and ActiveScheduleEntry objects. Column names are
matched loosely, so "CheckedIn", "checked_in" and "Checked In" all work.
"""

import logging
from typing import Dict, List

import pandas as pd

from studio_analytics.classification import build_schedule_table
from studio_analytics.cleaners import normalize_token
from studio_analytics.models import ActiveScheduleEntry, ScheduleTable, SessionRecord

logger = logging.getLogger(__name__)

# Normalised column name -> SessionRecord field
SESSION_COLUMN_ALIASES: Dict[str, str] = {
    "trainer": "trainer",
    "instructor": "trainer",
    "location": "location",
    "class": "class_name",
    "classname": "class_name",
    "type": "class_type",
    "classtype": "class_type",
    "date": "date",
    "day": "day_of_week",
    "dayofweek": "day_of_week",
    "time": "time",
    "capacity": "capacity",
    "checkedin": "checked_in",
    "booked": "booked",
    "latecancelled": "late_cancelled",
    "waitlisted": "waitlisted",
    "revenue": "revenue",
    "sessionname": "session_name",
    "sessionid": "session_id",
    "nonpaid": "non_paid",
}

SCHEDULE_COLUMN_ALIASES: Dict[str, str] = {
    "day": "day",
    "dayofweek": "day",
    "time": "time",
    "location": "location",
    "class": "class_name",
    "classname": "class_name",
    "trainer": "trainer",
    "capacity": "capacity",
    "duration": "duration",
    "durationminutes": "duration",
    "notes": "notes",
}

SESSION_REQUIRED = ["trainer", "location", "class_name", "date", "time"]
SCHEDULE_REQUIRED = ["day", "time", "location", "class_name"]

SESSION_INT_FIELDS = ["capacity", "checked_in", "booked", "late_cancelled", "waitlisted", "non_paid"]
SESSION_TEXT_FIELDS = ["trainer", "location", "class_name", "class_type", "day_of_week", "time", "session_name", "session_id"]


def _rename_columns(df: pd.DataFrame, aliases: Dict[str, str]) -> pd.DataFrame:
    """Rename recognised columns to field names; unknown columns are dropped."""
    mapping = {}
    for column in df.columns:
        field_name = aliases.get(normalize_token(column))
        if field_name and field_name not in mapping.values():
            mapping[column] = field_name
    return df[list(mapping)].rename(columns=mapping)


def _require(df: pd.DataFrame, required: List[str], source: str) -> None:
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(
            f"{source} is missing required columns: {', '.join(missing)}. "
            f"Found columns: {', '.join(map(str, df.columns))}"
        )


def _text(series: pd.Series) -> pd.Series:
    return series.fillna("").astype(str).str.strip()


def _count(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").fillna(0).clip(lower=0).astype(int)


def records_from_dataframe(df: pd.DataFrame) -> List[SessionRecord]:
    """
    Build session records from a collaborator DataFrame.

    Missing counts and revenue default to 0 and missing text to "". Rows with
    an unparseable date are dropped. A missing day column is derived from the
    date.

    Args:
        df: Session data, one row per class occurrence

    Returns:
        List of SessionRecord (status Inactive until classified)

    Raises:
        ValueError: If required columns are missing
    """
    frame = _rename_columns(df, SESSION_COLUMN_ALIASES)
    _require(frame, SESSION_REQUIRED, "Session data")
    frame = frame.copy()

    frame["date"] = pd.to_datetime(frame["date"], errors="coerce")
    invalid = frame["date"].isna()
    if invalid.any():
        logger.warning(f"Dropping {int(invalid.sum())} session rows with unparseable dates")
        frame = frame[~invalid].copy()

    if "day_of_week" not in frame.columns:
        frame["day_of_week"] = frame["date"].dt.day_name()
    frame["date"] = frame["date"].dt.date

    for col in SESSION_TEXT_FIELDS:
        frame[col] = _text(frame[col]) if col in frame.columns else ""
    for col in SESSION_INT_FIELDS:
        frame[col] = _count(frame[col]) if col in frame.columns else 0
    if "revenue" in frame.columns:
        frame["revenue"] = pd.to_numeric(frame["revenue"], errors="coerce").fillna(0.0).clip(lower=0.0).astype(float)
    else:
        frame["revenue"] = 0.0

    records = [SessionRecord(**row) for row in frame.to_dict("records")]
    logger.info(f"Loaded {len(records)} session records from {len(df)} rows")
    return records


def schedule_entries_from_dataframe(df: pd.DataFrame) -> List[ActiveScheduleEntry]:
    """
    Build active schedule entries from a collaborator DataFrame.

    Slots without an assigned trainer are skipped.

    Raises:
        ValueError: If required columns are missing
    """
    frame = _rename_columns(df, SCHEDULE_COLUMN_ALIASES)
    _require(frame, SCHEDULE_REQUIRED, "Active schedule")
    frame = frame.copy()

    for col in ["day", "time", "location", "class_name", "trainer", "notes"]:
        frame[col] = _text(frame[col]) if col in frame.columns else ""
    for col in ["capacity", "duration"]:
        frame[col] = _count(frame[col]) if col in frame.columns else 0

    unassigned = frame["trainer"] == ""
    if unassigned.any():
        logger.info(f"Skipping {int(unassigned.sum())} schedule slots without a trainer")
    frame = frame[~unassigned]

    return [ActiveScheduleEntry(**row) for row in frame.to_dict("records")]


def schedule_from_dataframe(df: pd.DataFrame) -> ScheduleTable:
    """Build the day-indexed active schedule from a collaborator DataFrame."""
    return build_schedule_table(schedule_entries_from_dataframe(df))
