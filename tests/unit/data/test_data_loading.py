from __future__ import annotations

from datetime import date

import pandas as pd
import pytest

from studio_analytics.data_loading import (
    records_from_dataframe,
    schedule_entries_from_dataframe,
    schedule_from_dataframe,
)
from studio_analytics.models import SessionStatus


def test_records_from_csv_columns(sessions_df):
    records = records_from_dataframe(sessions_df)

    assert len(records) == 3
    first = records[0]
    assert first.trainer == "Anisha Shah"
    assert first.class_name == "Studio Barre 57"
    assert first.date == date(2024, 3, 4)
    assert first.capacity == 20
    assert first.checked_in == 10
    assert first.revenue == 1200.0
    assert first.status is SessionStatus.INACTIVE
    assert first.session_name == ""


def test_missing_values_default_to_zero(sessions_df):
    cycle = records_from_dataframe(sessions_df)[2]
    assert cycle.checked_in == 0
    assert cycle.revenue == 0.0
    assert isinstance(cycle.checked_in, int)


def test_snake_case_columns_are_accepted():
    df = pd.DataFrame(
        {
            "trainer": ["Anisha Shah"],
            "location": ["Kwality House"],
            "class_name": ["Studio Mat 57"],
            "date": ["2024-03-08"],
            "time": ["09:00"],
            "checked_in": [7],
            "session_name": ["Mat 57 Express"],
            "non_paid": [2],
        }
    )
    record = records_from_dataframe(df)[0]
    assert record.checked_in == 7
    assert record.session_name == "Mat 57 Express"
    assert record.non_paid == 2
    # day is derived from the date when absent
    assert record.day_of_week == "Friday"
    assert record.class_type == ""


def test_missing_required_column_raises(sessions_df):
    with pytest.raises(ValueError, match="missing required columns: time"):
        records_from_dataframe(sessions_df.drop(columns=["Time"]))


def test_unparseable_dates_are_dropped(sessions_df):
    df = sessions_df.copy()
    df.loc[1, "Date"] = "not a date"
    records = records_from_dataframe(df)
    assert len(records) == 2


def test_schedule_skips_unassigned_slots(schedule_df):
    entries = schedule_entries_from_dataframe(schedule_df)
    assert [e.class_name for e in entries] == ["Barre 57", "powerCycle"]


def test_schedule_table_indexed_by_day(schedule_df):
    table = schedule_from_dataframe(schedule_df)
    assert set(table) == {"Monday", "Wednesday"}
    assert table["Monday"][0].time == "7:30 AM"


def test_schedule_missing_class_column_raises(schedule_df):
    with pytest.raises(ValueError):
        schedule_from_dataframe(schedule_df.drop(columns=["Class"]))
