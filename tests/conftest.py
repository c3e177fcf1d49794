# tests/conftest.py
from __future__ import annotations

from datetime import date
from pathlib import Path

import pandas as pd
import pytest

from studio_analytics.classification import build_schedule_table
from studio_analytics.models import ActiveScheduleEntry, SessionRecord


@pytest.fixture()
def sandbox(tmp_path: Path) -> Path:
    """Per-test filesystem sandbox."""
    return tmp_path


@pytest.fixture()
def make_record():
    """Factory for session records with sensible defaults (a Monday 07:30 barre class)."""

    def _make(**overrides) -> SessionRecord:
        values = dict(
            trainer="Anisha Shah",
            location="Kwality House, Kemps Corner",
            class_name="Studio Barre 57",
            class_type="Barre",
            date=date(2024, 3, 4),
            day_of_week="Monday",
            time="07:30",
            capacity=20,
            checked_in=10,
            booked=12,
            late_cancelled=1,
            waitlisted=0,
            revenue=1200.0,
        )
        values.update(overrides)
        return SessionRecord(**values)

    return _make


@pytest.fixture()
def small_sessions(make_record) -> list:
    """Tiny deterministic dataset: two barre slots, one cycle slot, one hosted event."""
    return [
        make_record(checked_in=10, date=date(2024, 3, 4)),
        make_record(checked_in=15, date=date(2024, 3, 11)),
        make_record(checked_in=20, date=date(2024, 3, 18)),
        make_record(
            class_name="Studio powerCycle",
            class_type="Cycle",
            trainer="Vivaran Dhasmana",
            location="Supreme HQ, Bandra",
            date=date(2024, 3, 6),
            day_of_week="Wednesday",
            time="18:00",
            capacity=14,
            checked_in=14,
            booked=14,
            late_cancelled=0,
            revenue=1400.0,
        ),
        make_record(
            class_name="Studio powerCycle",
            class_type="Cycle",
            trainer="Vivaran Dhasmana",
            location="Supreme HQ, Bandra",
            date=date(2024, 3, 13),
            day_of_week="Wednesday",
            time="18:00",
            capacity=14,
            checked_in=0,
            booked=3,
            late_cancelled=3,
            revenue=0.0,
        ),
        make_record(
            class_name="Sunday Brunch Hosted Event",
            session_name="Sunday Brunch Hosted Event",
            class_type="Hosted",
            date=date(2024, 3, 10),
            day_of_week="Sunday",
            time="11:00",
            checked_in=18,
            booked=18,
            late_cancelled=0,
            revenue=0.0,
        ),
    ]


@pytest.fixture()
def barre_schedule():
    """Active schedule containing only the Monday barre slot."""
    return build_schedule_table([
        ActiveScheduleEntry(
            day="Monday",
            time="7:30 AM",
            location="Kwality House",
            class_name="Barre 57",
            trainer="Anisha Shah",
        ),
    ])


@pytest.fixture()
def sessions_df() -> pd.DataFrame:
    """Session rows as they arrive from a CSV export."""
    return pd.DataFrame(
        {
            "Trainer": ["Anisha Shah", "Anisha Shah", "Vivaran Dhasmana"],
            "Location": ["Kwality House, Kemps Corner", "Kwality House, Kemps Corner", "Supreme HQ, Bandra"],
            "Class": ["Studio Barre 57", "Studio Barre 57", "Studio powerCycle"],
            "Type": ["Barre", "Barre", "Cycle"],
            "Date": ["2024-03-04", "2024-03-11", "2024-03-06"],
            "Day": ["Monday", "Monday", "Wednesday"],
            "Time": ["07:30", "07:30", "18:00"],
            "Capacity": [20, 20, 14],
            "CheckedIn": [10, 15, None],
            "Booked": [12, 16, 3],
            "LateCancelled": [1, 0, 3],
            "Waitlisted": [0, 2, 0],
            "Revenue": [1200.0, 1500.5, None],
        }
    )


@pytest.fixture()
def schedule_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Day": ["mon", "Wednesday", "Friday"],
            "Time": ["7:30 AM", "18:00", "09:00"],
            "Location": ["Kwality House", "Supreme HQ", "Kwality House"],
            "Class": ["Barre 57", "powerCycle", "Mat 57"],
            "Trainer": ["Anisha Shah", "Vivaran Dhasmana", None],
        }
    )
