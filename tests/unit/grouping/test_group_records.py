from __future__ import annotations

import pytest

from studio_analytics.config import Config
from studio_analytics.grouping import GROUPING_MODES, group_key, group_records, render_group_value
from studio_analytics.metrics import calculate_group_metrics
from studio_analytics.models import GroupBy, flatten_children


def test_every_group_by_mode_is_defined():
    assert set(GROUPING_MODES) == set(GroupBy)


def test_default_slot_grouping(small_sessions):
    rows = group_records(small_sessions, GroupBy.CLASS_DAY_TIME_LOCATION)

    assert len(rows) == 3
    barre = rows[0]
    assert barre.group_value == "Studio Barre 57|Monday|07:30|Kwality House, Kemps Corner"
    assert barre.metrics.classes == 3
    assert [c.checked_in for c in barre.children] == [10, 15, 20]
    assert barre.class_name == "Studio Barre 57"
    assert barre.rank == 0


def test_class_grouping_partitions_records(small_sessions):
    rows = group_records(small_sessions, GroupBy.CLASS)
    children = flatten_children(rows)

    assert sorted(id(r) for r in children) == sorted(id(r) for r in small_sessions)
    assert sum(row.metrics.classes for row in rows) == len(small_sessions)
    assert {row.group_value for row in rows} == {"Studio Barre 57", "Studio powerCycle", "Studio Hosted Class"}


@pytest.mark.parametrize("group_by", [g for g in GroupBy if GROUPING_MODES[g].predicate is None])
def test_unconditional_modes_never_drop_records(small_sessions, group_by):
    rows = group_records(small_sessions, group_by)
    assert len(flatten_children(rows)) == len(small_sessions)


def test_min_classes_drops_single_session_group(make_record):
    records = [
        make_record(class_name="Studio Barre 57"),
        make_record(class_name="Studio Barre 57"),
        make_record(class_name="Studio Mat 57"),
    ]
    rows = group_records(records, GroupBy.CLASS, min_classes=2)
    assert [row.group_value for row in rows] == ["Studio Barre 57"]


def test_min_check_ins_threshold(small_sessions):
    rows = group_records(small_sessions, GroupBy.CLASS, min_check_ins=15)
    assert {row.group_value for row in rows} == {"Studio Barre 57", "Studio Hosted Class"}


def test_conditional_modes_filter_and_label(small_sessions):
    am = group_records(small_sessions, GroupBy.AM_SESSIONS)
    assert all(row.group_value.startswith("AM - ") for row in am)
    assert all(child.time != "18:00" for child in flatten_children(am))

    evening = group_records(small_sessions, GroupBy.EVENING_CLASSES)
    assert len(evening) == 1
    assert evening[0].group_value.startswith("Evening (5pm-9pm) - Studio powerCycle")

    weekend = group_records(small_sessions, GroupBy.WEEKEND)
    assert [row.day_of_week for row in weekend] == ["Sunday"]


def test_differing_attributes_show_multiple_values(make_record):
    records = [make_record(trainer="Anisha Shah"), make_record(trainer="Mrigakshi Jaiswal")]
    rows = group_records(records, GroupBy.CLASS_DAY_TIME_LOCATION)

    assert len(rows) == 1
    assert rows[0].trainer == Config.MULTIPLE_VALUES_LABEL
    assert rows[0].location == "Kwality House, Kemps Corner"


def test_keys_use_cleaned_values(make_record):
    a = make_record(day_of_week="mon", time="07:30:00", location="kwality house,  kemps corner")
    b = make_record()
    assert group_key(a, GroupBy.CLASS_DAY_TIME_LOCATION) == group_key(b, GroupBy.CLASS_DAY_TIME_LOCATION)
    assert group_key(make_record(time="19:00"), GroupBy.AM_SESSIONS) is None


def test_render_group_value_joins_key():
    assert render_group_value(("Barre", "Monday"), GroupBy.CLASS_DAY) == "Barre|Monday"
    assert render_group_value(("Barre",), GroupBy.WEEKDAY) == "Weekday - Barre"


def test_interleaved_records_keep_first_seen_order(make_record):
    records = [
        make_record(class_name="Studio Mat 57", checked_in=4),
        make_record(class_name="Studio Barre 57", checked_in=10),
        make_record(class_name="Studio Mat 57", checked_in=6),
        make_record(class_name="Studio Cardio Barre", checked_in=0),
        make_record(class_name="Studio Barre 57", checked_in=12),
    ]
    rows = group_records(records, GroupBy.CLASS)

    assert [row.group_value for row in rows] == ["Studio Mat 57", "Studio Barre 57", "Studio Cardio Barre"]
    assert [c.checked_in for c in rows[0].children] == [4, 6]
    assert rows[0].children[0] is records[0]
    assert rows[1].key == ("Studio Barre 57",)
    assert [row.metrics.total_check_ins for row in rows] == [10, 22, 0]
    assert [row.metrics.empty_classes for row in rows] == [0, 0, 1]


def test_group_metrics_match_single_set_metrics(small_sessions):
    for row in group_records(small_sessions, GroupBy.CLASS_DAY_TIME_LOCATION):
        assert row.metrics == calculate_group_metrics(row.children)


def test_thresholds_apply_to_aggregated_totals(make_record):
    records = [
        make_record(class_name="Studio Mat 57", checked_in=3),
        make_record(class_name="Studio Barre 57", checked_in=9),
        make_record(class_name="Studio Mat 57", checked_in=3),
        make_record(class_name="Studio Barre 57", checked_in=9),
    ]
    rows = group_records(records, GroupBy.CLASS, min_classes=2, min_check_ins=10)
    assert [row.group_value for row in rows] == ["Studio Barre 57"]
    assert group_records(records, GroupBy.CLASS, min_check_ins=100) == []


def test_no_records_in_mode_gives_no_groups(make_record):
    assert group_records([], GroupBy.CLASS) == []
    assert group_records([make_record(time="19:00")], GroupBy.AM_SESSIONS) == []
