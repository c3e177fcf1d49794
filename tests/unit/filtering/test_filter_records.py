from __future__ import annotations

from datetime import date

from studio_analytics.filtering import (
    filter_records,
    is_hosted_class,
    similar_class_summary,
    unique_values,
)
from studio_analytics.cleaners import compile_keyword_pattern
from studio_analytics.models import FilterCriteria, SessionStatus, StatusFilter


def test_empty_criteria_keeps_everything(small_sessions):
    assert filter_records(small_sessions, FilterCriteria()) == small_sessions


def test_hosted_event_excluded_only_when_requested(small_sessions):
    kept = filter_records(small_sessions, FilterCriteria(exclude_hosted_classes=True))
    assert all("Hosted" not in r.class_name for r in kept)
    assert len(kept) == len(small_sessions) - 1

    everything = filter_records(small_sessions, FilterCriteria(exclude_hosted_classes=False))
    assert any(r.class_name == "Sunday Brunch Hosted Event" for r in everything)


def test_hosted_keywords_can_be_overridden(small_sessions):
    kept = filter_records(
        small_sessions,
        FilterCriteria(exclude_hosted_classes=True),
        hosted_keywords=["powercycle"],
    )
    assert {r.class_name for r in kept} == {"Studio Barre 57", "Sunday Brunch Hosted Event"}


def test_is_hosted_checks_session_and_class_name(make_record):
    pattern = compile_keyword_pattern(["birthday"])
    assert is_hosted_class(make_record(session_name="Birthday Bash"), pattern)
    assert is_hosted_class(make_record(class_name="Birthday Barre"), pattern)
    assert not is_hosted_class(make_record(), pattern)
    assert not is_hosted_class(make_record(session_name="Birthday Bash"), None)


def test_date_range_is_inclusive(small_sessions):
    criteria = FilterCriteria(date_from=date(2024, 3, 6), date_to=date(2024, 3, 11))
    kept = filter_records(small_sessions, criteria)
    assert sorted(r.date for r in kept) == [date(2024, 3, 6), date(2024, 3, 10), date(2024, 3, 11)]


def test_set_filters_and_status(small_sessions, make_record):
    kept = filter_records(small_sessions, FilterCriteria(trainers=["Vivaran Dhasmana"]))
    assert len(kept) == 2

    kept = filter_records(small_sessions, FilterCriteria(locations={"Supreme HQ, Bandra"}, class_types={"Cycle"}))
    assert len(kept) == 2

    records = [make_record(status=SessionStatus.ACTIVE), make_record()]
    assert len(filter_records(records, FilterCriteria(status_filter=StatusFilter.ACTIVE))) == 1
    assert len(filter_records(records, FilterCriteria(status_filter="inactive"))) == 1


def test_search_replaces_other_clauses(small_sessions):
    criteria = FilterCriteria(search_query="  vivaran ", date_from=date(2030, 1, 1), trainers=["Nobody"])
    kept = filter_records(small_sessions, criteria)
    assert len(kept) == 2
    assert {r.trainer for r in kept} == {"Vivaran Dhasmana"}


def test_search_still_honours_hosted_exclusion(small_sessions):
    criteria = FilterCriteria(search_query="brunch", exclude_hosted_classes=True)
    assert filter_records(small_sessions, criteria) == []


def test_blank_search_is_ignored(small_sessions):
    kept = filter_records(small_sessions, FilterCriteria(search_query="   ", trainers=["Anisha Shah"]))
    assert len(kept) == 4


def test_exclude_future_sessions(make_record):
    records = [make_record(date=date(2024, 3, 1)), make_record(date=date(2024, 3, 20))]
    kept = filter_records(records, FilterCriteria(exclude_future_sessions=True), today=date(2024, 3, 10))
    assert [r.date for r in kept] == [date(2024, 3, 1)]


def test_filter_is_deterministic(small_sessions):
    criteria = FilterCriteria(class_types={"Barre"}, min_check_ins=5)
    assert filter_records(small_sessions, criteria) == filter_records(small_sessions, criteria)


def test_unique_values_sorted_and_non_empty(small_sessions, make_record):
    values = unique_values(small_sessions + [make_record(trainer="")], "trainer")
    assert values == ["Anisha Shah", "Vivaran Dhasmana"]


def test_similar_class_summary(small_sessions):
    summary = similar_class_summary(small_sessions, "Studio Barre 57", "Monday", "07:30", "Kwality House, Kemps Corner")
    assert summary == {
        "avg_check_ins": 15.0,
        "total_sessions": 3,
        "last_session_date": date(2024, 3, 18),
    }
    assert similar_class_summary(small_sessions, "Studio Barre 57", "Friday", "07:30", "x") is None
