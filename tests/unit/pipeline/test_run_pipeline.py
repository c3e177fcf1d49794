from __future__ import annotations

from datetime import date

import pytest

from studio_analytics.models import (
    FilterCriteria,
    FlatRows,
    GroupBy,
    GroupedRows,
    PipelineParams,
    RankingMetric,
    SessionStatus,
    ViewMode,
)
from studio_analytics.pipeline import process_sessions, run_pipeline


def test_grouped_result_shape(small_sessions):
    result = run_pipeline(small_sessions, PipelineParams(), sequence=7)

    assert result.sequence == 7
    assert result.view_mode is ViewMode.GROUPED
    assert isinstance(result.processed, GroupedRows)
    assert [row.rank for row in result.processed.rows] == [1, 2, 3]
    assert result.totals.classes == len(small_sessions)


def test_flat_result_shape(small_sessions):
    params = PipelineParams(view_mode=ViewMode.FLAT, sort_column="checked_in", sort_direction="desc")
    result = run_pipeline(small_sessions, params)

    assert isinstance(result.processed, FlatRows)
    assert len(result.processed.rows) == len(small_sessions)
    check_ins = [r.checked_in for r in result.processed.records]
    assert check_ins == sorted(check_ins, reverse=True)


@pytest.mark.parametrize("group_by", [GroupBy.CLASS, GroupBy.TRAINER, GroupBy.WEEKEND, GroupBy.DATE])
def test_totals_independent_of_grouping(small_sessions, group_by):
    baseline = run_pipeline(small_sessions, PipelineParams())
    result = run_pipeline(small_sessions, PipelineParams(group_by=group_by, filters=FilterCriteria(min_classes=2)))
    assert result.totals == baseline.totals


def test_thresholds_do_not_change_filtered_records(small_sessions):
    params = PipelineParams(group_by=GroupBy.CLASS, filters=FilterCriteria(min_classes=3))
    result = run_pipeline(small_sessions, params)

    assert len(result.filtered_records) == len(small_sessions)
    assert [row.group_value for row in result.processed.rows] == ["Studio Barre 57"]


def test_same_input_same_output(small_sessions):
    params = PipelineParams(ranking_metric=RankingMetric.COMPOSITE_SCORE, filters=FilterCriteria(exclude_hosted_classes=True))
    first = run_pipeline(small_sessions, params)
    second = run_pipeline(small_sessions, params)

    assert first.processed == second.processed
    assert first.totals == second.totals
    assert first is not second


def test_process_sessions_classifies_first(small_sessions, barre_schedule):
    params = PipelineParams(filters=FilterCriteria(status_filter="active"))
    result = process_sessions(small_sessions, barre_schedule, params, today=date(2024, 4, 1))

    assert len(result.filtered_records) == 3
    assert all(r.status is SessionStatus.ACTIVE for r in result.filtered_records)
    assert result.processed.rows[0].metrics.status is SessionStatus.ACTIVE


def test_empty_input(small_sessions):
    result = run_pipeline([], PipelineParams())
    assert result.processed.rows == ()
    assert result.totals.classes == 0
