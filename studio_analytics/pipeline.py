"""
One full analytics run: filter, totals, group, rank, sort.

Takes already classified session records and view parameters and returns a
fresh PipelineResult. Inputs are never modified.
"""

import logging
from datetime import date
from typing import Dict, Iterable, Optional, Sequence

from studio_analytics.classification import classify_records
from studio_analytics.filtering import filter_records
from studio_analytics.grouping import group_records
from studio_analytics.metrics import calculate_record_metrics, calculate_totals
from studio_analytics.models import (
    FlatRow,
    FlatRows,
    GroupedRows,
    PipelineParams,
    PipelineResult,
    ScheduleTable,
    SessionRecord,
    ViewMode,
)
from studio_analytics.ranking import rank_rows, sort_rows

logger = logging.getLogger(__name__)


def run_pipeline(
    records: Sequence[SessionRecord],
    params: PipelineParams,
    sequence: int = 0,
    hosted_keywords: Optional[Iterable[str]] = None,
    weights: Optional[Dict[str, float]] = None,
    today: Optional[date] = None
) -> PipelineResult:
    """
    Run filter → totals → group → metrics → rank → sort over tagged records.

    Ranking only applies to the grouped view. A configured sort column is
    applied after ranking as a display sort.

    Args:
        records: Session records with status already set
        params: View parameters (filters, view mode, grouping, ranking, sort)
        sequence: Request sequence number stamped on the result
        hosted_keywords: Override for Config.HOSTED_CLASS_KEYWORDS
        weights: Override for Config.COMPOSITE_WEIGHTS
        today: Reference date for date-relative filters

    Returns:
        New PipelineResult
    """
    filters = params.filters
    filtered = filter_records(records, filters, hosted_keywords=hosted_keywords, today=today)
    totals = calculate_totals(filtered, weights)

    if params.view_mode is ViewMode.GROUPED:
        grouped = group_records(
            filtered,
            params.group_by,
            min_check_ins=filters.min_check_ins,
            min_classes=filters.min_classes,
            weights=weights,
        )
        ranked = rank_rows(grouped, params.ranking_metric)
        processed = GroupedRows(rows=tuple(sort_rows(ranked, params.sort_column, params.sort_direction)))
    else:
        flat = [FlatRow(record=r, metrics=calculate_record_metrics(r)) for r in filtered]
        processed = FlatRows(rows=tuple(sort_rows(flat, params.sort_column, params.sort_direction)))

    logger.info(
        f"Pipeline run #{sequence} complete: {len(filtered)} sessions, "
        f"{len(processed.rows)} {params.view_mode.value} rows"
    )
    return PipelineResult(
        sequence=sequence,
        filtered_records=tuple(filtered),
        processed=processed,
        totals=totals,
        params=params,
    )


def process_sessions(
    records: Sequence[SessionRecord],
    schedule: ScheduleTable,
    params: Optional[PipelineParams] = None,
    today: Optional[date] = None
) -> PipelineResult:
    """Classify and run the pipeline in one synchronous call."""
    classified = classify_records(records, schedule, today=today)
    return run_pipeline(classified, params or PipelineParams(), today=today)
