"""
Ranking and display sorting of processed rows.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Union

from studio_analytics.models import FlatRow, GroupedRow, RankingMetric, SortDirection

logger = logging.getLogger(__name__)

# Ranking metric -> GroupMetrics attribute
METRIC_FIELDS: Dict[RankingMetric, str] = {
    RankingMetric.CLASS_AVG: "class_avg",
    RankingMetric.FILL_RATE: "fill_rate",
    RankingMetric.TOTAL_CHECK_INS: "total_check_ins",
    RankingMetric.TOTAL_REVENUE: "total_revenue",
    RankingMetric.REV_PER_CHECKIN: "rev_per_checkin",
    RankingMetric.CONSISTENCY_SCORE: "consistency_score",
    RankingMetric.CANCELLATION_RATE: "cancellation_rate",
    RankingMetric.CLASSES: "classes",
    RankingMetric.EMPTY_CLASSES: "empty_classes",
    RankingMetric.COMPOSITE_SCORE: "composite_score",
}

# Lower is better for these
ASCENDING_METRICS = {RankingMetric.CANCELLATION_RATE, RankingMetric.EMPTY_CLASSES}


def metric_value(row: GroupedRow, metric: RankingMetric) -> float:
    return float(getattr(row.metrics, METRIC_FIELDS[RankingMetric(metric)]) or 0)


def rank_rows(rows: Sequence[GroupedRow], metric: RankingMetric) -> List[GroupedRow]:
    """
    Order groups by a ranking metric and assign ranks 1..N.

    Cancellation rate and empty classes rank ascending, every other metric
    descending. Equal metric values fall back to total check-ins (descending)
    and then the group value (ascending), so ranks are unique and stable.

    Args:
        rows: Grouped rows (not modified)
        metric: Ranking metric

    Returns:
        New GroupedRow objects in rank order with `rank` set
    """
    metric = RankingMetric(metric)
    sign = 1 if metric in ASCENDING_METRICS else -1

    ordered = sorted(
        rows,
        key=lambda row: (sign * metric_value(row, metric), -row.metrics.total_check_ins, row.group_value),
    )
    ranked = [replace(row, rank=position) for position, row in enumerate(ordered, start=1)]

    if ranked:
        logger.info(f"Ranked {len(ranked)} groups by {metric.value}; top: {ranked[0].group_value}")
    return ranked


def _sort_value(row: Union[GroupedRow, FlatRow], column: str) -> Any:
    for source in (row, getattr(row, "metrics", None), getattr(row, "record", None)):
        if source is not None and hasattr(source, column):
            return getattr(source, column)
    return None


def sort_rows(
    rows: Sequence[Union[GroupedRow, FlatRow]],
    column: Optional[str],
    direction: SortDirection = SortDirection.ASC
) -> List[Union[GroupedRow, FlatRow]]:
    """
    Display sort by any row, metric or record attribute.

    Numbers compare numerically, everything else as strings; rows missing the
    column keep their relative order at the end. Ranks are not reassigned.
    """
    if not column:
        return list(rows)

    descending = SortDirection(direction) is SortDirection.DESC
    values = [(_sort_value(row, column), row) for row in rows]
    present = [(v, row) for v, row in values if v is not None]
    missing = [row for v, row in values if v is None]

    numeric = all(isinstance(v, (int, float)) for v, _ in present)
    present.sort(key=lambda item: item[0] if numeric else str(item[0]), reverse=descending)

    if missing:
        logger.debug(f"{len(missing)} rows have no '{column}' value")
    return [row for _, row in present] + missing
