"""
Metric calculation for grouped rows, flat records and the totals row.

Every ratio is guarded so that a zero denominator yields 0 rather than
NaN or infinity.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from studio_analytics.config import Config
from studio_analytics.models import GroupMetrics, RecordMetrics, SessionRecord, SessionStatus, TotalsRow

logger = logging.getLogger(__name__)


def safe_divide(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is 0."""
    if not denominator:
        return 0.0
    return numerator / denominator


def consistency_score(check_ins: Sequence[int]) -> float:
    """
    Stability of attendance across sessions, 0-100.

    Uses the coefficient of variation (population std / mean) of the
    check-in counts: 100 * (1 - min(cv, 1)), clamped to [0, 100]. Groups with
    no attendance at all score 0.

    Args:
        check_ins: Checked-in count per session

    Returns:
        Consistency score (higher = less variable)
    """
    if len(check_ins) == 0:
        return 0.0
    values = np.asarray(check_ins, dtype=float)
    mean = float(values.mean())
    if mean <= 0:
        return 0.0
    cv = float(values.std()) / mean
    return float(np.clip(100.0 * (1.0 - min(cv, 1.0)), 0.0, 100.0))


def composite_score(
    class_avg: float,
    fill_rate: float,
    classes: int,
    weights: Optional[Dict[str, float]] = None
) -> float:
    """
    Weighted blend of attendance, fill rate and session volume, 0-100.

    Each component is scaled to 0-100 first: class_avg * 5 (20 check-ins per
    class is excellent), fill_rate as-is, classes * 2 (50 sessions is
    excellent).
    """
    weights = weights or Config.COMPOSITE_WEIGHTS
    attendance_score = min(class_avg * Config.COMPOSITE_ATTENDANCE_SCALE, 100.0)
    fill_rate_score = min(fill_rate, 100.0)
    session_score = min(classes * Config.COMPOSITE_SESSION_SCALE, 100.0)
    score = (
        attendance_score * weights.get("attendance", 0.0)
        + fill_rate_score * weights.get("fill_rate", 0.0)
        + session_score * weights.get("sessions", 0.0)
    )
    return round(score, 2)


# Summary field -> (records_frame column, aggregation). Shared by the grouped
# path (DataFrameGroupBy.agg) and the single-set path (Series methods).
GROUP_AGGREGATIONS: Dict[str, Tuple[str, str]] = {
    "classes": ("checked_in", "count"),
    "total_check_ins": ("checked_in", "sum"),
    "total_capacity": ("capacity", "sum"),
    "total_booked": ("booked", "sum"),
    "total_cancellations": ("late_cancelled", "sum"),
    "total_waitlisted": ("waitlisted", "sum"),
    "total_revenue": ("revenue", "sum"),
    "complimentary_visits": ("non_paid", "sum"),
    "empty_classes": ("is_empty", "sum"),
    "any_active": ("is_active", "any"),
    "most_recent_date": ("date", "max"),
}


def records_frame(records: Iterable[SessionRecord]) -> pd.DataFrame:
    """
    One row per session with the numeric columns the aggregations need.

    Row order follows the input, so positional indices map back to records.
    """
    records = list(records)
    return pd.DataFrame({
        "checked_in": np.array([r.checked_in for r in records], dtype=np.int64),
        "capacity": np.array([r.capacity for r in records], dtype=np.int64),
        "booked": np.array([r.booked for r in records], dtype=np.int64),
        "late_cancelled": np.array([r.late_cancelled for r in records], dtype=np.int64),
        "waitlisted": np.array([r.waitlisted for r in records], dtype=np.int64),
        "revenue": np.array([r.revenue for r in records], dtype=float),
        "non_paid": np.array([r.non_paid for r in records], dtype=np.int64),
        "is_empty": np.array([r.checked_in == 0 for r in records], dtype=bool),
        "is_active": np.array([r.status is SessionStatus.ACTIVE for r in records], dtype=bool),
        "date": pd.to_datetime(pd.Series([r.date for r in records], dtype=object)),
    })


def summarise_frame(frame: pd.DataFrame) -> Dict[str, Any]:
    """Apply GROUP_AGGREGATIONS to a whole records frame (one group)."""
    return {name: getattr(frame[column], how)() for name, (column, how) in GROUP_AGGREGATIONS.items()}


def metrics_from_summary(
    summary: Mapping[str, Any],
    check_ins: Sequence[int],
    weights: Optional[Dict[str, float]] = None,
    metrics_class=GroupMetrics
) -> GroupMetrics:
    """
    Derive the full metric set from aggregated sums and counts.

    Args:
        summary: GROUP_AGGREGATIONS results for one group (dict or row Series)
        check_ins: Checked-in count per session of the group, for consistency
        weights: Composite score weights (default: Config.COMPOSITE_WEIGHTS)
        metrics_class: GroupMetrics or a subclass such as TotalsRow

    Returns:
        Metrics instance of `metrics_class`
    """
    classes = int(summary["classes"])
    total_check_ins = int(summary["total_check_ins"])
    total_capacity = int(summary["total_capacity"])
    total_booked = int(summary["total_booked"])
    total_cancellations = int(summary["total_cancellations"])
    total_waitlisted = int(summary["total_waitlisted"])
    total_revenue = float(summary["total_revenue"])
    empty_classes = int(summary["empty_classes"])
    non_empty_classes = classes - empty_classes
    most_recent = summary["most_recent_date"]

    class_avg = safe_divide(total_check_ins, classes)
    fill_rate = safe_divide(total_check_ins, total_capacity) * 100
    rev_per_booking = safe_divide(total_revenue, total_booked)

    return metrics_class(
        classes=classes,
        total_check_ins=total_check_ins,
        total_capacity=total_capacity,
        total_booked=total_booked,
        total_cancellations=total_cancellations,
        total_waitlisted=total_waitlisted,
        total_revenue=total_revenue,
        class_avg=class_avg,
        class_avg_non_empty=safe_divide(total_check_ins, non_empty_classes),
        fill_rate=fill_rate,
        waitlist_rate=safe_divide(total_waitlisted, total_capacity) * 100,
        cancellation_rate=safe_divide(total_cancellations, total_booked) * 100,
        rev_per_checkin=safe_divide(total_revenue, total_check_ins),
        rev_per_booking=rev_per_booking,
        rev_lost_per_cancellation=total_cancellations * rev_per_booking,
        # Same formula as fill_rate at group level; flat rows compute it per record
        weighted_average=fill_rate,
        empty_classes=empty_classes,
        non_empty_classes=non_empty_classes,
        complimentary_visits=int(summary["complimentary_visits"]),
        consistency_score=consistency_score(check_ins),
        composite_score=composite_score(class_avg, fill_rate, classes, weights),
        status=SessionStatus.ACTIVE if bool(summary["any_active"]) else SessionStatus.INACTIVE,
        most_recent_date=None if pd.isna(most_recent) else pd.Timestamp(most_recent).date(),
    )


def calculate_group_metrics(
    sessions: Sequence[SessionRecord],
    weights: Optional[Dict[str, float]] = None,
    metrics_class=GroupMetrics
) -> GroupMetrics:
    """
    Compute the derived metric set for a collection of sessions.

    Args:
        sessions: Session records in the group
        weights: Composite score weights (default: Config.COMPOSITE_WEIGHTS)
        metrics_class: GroupMetrics or a subclass such as TotalsRow

    Returns:
        Metrics instance of `metrics_class`
    """
    frame = records_frame(sessions)
    return metrics_from_summary(
        summarise_frame(frame),
        frame["checked_in"].to_numpy(),
        weights,
        metrics_class=metrics_class,
    )


def calculate_record_metrics(record: SessionRecord) -> RecordMetrics:
    """Ratio metrics for a single session, from its own figures."""
    rev_per_booking = safe_divide(record.revenue, record.booked)
    fill_rate = safe_divide(record.checked_in, record.capacity) * 100
    return RecordMetrics(
        fill_rate=fill_rate,
        waitlist_rate=safe_divide(record.waitlisted, record.capacity) * 100,
        cancellation_rate=safe_divide(record.late_cancelled, record.booked) * 100,
        rev_per_checkin=safe_divide(record.revenue, record.checked_in),
        rev_per_booking=rev_per_booking,
        rev_lost_per_cancellation=record.late_cancelled * rev_per_booking,
        weighted_average=fill_rate,
    )


def calculate_totals(
    filtered_records: Sequence[SessionRecord],
    weights: Optional[Dict[str, float]] = None
) -> TotalsRow:
    """
    Grand totals over the filtered record set.

    Independent of grouping mode and group thresholds.
    """
    totals = calculate_group_metrics(filtered_records, weights, metrics_class=TotalsRow)
    logger.info(
        f"Totals: {totals.classes} classes, {totals.total_check_ins} check-ins, "
        f"fill rate {totals.fill_rate:.1f}%, revenue {totals.total_revenue:.2f}"
    )
    return totals
