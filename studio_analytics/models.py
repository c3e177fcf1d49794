"""
Domain models for the session analytics engine.

Dataclasses for session records, the active schedule, filter criteria,
grouped rows and pipeline results. Everything that crosses the worker
thread boundary is frozen so neither side can mutate the other's view.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union


class SessionStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class StatusFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    INACTIVE = "inactive"


class ViewMode(str, Enum):
    GROUPED = "grouped"
    FLAT = "flat"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class RankingMetric(str, Enum):
    """Metrics a grouped view can be ranked by."""
    CLASS_AVG = "classAvg"
    FILL_RATE = "fillRate"
    TOTAL_CHECK_INS = "totalCheckIns"
    TOTAL_REVENUE = "totalRevenue"
    REV_PER_CHECKIN = "revPerCheckin"
    CONSISTENCY_SCORE = "consistencyScore"
    CANCELLATION_RATE = "cancellationRate"
    CLASSES = "classes"
    EMPTY_CLASSES = "emptyClasses"
    COMPOSITE_SCORE = "compositeScore"


class GroupBy(str, Enum):
    """Grouping modes. Values match the dashboard's group-by selector."""
    CLASS_DAY_TIME_LOCATION = "ClassDayTimeLocation"
    CLASS_DAY_TIME_LOCATION_TRAINER = "ClassDayTimeLocationTrainer"
    CLASS = "Class"
    TYPE = "Type"
    TRAINER = "Trainer"
    LOCATION = "Location"
    DAY = "Day"
    DATE = "Date"
    TIME = "Time"
    SESSION_NAME = "SessionName"
    LOCATION_CLASS = "LocationClass"
    CLASS_DAY = "ClassDay"
    CLASS_DAY_TRAINER = "ClassDayTrainer"
    DAY_TIME_LOCATION = "DayTimeLocation"
    CLASS_TIME = "ClassTime"
    TRAINER_LOCATION = "TrainerLocation"
    DAY_LOCATION = "DayLocation"
    TIME_LOCATION = "TimeLocation"
    CLASS_TYPE = "ClassType"
    TYPE_LOCATION = "TypeLocation"
    TRAINER_DAY = "TrainerDay"
    CLASS_TRAINER = "ClassTrainer"
    DAY_TIME = "DayTime"
    CLASS_LOCATION = "ClassLocation"
    TRAINER_TIME = "TrainerTime"
    AM_SESSIONS = "AMSessions"
    PM_SESSIONS = "PMSessions"
    MORNING_CLASSES = "MorningClasses"
    EVENING_CLASSES = "EveningClasses"
    WEEKDAY = "Weekday"
    WEEKEND = "Weekend"


@dataclass(frozen=True)
class SessionRecord:
    """One scheduled class occurrence with attendance and revenue figures."""
    trainer: str
    location: str
    class_name: str
    class_type: str
    date: date
    day_of_week: str
    time: str
    capacity: int = 0
    checked_in: int = 0
    booked: int = 0
    late_cancelled: int = 0
    waitlisted: int = 0
    revenue: float = 0.0
    status: SessionStatus = SessionStatus.INACTIVE
    session_name: str = ""
    session_id: str = ""
    non_paid: int = 0

    @property
    def display_class(self) -> str:
        """Session name when present, otherwise the class name."""
        return self.session_name or self.class_name


@dataclass(frozen=True)
class ActiveScheduleEntry:
    """One recurring slot from the active schedule."""
    day: str
    time: str
    location: str
    class_name: str
    trainer: str = ""
    capacity: int = 0
    duration: int = 0
    notes: str = ""


# Canonical day name -> entries scheduled on that day
ScheduleTable = Dict[str, Tuple[ActiveScheduleEntry, ...]]


@dataclass(frozen=True)
class FilterCriteria:
    """Compound predicate applied to tagged records."""
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    trainers: FrozenSet[str] = frozenset()
    locations: FrozenSet[str] = frozenset()
    class_types: FrozenSet[str] = frozenset()
    class_names: FrozenSet[str] = frozenset()
    status_filter: StatusFilter = StatusFilter.ALL
    min_check_ins: int = 0
    min_classes: int = 0
    exclude_hosted_classes: bool = False
    search_query: Optional[str] = None
    exclude_future_sessions: bool = False

    def __post_init__(self):
        # Accept any iterable for the set filters
        for name in ("trainers", "locations", "class_types", "class_names"):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value or ()))
        if not isinstance(self.status_filter, StatusFilter):
            object.__setattr__(self, "status_filter", StatusFilter(self.status_filter))


@dataclass(frozen=True)
class GroupMetrics:
    """Derived metrics for a set of session records (a group or the whole filtered set)."""
    classes: int = 0
    total_check_ins: int = 0
    total_capacity: int = 0
    total_booked: int = 0
    total_cancellations: int = 0
    total_waitlisted: int = 0
    total_revenue: float = 0.0
    class_avg: float = 0.0
    class_avg_non_empty: float = 0.0
    fill_rate: float = 0.0
    waitlist_rate: float = 0.0
    cancellation_rate: float = 0.0
    rev_per_checkin: float = 0.0
    rev_per_booking: float = 0.0
    rev_lost_per_cancellation: float = 0.0
    weighted_average: float = 0.0
    empty_classes: int = 0
    non_empty_classes: int = 0
    complimentary_visits: int = 0
    consistency_score: float = 0.0
    composite_score: float = 0.0
    status: SessionStatus = SessionStatus.INACTIVE
    most_recent_date: Optional[date] = None


class TotalsRow(GroupMetrics):
    """Grand totals over the filtered record set."""


@dataclass(frozen=True)
class RecordMetrics:
    """Ratio metrics for a single record in the flat view."""
    fill_rate: float = 0.0
    waitlist_rate: float = 0.0
    cancellation_rate: float = 0.0
    rev_per_checkin: float = 0.0
    rev_per_booking: float = 0.0
    rev_lost_per_cancellation: float = 0.0
    weighted_average: float = 0.0


@dataclass(frozen=True)
class FlatRow:
    record: SessionRecord
    metrics: RecordMetrics


@dataclass(frozen=True)
class GroupedRow:
    """Aggregate over one group key."""
    group_by: GroupBy
    group_value: str
    key: Tuple[str, ...]
    children: Tuple[SessionRecord, ...]
    metrics: GroupMetrics
    rank: int = 0
    class_name: str = ""
    day_of_week: str = ""
    time: str = ""
    location: str = ""
    trainer: str = ""
    class_type: str = ""
    session_name: str = ""
    date: str = ""


@dataclass(frozen=True)
class FlatRows:
    rows: Tuple[FlatRow, ...] = ()

    @property
    def records(self) -> List[SessionRecord]:
        return [row.record for row in self.rows]


@dataclass(frozen=True)
class GroupedRows:
    rows: Tuple[GroupedRow, ...] = ()


ProcessedRows = Union[FlatRows, GroupedRows]


@dataclass(frozen=True)
class PipelineParams:
    """View parameters carried by every recompute request."""
    filters: FilterCriteria = field(default_factory=FilterCriteria)
    view_mode: ViewMode = ViewMode.GROUPED
    group_by: GroupBy = GroupBy.CLASS_DAY_TIME_LOCATION
    ranking_metric: RankingMetric = RankingMetric.CLASS_AVG
    sort_column: Optional[str] = None
    sort_direction: SortDirection = SortDirection.ASC

    def __post_init__(self):
        object.__setattr__(self, "view_mode", ViewMode(self.view_mode))
        object.__setattr__(self, "group_by", GroupBy(self.group_by))
        object.__setattr__(self, "ranking_metric", RankingMetric(self.ranking_metric))
        object.__setattr__(self, "sort_direction", SortDirection(self.sort_direction))


@dataclass(frozen=True)
class PipelineResult:
    """Output of one pipeline run. A new instance is created for every run."""
    sequence: int
    filtered_records: Tuple[SessionRecord, ...]
    processed: ProcessedRows
    totals: TotalsRow
    params: PipelineParams
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def view_mode(self) -> ViewMode:
        return ViewMode.GROUPED if isinstance(self.processed, GroupedRows) else ViewMode.FLAT


class PipelineError(Exception):
    """A recompute failed on the worker. The previous result stays valid."""

    def __init__(self, sequence: int, message: str):
        super().__init__(message)
        self.sequence = sequence
        self.message = message

    def __str__(self) -> str:
        return f"Pipeline run #{self.sequence} failed: {self.message}"


def flatten_children(rows: Iterable[GroupedRow]) -> List[SessionRecord]:
    """All child records of the given groups, in group order."""
    records: List[SessionRecord] = []
    for row in rows:
        records.extend(row.children)
    return records
