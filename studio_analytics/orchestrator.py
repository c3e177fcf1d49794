"""
Recompute orchestration on a background worker thread.

The orchestrator owns the canonical session dataset, the active schedule and
the current view parameters. Every change becomes a sequence-numbered
request carrying immutable snapshots; a single worker thread runs the
pipeline for the most recent pending request, and only the result of the
latest submitted request is ever delivered (last request wins).

States:
    IDLE    -> RUNNING  on a new request
    RUNNING -> IDLE     on completion (result delivered if still latest)
    RUNNING -> STALE    when a new request arrives mid-run
    STALE   -> RUNNING  on completion; the queued request is dispatched at once
"""

import itertools
import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from studio_analytics.classification import build_schedule_table, classify_records
from studio_analytics.config import Config
from studio_analytics.filtering import similar_class_summary, unique_values
from studio_analytics.models import (
    ActiveScheduleEntry,
    FilterCriteria,
    GroupBy,
    PipelineError,
    PipelineParams,
    PipelineResult,
    RankingMetric,
    ScheduleTable,
    SessionRecord,
    SortDirection,
    ViewMode,
)
from studio_analytics.pipeline import run_pipeline

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STALE = "stale"


class RequestKind(str, Enum):
    RELOAD = "reload"  # new dataset: classify and recompute
    RECLASSIFY = "reclassify"  # new schedule or refresh: classify existing dataset and recompute
    RECOMPUTE = "recompute"  # new view parameters only


@dataclass(frozen=True)
class RecomputeRequest:
    """Snapshot of everything one pipeline run needs."""
    sequence: int
    kind: RequestKind
    records: Tuple[SessionRecord, ...]
    schedule: Mapping[str, Tuple[ActiveScheduleEntry, ...]]
    dataset_version: int
    schedule_version: int
    params: PipelineParams


ResultCallback = Callable[[PipelineResult], None]
ErrorCallback = Callable[[PipelineError], None]


class RecomputeOrchestrator:
    """
    Owns analytics state and recomputes it on a dedicated worker thread.

    Callbacks run on the worker thread without the orchestrator lock, so
    submitting a request never waits on a consumer. A run superseded before
    it completes is never delivered. A request submitted while a callback is
    running may already be newer than the delivered result; compare
    `result.sequence` with `latest_sequence` to tell. Calling back into the
    orchestrator from a callback is allowed.

    Args:
        on_result: Called with each delivered PipelineResult
        on_error: Called with a PipelineError when the latest run fails
        pipeline: Pipeline function (records, params, sequence=...) -> PipelineResult
        classifier: Classification function (records, schedule) -> records
        watchdog_seconds: Log a warning if a run takes longer than this
        params: Initial view parameters
    """

    def __init__(
        self,
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        pipeline: Callable[..., PipelineResult] = run_pipeline,
        classifier: Callable[..., List[SessionRecord]] = classify_records,
        watchdog_seconds: Optional[float] = None,
        params: Optional[PipelineParams] = None,
    ):
        self._on_result = on_result
        self._on_error = on_error
        self._pipeline = pipeline
        self._classifier = classifier
        self._watchdog_seconds = Config.WATCHDOG_SECONDS if watchdog_seconds is None else watchdog_seconds

        # Producer-side state, guarded by the condition's lock
        self._condition = threading.Condition(threading.RLock())
        self._sequence = itertools.count(1)
        self._latest_sequence = 0
        self._pending: Optional[RecomputeRequest] = None
        self._state = OrchestratorState.IDLE
        self._stopping = False
        self._records: Tuple[SessionRecord, ...] = ()
        self._schedule: Mapping[str, Tuple[ActiveScheduleEntry, ...]] = MappingProxyType({})
        self._dataset_version = 0
        self._schedule_version = 0
        self._params = params or PipelineParams()
        self._latest_result: Optional[PipelineResult] = None
        self._last_error: Optional[PipelineError] = None

        # Worker-side classification cache, only touched by the worker thread
        self._cache_versions: Optional[Tuple[int, int]] = None
        self._cache_records: List[SessionRecord] = []

        self._worker = threading.Thread(target=self._run, name="recompute-worker", daemon=True)
        self._worker.start()
        logger.info("Recompute orchestrator started")

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        with self._condition:
            return self._state

    @property
    def latest_result(self) -> Optional[PipelineResult]:
        """Last successfully delivered result. A failed run never clears it."""
        with self._condition:
            return self._latest_result

    @property
    def last_error(self) -> Optional[PipelineError]:
        with self._condition:
            return self._last_error

    @property
    def params(self) -> PipelineParams:
        with self._condition:
            return self._params

    @property
    def records(self) -> Tuple[SessionRecord, ...]:
        with self._condition:
            return self._records

    @property
    def latest_sequence(self) -> int:
        with self._condition:
            return self._latest_sequence

    # ------------------------------------------------------------------
    # Change events
    # ------------------------------------------------------------------

    def load_records(self, records: Iterable[SessionRecord]) -> int:
        """Replace the dataset and request a full reload. Returns the request sequence."""
        with self._condition:
            self._records = tuple(records)
            self._dataset_version += 1
            if Config.AUTO_ADJUST_DATE_RANGE:
                self._params = replace(self._params, filters=self._fit_date_range(self._params.filters))
            logger.info(f"Loaded {len(self._records)} session records (dataset v{self._dataset_version})")
            return self._submit(RequestKind.RELOAD)

    def load_schedule(self, schedule: Union[ScheduleTable, Iterable[ActiveScheduleEntry]]) -> int:
        """Replace the active schedule and request re-classification of the loaded records."""
        if not isinstance(schedule, Mapping):
            schedule = build_schedule_table(schedule)
        with self._condition:
            self._schedule = MappingProxyType({day: tuple(entries) for day, entries in schedule.items()})
            self._schedule_version += 1
            logger.info(f"Loaded active schedule for {len(self._schedule)} days (schedule v{self._schedule_version})")
            return self._submit(RequestKind.RECLASSIFY)

    def set_filters(self, criteria: Optional[FilterCriteria] = None, **changes: Any) -> int:
        """Replace the filter criteria, or update individual fields of the current ones."""
        with self._condition:
            filters = criteria if criteria is not None else self._params.filters
            if changes:
                filters = replace(filters, **changes)
            self._params = replace(self._params, filters=filters)
            return self._submit(RequestKind.RECOMPUTE)

    def set_group_by(self, group_by: GroupBy) -> int:
        return self._update_params(group_by=GroupBy(group_by))

    def set_view_mode(self, view_mode: ViewMode) -> int:
        return self._update_params(view_mode=ViewMode(view_mode))

    def set_ranking_metric(self, metric: RankingMetric) -> int:
        return self._update_params(ranking_metric=RankingMetric(metric))

    def set_sorting(self, column: Optional[str], direction: SortDirection = SortDirection.ASC) -> int:
        return self._update_params(sort_column=column, sort_direction=SortDirection(direction))

    def refresh(self) -> int:
        """Re-classify and recompute with unchanged inputs, e.g. after a day boundary."""
        with self._condition:
            return self._submit(RequestKind.RECLASSIFY)

    # ------------------------------------------------------------------
    # Queries over the owned dataset
    # ------------------------------------------------------------------

    def filter_options(self) -> Dict[str, List[str]]:
        """Distinct trainers, locations, class types and class names in the dataset."""
        records = self.records
        return {
            "trainers": unique_values(records, "trainer"),
            "locations": unique_values(records, "location"),
            "class_types": unique_values(records, "class_type"),
            "class_names": unique_values(records, "class_name"),
        }

    def average_check_ins(self, class_name: str, day_of_week: str, time: str, location: str) -> Optional[Dict[str, Any]]:
        return similar_class_summary(self.records, class_name, day_of_week, time, location)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no run is pending or in flight. Returns False on timeout."""
        with self._condition:
            return self._condition.wait_for(
                lambda: self._pending is None and self._state is OrchestratorState.IDLE,
                timeout,
            )

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the worker after the run in flight; pending requests are dropped."""
        with self._condition:
            self._stopping = True
            self._pending = None
            self._condition.notify_all()
        self._worker.join(timeout)
        logger.info("Recompute orchestrator stopped")

    def __enter__(self) -> "RecomputeOrchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update_params(self, **changes: Any) -> int:
        with self._condition:
            self._params = replace(self._params, **changes)
            return self._submit(RequestKind.RECOMPUTE)

    def _fit_date_range(self, filters: FilterCriteria) -> FilterCriteria:
        """Widen the date range to the data if the current range contains none of it."""
        dates = [r.date for r in self._records if r.date is not None]
        if not dates or (filters.date_from is None and filters.date_to is None):
            return filters
        in_range = any(
            (filters.date_from is None or d >= filters.date_from)
            and (filters.date_to is None or d <= filters.date_to)
            for d in dates
        )
        if in_range:
            return filters
        logger.info(f"No sessions in the selected date range, widening to {min(dates)} - {max(dates)}")
        return replace(filters, date_from=min(dates), date_to=max(dates))

    def _submit(self, kind: RequestKind) -> int:
        # Caller holds the lock
        if self._stopping:
            raise RuntimeError("Orchestrator has been shut down")
        sequence = next(self._sequence)
        self._latest_sequence = sequence
        self._pending = RecomputeRequest(
            sequence=sequence,
            kind=kind,
            records=self._records,
            schedule=self._schedule,
            dataset_version=self._dataset_version,
            schedule_version=self._schedule_version,
            params=self._params,
        )
        if self._state is OrchestratorState.RUNNING:
            self._state = OrchestratorState.STALE
            logger.debug(f"Request #{sequence} ({kind.value}) queued behind the run in flight")
        self._condition.notify_all()
        return sequence

    def _run(self) -> None:
        while True:
            with self._condition:
                while self._pending is None and not self._stopping:
                    self._condition.wait()
                if self._stopping:
                    return
                request = self._pending
                self._pending = None
                self._state = OrchestratorState.RUNNING
            self._execute(request)

    def _execute(self, request: RecomputeRequest) -> None:
        watchdog = threading.Timer(self._watchdog_seconds, self._watchdog_fired, args=(request.sequence,))
        watchdog.daemon = True
        watchdog.start()

        result = None
        error = None
        try:
            records = self._classified(request)
            result = self._pipeline(records, request.params, sequence=request.sequence)
        except Exception as exc:
            logger.error(f"Pipeline run #{request.sequence} ({request.kind.value}) failed: {exc}", exc_info=True)
            error = PipelineError(request.sequence, str(exc))
            error.__cause__ = exc
        finally:
            watchdog.cancel()

        self._complete(request, result, error)

    def _classified(self, request: RecomputeRequest) -> List[SessionRecord]:
        versions = (request.dataset_version, request.schedule_version)
        # Fallback statuses depend on the current date and are recomputed every run
        reusable = request.kind is RequestKind.RECOMPUTE and bool(request.schedule)
        if reusable and self._cache_versions == versions:
            return self._cache_records
        records = self._classifier(request.records, dict(request.schedule))
        self._cache_versions = versions
        self._cache_records = records
        return records

    def _complete(
        self,
        request: RecomputeRequest,
        result: Optional[PipelineResult],
        error: Optional[PipelineError]
    ) -> None:
        with self._condition:
            is_latest = request.sequence == self._latest_sequence
            if not is_latest:
                logger.info(f"Discarded result of superseded run #{request.sequence} (latest #{self._latest_sequence})")
            elif error is not None:
                self._last_error = error
            else:
                self._latest_result = result
                self._last_error = None

        # Callbacks run without the lock held; the state stays RUNNING until they return
        if is_latest:
            if error is not None:
                self._notify(self._on_error, error)
            else:
                self._notify(self._on_result, result)

        with self._condition:
            self._state = OrchestratorState.RUNNING if self._pending is not None else OrchestratorState.IDLE
            self._condition.notify_all()

    def _notify(self, callback: Optional[Callable[[Any], None]], payload: Any) -> None:
        if callback is None:
            return
        try:
            callback(payload)
        except Exception as exc:
            logger.error(f"Result callback raised: {exc}", exc_info=True)

    def _watchdog_fired(self, sequence: int) -> None:
        logger.warning(f"Pipeline run #{sequence} still running after {self._watchdog_seconds:.0f}s")
