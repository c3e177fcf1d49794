#!/usr/bin/env python3
"""
Main orchestration script for the session analytics engine.

This script:
1. Loads session history and the active schedule (Supabase or CSV files)
2. Tags each session Active or Inactive against the schedule
3. Filters, groups, scores and ranks the sessions on the recompute worker
4. Logs the top-ranked groups and grand totals
5. Optionally writes the processed rows to CSV
"""

import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

import pandas as pd

from studio_analytics.data_extraction import extract_all_data
from studio_analytics.data_loading import records_from_dataframe, schedule_from_dataframe
from studio_analytics.models import (
    FilterCriteria,
    GroupBy,
    PipelineParams,
    PipelineResult,
    RankingMetric,
    SortDirection,
    StatusFilter,
    ViewMode,
)
from studio_analytics.orchestrator import RecomputeOrchestrator
from studio_analytics.reporting import export_result_csv

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rank studio class sessions")
    parser.add_argument("--sessions-csv", help="Session history CSV (default: read from Supabase)")
    parser.add_argument("--schedule-csv", help="Active schedule CSV (default: read from Supabase)")
    parser.add_argument("--view", choices=[m.value for m in ViewMode], default=ViewMode.GROUPED.value)
    parser.add_argument("--group-by", choices=[g.value for g in GroupBy], default=GroupBy.CLASS_DAY_TIME_LOCATION.value)
    parser.add_argument("--ranking-metric", choices=[m.value for m in RankingMetric], default=RankingMetric.CLASS_AVG.value)
    parser.add_argument("--sort-column", help="Display sort column, applied after ranking")
    parser.add_argument("--sort-direction", choices=[d.value for d in SortDirection], default=SortDirection.ASC.value)
    parser.add_argument("--status", choices=[s.value for s in StatusFilter], default=StatusFilter.ALL.value)
    parser.add_argument("--date-from", type=date.fromisoformat)
    parser.add_argument("--date-to", type=date.fromisoformat)
    parser.add_argument("--min-check-ins", type=int, default=0)
    parser.add_argument("--min-classes", type=int, default=0)
    parser.add_argument("--exclude-hosted", action="store_true", help="Drop hosted / one-off events")
    parser.add_argument("--search", help="Free-text search over class, trainer, location and type")
    parser.add_argument("--top", type=int, default=10, help="Number of ranked groups to log")
    parser.add_argument("--output", help="Write the processed rows to this CSV file")
    parser.add_argument("--timeout", type=float, default=300.0, help="Seconds to wait for the run")
    return parser.parse_args(argv)


def build_params(args: argparse.Namespace) -> PipelineParams:
    filters = FilterCriteria(
        date_from=args.date_from,
        date_to=args.date_to,
        status_filter=StatusFilter(args.status),
        min_check_ins=args.min_check_ins,
        min_classes=args.min_classes,
        exclude_hosted_classes=args.exclude_hosted,
        search_query=args.search,
    )
    return PipelineParams(
        filters=filters,
        view_mode=ViewMode(args.view),
        group_by=GroupBy(args.group_by),
        ranking_metric=RankingMetric(args.ranking_metric),
        sort_column=args.sort_column,
        sort_direction=SortDirection(args.sort_direction),
    )


def load_inputs(args: argparse.Namespace):
    """Load sessions and schedule, preferring CSV files when given."""
    if args.sessions_csv and args.schedule_csv:
        sessions = records_from_dataframe(pd.read_csv(args.sessions_csv))
        schedule = schedule_from_dataframe(pd.read_csv(args.schedule_csv))
        return sessions, schedule

    data = extract_all_data()
    sessions = data["sessions"]
    schedule = data["schedule"]
    if args.sessions_csv:
        sessions = records_from_dataframe(pd.read_csv(args.sessions_csv))
    if args.schedule_csv:
        schedule = schedule_from_dataframe(pd.read_csv(args.schedule_csv))
    return sessions, schedule


def log_result(result: PipelineResult, top: int) -> None:
    totals = result.totals
    logger.info(f"  Sessions after filtering: {totals.classes}")
    logger.info(f"  Total check-ins: {totals.total_check_ins}")
    logger.info(f"  Class average: {totals.class_avg:.2f}")
    logger.info(f"  Fill rate: {totals.fill_rate:.1f}%")
    logger.info(f"  Revenue: {totals.total_revenue:,.2f}")

    if result.view_mode is ViewMode.GROUPED:
        metric = result.params.ranking_metric.value
        logger.info(f"\nTop {top} groups by {metric}:")
        for row in result.processed.rows[:top]:
            m = row.metrics
            logger.info(
                f"  #{row.rank:<3} {row.group_value} | classes={m.classes} "
                f"avg={m.class_avg:.2f} fill={m.fill_rate:.1f}% status={m.status.value}"
            )


def main(argv: Optional[List[str]] = None):
    """Main execution function."""
    args = parse_args(argv)
    try:
        logger.info("=" * 60)
        logger.info("Starting Session Analytics")
        logger.info("=" * 60)

        # Step 1: Load data
        logger.info("\n[Step 1] Loading sessions and active schedule...")
        sessions, schedule = load_inputs(args)
        logger.info(f"  Session records: {len(sessions)}")
        logger.info(f"  Scheduled days: {len(schedule)}")

        # Step 2: Classify, filter, group and rank on the worker
        logger.info("\n[Step 2] Running analytics pipeline...")
        with RecomputeOrchestrator(params=build_params(args)) as orchestrator:
            orchestrator.load_schedule(schedule)
            orchestrator.load_records(sessions)
            if not orchestrator.wait_until_idle(args.timeout):
                raise TimeoutError(f"Pipeline did not finish within {args.timeout:.0f}s")
            if orchestrator.last_error is not None:
                raise orchestrator.last_error
            result = orchestrator.latest_result

        # Step 3: Report
        logger.info("\n[Step 3] Results")
        log_result(result, args.top)

        if args.output:
            logger.info("\n[Step 4] Writing results...")
            export_result_csv(result, args.output)

        logger.info("\n" + "=" * 60)
        logger.info("Session Analytics Completed Successfully!")
        logger.info("=" * 60)

    except Exception as e:
        logger.error(f"\nAnalytics run failed with error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
