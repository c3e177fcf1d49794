"""
Tabular output for pipeline results.

Turns PipelineResult rows and totals into pandas DataFrames and CSV files.
"""

import logging
from dataclasses import asdict, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

from studio_analytics.models import FlatRows, GroupedRow, GroupedRows, GroupMetrics, PipelineResult

logger = logging.getLogger(__name__)

GROUP_COLUMNS = [
    "rank", "group_value", "class_name", "day_of_week", "time",
    "location", "trainer", "class_type", "session_name", "date",
]


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _metrics_dict(metrics) -> Dict[str, Any]:
    return {f.name: _plain(getattr(metrics, f.name)) for f in fields(metrics)}


def _grouped_row_dict(row: GroupedRow) -> Dict[str, Any]:
    data = {col: getattr(row, col) for col in GROUP_COLUMNS}
    data.update(_metrics_dict(row.metrics))
    return data


def result_to_dataframe(result: PipelineResult) -> pd.DataFrame:
    """
    Flatten the processed rows of a result into a DataFrame.

    Grouped results give one row per group (rank, display attributes and all
    group metrics); flat results give one row per session with its ratios.
    Row order follows the result.
    """
    processed = result.processed
    if isinstance(processed, GroupedRows):
        rows: List[Dict[str, Any]] = [_grouped_row_dict(row) for row in processed.rows]
        columns = GROUP_COLUMNS + [f.name for f in fields(GroupMetrics)]
    elif isinstance(processed, FlatRows):
        rows = []
        for row in processed.rows:
            data = {k: _plain(v) for k, v in asdict(row.record).items()}
            data.update(_metrics_dict(row.metrics))
            rows.append(data)
        columns = None
    else:
        raise TypeError(f"Unsupported processed rows: {type(processed).__name__}")

    return pd.DataFrame(rows, columns=columns)


def totals_to_dataframe(result: PipelineResult) -> pd.DataFrame:
    """Single-row DataFrame with the grand totals of a result."""
    return pd.DataFrame([_metrics_dict(result.totals)])


def export_result_csv(result: PipelineResult, path: Union[str, Path]) -> Path:
    """
    Write the processed rows of a result to CSV.

    Args:
        result: Pipeline result
        path: Output file; parent directories are created

    Returns:
        Path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = result_to_dataframe(result)
    df.to_csv(path, index=False)
    logger.info(f"Wrote {len(df)} {result.view_mode.value} rows to {path}")
    return path
