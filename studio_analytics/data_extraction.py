"""
Data extraction from Supabase tables.

Pulls the session history and the active schedule, validates their columns
and converts them into domain objects.
"""

import logging
from typing import Dict, List, Optional

import pandas as pd
from supabase import Client

from studio_analytics.config import Config
from studio_analytics.data_loading import (
    SCHEDULE_COLUMN_ALIASES,
    SCHEDULE_REQUIRED,
    SESSION_COLUMN_ALIASES,
    SESSION_REQUIRED,
    records_from_dataframe,
    schedule_from_dataframe,
)
from studio_analytics.database import get_supabase_client, query_table_to_dataframe
from studio_analytics.cleaners import normalize_token
from studio_analytics.models import ScheduleTable, SessionRecord

logger = logging.getLogger(__name__)


def _required_columns() -> Dict[str, List[str]]:
    return {
        Config.SESSIONS_TABLE: SESSION_REQUIRED,
        Config.SCHEDULE_TABLE: SCHEDULE_REQUIRED,
    }


def _aliases_for(table_name: str) -> Dict[str, str]:
    if table_name == Config.SCHEDULE_TABLE:
        return SCHEDULE_COLUMN_ALIASES
    return SESSION_COLUMN_ALIASES


def validate_columns(df: pd.DataFrame, table_name: str) -> None:
    """
    Validate that a table DataFrame carries every required field.

    Column names are matched the same way the loaders match them, so
    "class_name" and "ClassName" both satisfy the class requirement.

    Args:
        df: DataFrame to validate
        table_name: Name of the table (for error messages)

    Raises:
        ValueError: If required columns are missing
    """
    required_by_table = _required_columns()
    if table_name not in required_by_table:
        logger.warning(f"No required columns defined for {table_name}, skipping validation")
        return

    aliases = _aliases_for(table_name)
    present = {aliases.get(normalize_token(col)) for col in df.columns}
    missing = [col for col in required_by_table[table_name] if col not in present]

    if missing:
        raise ValueError(
            f"Table {table_name} is missing required columns: {', '.join(missing)}. "
            f"Found columns: {', '.join(map(str, df.columns))}"
        )

    logger.info(f"Table {table_name} validation passed ({len(df)} rows)")


def extract_session_records(client: Client) -> List[SessionRecord]:
    """
    Extract the historical class sessions.

    Args:
        client: Supabase client

    Returns:
        Session records with status Inactive (classification runs later)
    """
    table = Config.SESSIONS_TABLE
    logger.info(f"Extracting session data from {table}")
    df = query_table_to_dataframe(client, table)
    validate_columns(df, table)
    return records_from_dataframe(df)


def extract_active_schedule(client: Client) -> ScheduleTable:
    """
    Extract the active weekly schedule, indexed by day.

    Args:
        client: Supabase client

    Returns:
        Day-indexed schedule table
    """
    table = Config.SCHEDULE_TABLE
    logger.info(f"Extracting active schedule from {table}")
    df = query_table_to_dataframe(client, table)
    validate_columns(df, table)
    schedule = schedule_from_dataframe(df)
    logger.info(f"Active schedule covers {sum(len(v) for v in schedule.values())} slots")
    return schedule


def extract_all_data(client: Optional[Client] = None) -> dict:
    """
    Extract everything the analytics engine needs from Supabase.

    Args:
        client: Optional Supabase client (creates new one if not provided)

    Returns:
        Dictionary containing:
        - sessions: list of SessionRecord
        - schedule: day-indexed active schedule
    """
    if client is None:
        client = get_supabase_client()

    data = {
        "sessions": extract_session_records(client),
        "schedule": extract_active_schedule(client),
    }

    logger.info("All data extraction completed successfully")
    return data
