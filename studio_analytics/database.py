"""
Database access for Supabase.

Creates the client and reads whole tables into DataFrames.
"""

import logging
import pandas as pd
from supabase import create_client, Client
from studio_analytics.config import Config

logger = logging.getLogger(__name__)


def get_supabase_client() -> Client:
    """
    Initialize and return a Supabase client.

    Returns:
        Client: Initialized Supabase client

    Raises:
        ValueError: If Supabase credentials are missing
    """
    Config.validate()

    client = create_client(Config.SUPABASE_URL, Config.SUPABASE_SERVICE_ROLE_KEY)
    logger.info("Supabase client initialized successfully")
    return client


def query_table_to_dataframe(client: Client, table_name: str, columns: str = "*") -> pd.DataFrame:
    """
    Read a Supabase table into a pandas DataFrame.

    Args:
        client: Supabase client
        table_name: Table to read
        columns: Columns to select (default: "*")

    Returns:
        DataFrame with one row per table row
    """
    try:
        response = client.table(table_name).select(columns).execute()
    except Exception as e:
        logger.error(f"Error querying table {table_name}: {e}")
        raise

    df = pd.DataFrame(response.data or [])
    logger.info(f"Retrieved {len(df)} rows from {table_name}")
    return df
