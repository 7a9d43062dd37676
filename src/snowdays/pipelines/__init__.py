"""Data ingestion pipelines for snowdays.

This module provides:
- SMHIClient: Parallel per-parameter fetch from the SMHI open-data API
- SMHIPipeline: download → process → validate for the station's hourly data
- load_archive_directory: SMHI archive CSV downloads → hourly DataFrame
- update_current_season / bootstrap / rebuild_historic: Batch jobs (see refresh)
"""

from .smhi import (
    BOOTSTRAP_PERIODS,
    LIVE_PERIODS,
    PARAMETER_CODES,
    FetchResult,
    SMHIClient,
    SMHIPipeline,
    complete_hours,
    load_archive_directory,
    merge_parameters,
    parse_archive_csv,
    parse_entry,
    parse_timestamp,
    parse_wind_csv,
)

__all__ = [
    "BOOTSTRAP_PERIODS",
    "LIVE_PERIODS",
    "PARAMETER_CODES",
    "FetchResult",
    "SMHIClient",
    "SMHIPipeline",
    "complete_hours",
    "load_archive_directory",
    "merge_parameters",
    "parse_archive_csv",
    "parse_entry",
    "parse_timestamp",
    "parse_wind_csv",
]
