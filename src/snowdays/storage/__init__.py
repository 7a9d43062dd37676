"""Persistence for snowdays.

This module provides:
- Daily/hourly delimited tables (the ``-1`` rain-sentinel output format)
- SeasonTableRepository: per-season tables on disk
- ObservationStore: DuckDB store of hourly readings plus a fetch log
"""

from .database import ObservationStore
from .tables import (
    CURRENT_TABLE_NAME,
    HOURLY_TABLE_NAME,
    SeasonTableRepository,
    daily_to_frame,
    frame_to_daily,
    read_daily_table,
    read_hourly_table,
    write_daily_table,
    write_hourly_table,
)

__all__ = [
    "ObservationStore",
    "CURRENT_TABLE_NAME",
    "HOURLY_TABLE_NAME",
    "SeasonTableRepository",
    "daily_to_frame",
    "frame_to_daily",
    "read_daily_table",
    "read_hourly_table",
    "write_daily_table",
    "write_hourly_table",
]
