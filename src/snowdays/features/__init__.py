"""Hourly-to-seasonal aggregation for snowdays.

This module provides:
- classify_hour / classify_reading: Physical snow/rain classification of one hour
- LocalDayClock: UTC → station-local time and ski-day bucketing
- SeasonKey: Winter season identifiers
- DailyAggregator: Hourly readings → per-season ski-day summaries
- accumulate: Running seasonal accumulation
- PartialDayEstimator: So-far summary of the in-progress ski day
"""

from .accumulation import accumulate, build_season_records
from .clock import LocalDayClock, dst_window, ensure_utc, last_sunday
from .daily import DailyAggregator, deduplicate, frame_to_readings, reduce_estimates
from .partial_day import HourlySlot, PartialDay, PartialDayEstimator, splice_partial_day
from .season import SeasonKey, parse_season_label, season_label, season_start_year
from .snowfall import (
    ClassifiedHour,
    HourEstimate,
    PrecipKind,
    classify_hour,
    classify_reading,
    snow_to_liquid_ratio,
    wet_bulb_proxy,
    wind_compaction_factor,
)

__all__ = [
    "accumulate",
    "build_season_records",
    "LocalDayClock",
    "dst_window",
    "ensure_utc",
    "last_sunday",
    "DailyAggregator",
    "deduplicate",
    "frame_to_readings",
    "reduce_estimates",
    "HourlySlot",
    "PartialDay",
    "PartialDayEstimator",
    "splice_partial_day",
    "SeasonKey",
    "parse_season_label",
    "season_label",
    "season_start_year",
    "ClassifiedHour",
    "HourEstimate",
    "PrecipKind",
    "classify_hour",
    "classify_reading",
    "snow_to_liquid_ratio",
    "wet_bulb_proxy",
    "wind_compaction_factor",
]
