"""Historical season comparison.

This module provides:
- day_of_season / slot_label: The fixed 182-slot Nov 1 - Apr 30 axis
- SeasonAligner: Per-season cumulative series, cross-season bands, period groups
- season_statistics: Best/worst/mean/median season totals
"""

from .alignment import (
    SEASON_SLOTS,
    PeriodGroup,
    SeasonAligner,
    SeasonBands,
    SeasonSeries,
    day_of_season,
    fill_slots,
    season_series,
    slot_label,
)
from .stats import SeasonStatistics, SeasonTotal, season_statistics

__all__ = [
    "SEASON_SLOTS",
    "PeriodGroup",
    "SeasonAligner",
    "SeasonBands",
    "SeasonSeries",
    "day_of_season",
    "fill_slots",
    "season_series",
    "slot_label",
    "SeasonStatistics",
    "SeasonTotal",
    "season_statistics",
]
