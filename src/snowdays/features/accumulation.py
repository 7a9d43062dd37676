"""Running seasonal snowfall accumulation.

Rules:
- Accumulation resets to 0 on the season-start date (default Nov 1), and
  when consecutive rows belong to different seasons
- Rain days leave the running total unchanged
- Only positive snowfall is added
- Rows before an optional cutoff are dropped and never contribute
"""

import logging
from collections.abc import Iterable
from datetime import date
from typing import Optional

from snowdays.features.season import SeasonKey
from snowdays.records import DailySummary, SeasonRecord

logger = logging.getLogger(__name__)

DEFAULT_SEASON_START = (11, 1)


def _season_of(day: date, season_start: tuple[int, int]) -> int:
    month, start_day = season_start
    if (day.month, day.day) < (month, start_day):
        return day.year - 1
    return day.year


def accumulate(
    rows: Iterable[DailySummary],
    season_start: tuple[int, int] = DEFAULT_SEASON_START,
    cutoff: Optional[date] = None,
) -> list[DailySummary]:
    """Annotate daily rows with the running season accumulation.

    Args:
        rows: DailySummary rows (any order; sorted by date here)
        season_start: (month, day) on which accumulation resets
        cutoff: Rows dated before this are dropped entirely

    Returns:
        New list of rows sorted by date with ``accumulated_cm`` set
    """
    ordered = sorted(rows, key=lambda row: row.date)
    if cutoff is not None:
        ordered = [row for row in ordered if row.date >= cutoff]

    running = 0.0
    current_season: Optional[int] = None
    result = []
    for row in ordered:
        season = _season_of(row.date, season_start)
        if (row.date.month, row.date.day) == season_start or season != current_season:
            running = 0.0
        current_season = season

        if not row.is_rain and row.outcome.amount_cm > 0:
            running += row.outcome.amount_cm

        result.append(row.with_accumulation(round(running, 2)))
    return result


def build_season_records(
    daily_by_season: dict[SeasonKey, list[DailySummary]],
    current: Optional[SeasonKey] = None,
    season_start: tuple[int, int] = DEFAULT_SEASON_START,
    excluded: Iterable[int] = (),
) -> dict[SeasonKey, SeasonRecord]:
    """Accumulate every season and wrap it in a SeasonRecord.

    Args:
        daily_by_season: Output of DailyAggregator.aggregate()
        current: Season still in progress, if any
        season_start: (month, day) on which accumulation resets
        excluded: Season start years to leave out

    Returns:
        Mapping SeasonKey → SeasonRecord in ascending season order
    """
    excluded = set(excluded)
    records = {}
    for season in sorted(daily_by_season):
        if season.start_year in excluded:
            logger.info(f"Skipping excluded season {season.label}")
            continue
        records[season] = SeasonRecord(
            start_year=season.start_year,
            rows=accumulate(daily_by_season[season], season_start=season_start),
            is_current=season == current,
        )
    return records
