"""Hourly readings to per-season ski-day summaries.

Each hour is classified, assigned to its ski day (08:00-08:00 local) and to
the season of that ski day's start date, then every (season, ski day) group
is reduced to one DailySummary.

IMPORTANT: Ski days without readings are absent from the output. A missing
day means missing instrumentation, never "no snow".
"""

import logging
import math
from collections.abc import Iterable
from datetime import date
from typing import Optional

import pandas as pd

from snowdays.config import StationConfig
from snowdays.errors import NoReadingsError
from snowdays.features.clock import LocalDayClock, ensure_utc
from snowdays.features.season import SeasonKey
from snowdays.features.snowfall import (
    DEFAULT_HUMIDITY_PCT,
    ClassifiedHour,
    HourEstimate,
    PrecipKind,
    classify_reading,
)
from snowdays.records import RAIN, DailySummary, HourlyReading, Outcome, Snowfall

logger = logging.getLogger(__name__)

READING_COLUMNS = [
    "temperature",
    "precipitation",
    "wind_speed",
    "humidity",
    "wind_direction",
    "visibility",
]


def frame_to_readings(df: pd.DataFrame, timestamp_col: str = "timestamp") -> list[HourlyReading]:
    """Convert an hourly DataFrame into HourlyReading records.

    Rows with an unparseable timestamp are skipped. NaN values become None.

    Args:
        df: DataFrame with a timestamp column and any of READING_COLUMNS
        timestamp_col: Name of the timestamp column

    Returns:
        List of HourlyReading in the DataFrame's row order
    """
    if df.empty:
        return []
    if timestamp_col not in df.columns:
        raise ValueError(
            f"timestamp_col '{timestamp_col}' not found in DataFrame columns: {list(df.columns)}"
        )

    timestamps = pd.to_datetime(df[timestamp_col], utc=True, errors="coerce")
    skipped = int(timestamps.isna().sum())
    if skipped:
        logger.warning(f"Skipping {skipped} rows with unparseable timestamps")

    present = [col for col in READING_COLUMNS if col in df.columns]
    values = df[present].apply(pd.to_numeric, errors="coerce")

    readings = []
    for ts, (_, row) in zip(timestamps, values.iterrows()):
        if pd.isna(ts):
            continue
        fields = {col: _clean(row[col]) for col in present}
        readings.append(HourlyReading(timestamp=ts.to_pydatetime(), **fields))
    return readings


def _clean(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def deduplicate(readings: Iterable[HourlyReading]) -> list[HourlyReading]:
    """Deduplicate by exact timestamp (last occurrence wins), sorted by time."""
    by_time: dict = {}
    for reading in readings:
        by_time[ensure_utc(reading.timestamp)] = reading
    return [by_time[ts] for ts in sorted(by_time)]


def reduce_estimates(estimates: Iterable[HourEstimate]) -> Outcome:
    """Reduce a ski day's hourly classifications to one outcome.

    A single rain hour spoils the whole day. Otherwise snow amounts are
    summed and the SLR is the snow-amount-weighted mean over snow hours
    (0 when no snow fell).
    """
    total = 0.0
    weighted_slr = 0.0
    for estimate in estimates:
        if estimate.kind is PrecipKind.RAIN:
            return RAIN
        if estimate.kind is PrecipKind.SNOW and estimate.amount_cm > 0:
            total += estimate.amount_cm
            weighted_slr += estimate.slr * estimate.amount_cm

    if total <= 0:
        return Snowfall(amount_cm=0.0, slr=0.0)
    return Snowfall(amount_cm=round(total, 2), slr=round(weighted_slr / total, 1))


def summarize_day(day: date, hours: list[ClassifiedHour]) -> DailySummary:
    """Build the DailySummary for one ski day's classified hours."""
    temps = [h.reading.temperature for h in hours if h.reading.temperature is not None]
    humidities = [h.reading.humidity for h in hours if h.reading.humidity is not None]

    return DailySummary(
        date=day,
        outcome=reduce_estimates(h.estimate for h in hours),
        temp_max=round(max(temps), 1) if temps else None,
        temp_min=round(min(temps), 1) if temps else None,
        humidity_avg=(
            round(sum(humidities) / len(humidities), 1) if humidities else DEFAULT_HUMIDITY_PCT
        ),
    )


class DailyAggregator:
    """Aggregates hourly readings into ski-day summaries grouped by season.

    Example:
        >>> aggregator = DailyAggregator()
        >>> seasons = aggregator.aggregate(readings)
        >>> for season, rows in seasons.items():
        ...     print(season.label, len(rows))

    Attributes:
        clock: LocalDayClock used for ski-day bucketing
    """

    def __init__(self, clock: Optional[LocalDayClock] = None, config: Optional[StationConfig] = None):
        config = config or StationConfig()
        self.clock = clock or LocalDayClock.from_config(config)

    def classify(self, readings: Iterable[HourlyReading]) -> pd.DataFrame:
        """Classify and key every classifiable reading.

        Returns:
            DataFrame with one row per hour and columns timestamp, ski_day,
            season, hour (ClassifiedHour)
        """
        usable = [r for r in deduplicate(readings) if r.is_classifiable]
        if not usable:
            return pd.DataFrame(columns=["timestamp", "ski_day", "season", "hour"])

        hours = [classify_reading(r) for r in usable]
        ski_days = [self.clock.ski_day(r.timestamp) for r in usable]
        return pd.DataFrame({
            "timestamp": [ensure_utc(r.timestamp) for r in usable],
            "ski_day": ski_days,
            "season": [SeasonKey.for_date(day) for day in ski_days],
            "hour": hours,
        })

    def aggregate(
        self,
        readings: Iterable[HourlyReading] | pd.DataFrame,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> dict[SeasonKey, list[DailySummary]]:
        """Aggregate hourly readings into DailySummary rows per season.

        Args:
            readings: HourlyReading records or an hourly DataFrame (may contain
                duplicate timestamps; the last one wins)
            start_date: Optional first ski day to include
            end_date: Optional last ski day to include

        Returns:
            Mapping SeasonKey → rows sorted by date, seasons in ascending order.
            Ski days outside Nov 1 - Apr 30 are dropped.

        Raises:
            NoReadingsError: If no reading carries both temperature and
                precipitation (after the date range is applied)
        """
        if isinstance(readings, pd.DataFrame):
            readings = frame_to_readings(readings)

        hours = self.classify(readings)
        if start_date is not None:
            hours = hours[hours["ski_day"] >= start_date]
        if end_date is not None:
            hours = hours[hours["ski_day"] <= end_date]

        if hours.empty:
            raise NoReadingsError("No readings with temperature and precipitation to aggregate")

        in_season = hours[hours["season"].notna()]
        dropped = len(hours) - len(in_season)
        if dropped:
            logger.debug(f"Dropped {dropped} hours outside the Nov-Apr season window")

        result: dict[SeasonKey, list[DailySummary]] = {}
        for (season, day), group in in_season.groupby(["season", "ski_day"], sort=True):
            result.setdefault(season, []).append(summarize_day(day, list(group["hour"])))

        logger.info(
            f"Aggregated {len(in_season)} hourly records into "
            f"{sum(len(rows) for rows in result.values())} ski days "
            f"across {len(result)} seasons"
        )
        return result
