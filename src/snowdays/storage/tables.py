"""Delimited-table persistence for daily and hourly data.

Daily tables use the columns

    date,snowfall_cm,slr,temp_max,temp_min,humidity_avg[,accumulated_snowfall_cm]

with ``-1`` in snowfall_cm/slr for rain days and blank cells for missing
temperature/humidity. Historic seasons are stored one file per season
(``agg9596.csv``), the current season in ``aggregated_data.csv``.
"""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

import pandas as pd

from snowdays.config import StationConfig
from snowdays.features.accumulation import accumulate
from snowdays.features.daily import frame_to_readings
from snowdays.features.season import SeasonKey, parse_season_label
from snowdays.records import DailySummary, HourlyReading, SeasonRecord

logger = logging.getLogger(__name__)

DAILY_COLUMNS = ["date", "snowfall_cm", "slr", "temp_max", "temp_min", "humidity_avg"]
ACCUMULATED_COLUMN = "accumulated_snowfall_cm"
HOURLY_COLUMNS = [
    "timestamp",
    "temperature",
    "precipitation",
    "wind_direction",
    "wind_speed",
    "humidity",
    "visibility",
]

CURRENT_TABLE_NAME = "aggregated_data.csv"
HOURLY_TABLE_NAME = "weather_data.csv"


def daily_to_frame(rows: Iterable[DailySummary], include_accumulated: Optional[bool] = None) -> pd.DataFrame:
    """Serialize daily rows to a string DataFrame in the output-contract format.

    Args:
        rows: DailySummary rows
        include_accumulated: Add the accumulated column. None adds it when
            every row carries an accumulated value.
    """
    rows = list(rows)
    if include_accumulated is None:
        include_accumulated = bool(rows) and all(r.accumulated_cm is not None for r in rows)

    columns = DAILY_COLUMNS + ([ACCUMULATED_COLUMN] if include_accumulated else [])
    records = []
    for row in rows:
        record = row.to_row()
        if include_accumulated and ACCUMULATED_COLUMN not in record:
            raise ValueError(f"{row.date}: missing accumulated value")
        records.append({col: record.get(col, "") for col in columns})
    return pd.DataFrame(records, columns=columns)


def frame_to_daily(df: pd.DataFrame) -> list[DailySummary]:
    """Parse a daily-table DataFrame.

    Raises:
        SentinelViolationError: If a row breaks the rain-sentinel invariant
    """
    missing = [col for col in DAILY_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Daily table missing columns: {missing}")
    return [DailySummary.from_row(record) for record in df.to_dict("records")]


def write_daily_table(
    rows: Iterable[DailySummary],
    path: Path,
    include_accumulated: Optional[bool] = None,
) -> Path:
    """Write daily rows to a CSV file (overwriting it)."""
    df = daily_to_frame(rows, include_accumulated=include_accumulated)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logger.info(f"Wrote {len(df)} days to {path}")
    return path


def read_daily_table(path: Path) -> list[DailySummary]:
    """Read a daily CSV table written by ``write_daily_table``."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    return frame_to_daily(df)


def hourly_to_frame(readings: Iterable[HourlyReading]) -> pd.DataFrame:
    records = [
        {
            "timestamp": r.timestamp.isoformat(),
            "temperature": r.temperature,
            "precipitation": r.precipitation,
            "wind_direction": r.wind_direction,
            "wind_speed": r.wind_speed,
            "humidity": r.humidity,
            "visibility": r.visibility,
        }
        for r in readings
    ]
    return pd.DataFrame(records, columns=HOURLY_COLUMNS)


def write_hourly_table(readings: Iterable[HourlyReading], path: Path) -> Path:
    df = hourly_to_frame(readings)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logger.info(f"Wrote {len(df)} hourly records to {path}")
    return path


def read_hourly_table(path: Path) -> list[HourlyReading]:
    df = pd.read_csv(path)
    return frame_to_readings(df)


class SeasonTableRepository:
    """Reads and writes per-season daily tables.

    Attributes:
        historic_dir: Directory with one ``aggXXYY.csv`` per completed season
        current_path: Path of the current season's table
        config: Station configuration (season start, exclusions)
    """

    def __init__(
        self,
        historic_dir: Path,
        current_path: Optional[Path] = None,
        config: Optional[StationConfig] = None,
    ):
        self.historic_dir = Path(historic_dir)
        self.current_path = Path(current_path) if current_path else None
        self.config = config or StationConfig()

    @classmethod
    def from_config(cls, config: StationConfig) -> "SeasonTableRepository":
        return cls(
            historic_dir=config.data_dir / "historic",
            current_path=config.data_dir / "current" / CURRENT_TABLE_NAME,
            config=config,
        )

    def season_path(self, season: SeasonKey) -> Path:
        return self.historic_dir / season.filename

    def available_seasons(self) -> list[SeasonKey]:
        """Historic seasons with a table on disk, excluded seasons omitted."""
        if not self.historic_dir.exists():
            return []

        seasons = []
        for path in sorted(self.historic_dir.glob("agg*.csv")):
            try:
                season = SeasonKey(parse_season_label(path.stem[3:]))
            except ValueError:
                logger.warning(f"Ignoring unrecognized season file {path.name}")
                continue
            if self.config.is_excluded(season.start_year):
                continue
            seasons.append(season)
        return sorted(seasons)

    def write_season(self, season: SeasonKey, rows: Iterable[DailySummary]) -> Path:
        return write_daily_table(rows, self.season_path(season), include_accumulated=False)

    def load_season(self, season: SeasonKey) -> SeasonRecord:
        """Load a historic season and compute its accumulation.

        Raises:
            KeyError: If the season is excluded
            FileNotFoundError: If no table exists for the season
        """
        if self.config.is_excluded(season.start_year):
            raise KeyError(f"Season {season.label} is excluded")
        rows = read_daily_table(self.season_path(season))
        return SeasonRecord(
            start_year=season.start_year,
            rows=accumulate(rows, season_start=self.config.season_start),
        )

    def load_all(self) -> list[SeasonRecord]:
        return [self.load_season(season) for season in self.available_seasons()]

    def load_current(self) -> Optional[SeasonRecord]:
        """Load the current season's table, or None when it does not exist or is empty."""
        if self.current_path is None or not self.current_path.exists():
            return None
        rows = read_daily_table(self.current_path)
        if not rows:
            return None
        season = SeasonKey.for_date(rows[0].date)
        if season is None:
            logger.warning(f"Current table starts outside a season: {rows[0].date}")
            return None
        if any(r.accumulated_cm is None for r in rows):
            rows = accumulate(rows, season_start=self.config.season_start)
        return SeasonRecord(start_year=season.start_year, rows=rows, is_current=True)

    def write_current(self, rows: Iterable[DailySummary]) -> Path:
        if self.current_path is None:
            raise ValueError("No current table path configured")
        return write_daily_table(rows, self.current_path, include_accumulated=True)
