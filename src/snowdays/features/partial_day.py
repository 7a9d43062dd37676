"""Estimate for the ski day still in progress.

"Now" is taken from the live window itself: the latest reading that carries
a temperature decides which ski day is current, not the wall clock. When the
upstream feed lags, snow is attributed to the day the data belongs to.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from snowdays.config import StationConfig
from snowdays.features.accumulation import DEFAULT_SEASON_START, accumulate
from snowdays.features.clock import LocalDayClock, ensure_utc
from snowdays.features.daily import deduplicate, summarize_day
from snowdays.features.snowfall import ClassifiedHour, PrecipKind, classify_reading
from snowdays.records import RAIN_SENTINEL, DailySummary, HourlyReading

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_HOURS = 24


@dataclass(frozen=True)
class PartialDay:
    """So-far summary of the in-progress ski day.

    Attributes:
        ski_day: Local start date of the in-progress ski day
        latest: Timestamp of the freshest reading with a temperature
        hours: Number of readings that fell in the ski day
        summary: DailySummary built from those readings
    """

    ski_day: date
    latest: datetime
    hours: int
    summary: DailySummary

    @property
    def snowfall_cm(self) -> float:
        return self.summary.snowfall_cm

    @property
    def slr(self) -> float:
        return self.summary.slr


@dataclass(frozen=True)
class HourlySlot:
    """One slot of the gap-free recent-hours display series."""

    timestamp: datetime
    temperature: Optional[float]
    precipitation: float
    snowfall_cm: float
    slr: float
    kind: PrecipKind

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "temperature": self.temperature,
            "precipitation": self.precipitation,
            "snowfall_cm": self.snowfall_cm,
            "slr": self.slr,
        }


class PartialDayEstimator:
    """Derives the current ski day and its so-far snowfall from a live window.

    Example:
        >>> estimator = PartialDayEstimator()
        >>> partial = estimator.estimate(last_24h_readings)
        >>> if partial is not None:
        ...     print(partial.ski_day, partial.snowfall_cm)
    """

    def __init__(self, clock: Optional[LocalDayClock] = None, config: Optional[StationConfig] = None):
        config = config or StationConfig()
        self.clock = clock or LocalDayClock.from_config(config)

    @staticmethod
    def latest_timestamp(readings: Iterable[HourlyReading]) -> Optional[datetime]:
        """Latest timestamp among readings that carry a temperature."""
        stamps = [ensure_utc(r.timestamp) for r in readings if r.temperature is not None]
        return max(stamps) if stamps else None

    def current_ski_day(self, readings: Iterable[HourlyReading]) -> Optional[date]:
        """Ski day that is in progress according to the data, or None without data."""
        latest = self.latest_timestamp(readings)
        return None if latest is None else self.clock.ski_day(latest)

    def estimate(self, readings: Iterable[HourlyReading]) -> Optional[PartialDay]:
        """Summarize the in-progress ski day.

        Args:
            readings: Live window of raw readings (ideally ~24 h, gaps allowed)

        Returns:
            PartialDay, or None when no reading falls in the in-progress ski
            day ("no data yet", distinct from zero snow)
        """
        readings = [r for r in deduplicate(readings) if r.temperature is not None]
        latest = self.latest_timestamp(readings)
        if latest is None:
            logger.warning("No readings with temperature in live window")
            return None

        day = self.clock.ski_day(latest)
        hours: list[ClassifiedHour] = [
            classify_reading(r) for r in readings if self.clock.ski_day(r.timestamp) == day
        ]
        if not hours:
            logger.warning(f"No hours found for in-progress ski day {day}")
            return None

        summary = summarize_day(day, hours)
        logger.info(
            f"Partial ski day {day}: {summary.snowfall_cm} cm from {len(hours)} hours "
            f"(latest reading {latest.isoformat()})"
        )
        return PartialDay(ski_day=day, latest=latest, hours=len(hours), summary=summary)

    def hourly_series(
        self,
        readings: Iterable[HourlyReading],
        hours: int = DEFAULT_WINDOW_HOURS,
        end: Optional[datetime] = None,
    ) -> list[HourlySlot]:
        """Gap-free hourly series ending at the latest reading's hour.

        Slots without a reading (or without a temperature) get a placeholder
        with temperature None and zero amounts.

        Args:
            readings: Live window of raw readings
            hours: Number of slots
            end: Last slot; defaults to the latest reading with a temperature

        Returns:
            List of HourlySlot in ascending time order (empty without any data)
        """
        by_hour = {
            ensure_utc(r.timestamp).replace(minute=0, second=0, microsecond=0): r
            for r in deduplicate(readings)
        }
        end = end or self.latest_timestamp(by_hour.values())
        if end is None:
            return []
        end = ensure_utc(end).replace(minute=0, second=0, microsecond=0)

        slots = []
        for offset in range(hours - 1, -1, -1):
            slot_time = end - timedelta(hours=offset)
            reading = by_hour.get(slot_time)
            if reading is None or reading.temperature is None:
                slots.append(HourlySlot(slot_time, None, 0.0, 0.0, 0.0, PrecipKind.NONE))
                continue

            estimate = classify_reading(reading).estimate
            rain = estimate.kind is PrecipKind.RAIN
            slots.append(
                HourlySlot(
                    timestamp=slot_time,
                    temperature=reading.temperature,
                    precipitation=reading.precipitation or 0.0,
                    snowfall_cm=RAIN_SENTINEL if rain else estimate.amount_cm,
                    slr=RAIN_SENTINEL if rain else estimate.slr,
                    kind=estimate.kind,
                )
            )
        return slots


def splice_partial_day(
    rows: Iterable[DailySummary],
    partial: Optional[PartialDay],
    season_start: tuple[int, int] = DEFAULT_SEASON_START,
) -> list[DailySummary]:
    """Replace (or append) the in-progress day in a season table and re-accumulate.

    Without a partial day the rows are only re-accumulated.
    """
    rows = list(rows)
    if partial is not None:
        rows = [row for row in rows if row.date != partial.ski_day]
        rows.append(partial.summary)
    return accumulate(rows, season_start=season_start)
