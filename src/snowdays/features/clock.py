"""Station-local wall clock and ski-day bucketing.

The station runs on Central European Time: UTC+1, and UTC+2 inside the EU
daylight-saving window (last Sunday of March 01:00 UTC to last Sunday of
October 01:00 UTC). Every component that needs a local date or hour goes
through ``LocalDayClock`` so the window is defined in exactly one place.

A ski day N spans local 08:00 on date N to local 08:00 on date N+1.
Observation timestamps mark the end of their hour, so an instant at exactly
08:00 local still belongs to the previous ski day.
"""

import calendar
import logging
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache

import pandas as pd

from snowdays.config import StationConfig

logger = logging.getLogger(__name__)

# EU rule: transitions happen at 01:00 UTC on the last Sunday of March/October
DST_TRANSITION_HOUR_UTC = 1
DST_START_MONTH = 3
DST_END_MONTH = 10


def last_sunday(year: int, month: int) -> date:
    """Date of the last Sunday in a month."""
    last_day = date(year, month, calendar.monthrange(year, month)[1])
    # Monday=0 ... Sunday=6
    return last_day - timedelta(days=(last_day.weekday() - 6) % 7)


@lru_cache(maxsize=None)
def dst_window(year: int) -> tuple[datetime, datetime]:
    """UTC start (inclusive) and end (exclusive) of daylight saving time in a year."""
    start = datetime.combine(
        last_sunday(year, DST_START_MONTH), time(DST_TRANSITION_HOUR_UTC), tzinfo=timezone.utc
    )
    end = datetime.combine(
        last_sunday(year, DST_END_MONTH), time(DST_TRANSITION_HOUR_UTC), tzinfo=timezone.utc
    )
    return start, end


def ensure_utc(instant: datetime) -> datetime:
    """Return the instant as a timezone-aware UTC datetime.

    Naive datetimes are assumed to already be in UTC.
    """
    if isinstance(instant, pd.Timestamp):
        instant = instant.to_pydatetime()
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


class LocalDayClock:
    """Deterministic UTC → local mapping for a fixed-offset station with EU DST.

    Example:
        >>> clock = LocalDayClock()
        >>> clock.ski_day_key(datetime(2025, 1, 15, 6, 0, tzinfo=timezone.utc))
        '2025-01-14'

    Attributes:
        standard_offset: UTC offset outside daylight saving time
        dst_offset: Additional offset inside the daylight-saving window
        day_start_hour: Local hour at which a ski day starts
    """

    def __init__(
        self,
        standard_offset_hours: int = 1,
        dst_offset_hours: int = 1,
        day_start_hour: int = 8,
    ):
        if not 0 <= day_start_hour <= 23:
            raise ValueError(f"day_start_hour must be 0-23, got {day_start_hour}")
        self.standard_offset = timedelta(hours=standard_offset_hours)
        self.dst_offset = timedelta(hours=dst_offset_hours)
        self.day_start_hour = day_start_hour

    @classmethod
    def from_config(cls, config: StationConfig) -> "LocalDayClock":
        return cls(
            standard_offset_hours=config.standard_offset_hours,
            dst_offset_hours=config.dst_offset_hours,
            day_start_hour=config.day_start_hour,
        )

    def is_dst(self, instant: datetime) -> bool:
        """Whether the instant falls inside the daylight-saving window."""
        utc = ensure_utc(instant)
        start, end = dst_window(utc.year)
        return start <= utc < end

    def utc_offset(self, instant: datetime) -> timedelta:
        if self.is_dst(instant):
            return self.standard_offset + self.dst_offset
        return self.standard_offset

    def to_local(self, instant: datetime) -> datetime:
        """Naive local wall-clock datetime for a UTC instant."""
        utc = ensure_utc(instant)
        return (utc + self.utc_offset(utc)).replace(tzinfo=None)

    def local_hour(self, instant: datetime) -> int:
        return self.to_local(instant).hour

    def local_date(self, instant: datetime) -> date:
        return self.to_local(instant).date()

    def local_date_key(self, instant: datetime) -> str:
        """Local calendar date as YYYY-MM-DD."""
        return self.local_date(instant).isoformat()

    def ski_day(self, instant: datetime) -> date:
        """Local start date of the ski day the instant belongs to.

        Instants at or before the day-start hour (08:00:00 local) belong to the
        ski day that started on the previous local date.
        """
        local = self.to_local(instant)
        boundary = datetime.combine(local.date(), time(self.day_start_hour))
        if local <= boundary:
            return local.date() - timedelta(days=1)
        return local.date()

    def ski_day_key(self, instant: datetime) -> str:
        return self.ski_day(instant).isoformat()

    def ski_day_start(self, day: date) -> datetime:
        """UTC instant at which the ski day starting on ``day`` begins."""
        local = datetime.combine(day, time(self.day_start_hour))
        candidate = (local - self.standard_offset - self.dst_offset).replace(tzinfo=timezone.utc)
        if self.is_dst(candidate):
            return candidate
        return (local - self.standard_offset).replace(tzinfo=timezone.utc)

    def ski_days(self, timestamps: pd.Series) -> pd.Series:
        """Vectorized ``ski_day`` over a Series of timestamps."""
        return timestamps.map(self.ski_day)
