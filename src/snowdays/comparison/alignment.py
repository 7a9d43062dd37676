"""Cross-season alignment on a common day-of-season axis.

Every season is mapped onto 182 slots (slot 0 = Nov 1 ... slot 181 = Apr 30)
using fixed month lengths with a 29-day February (slot 120 is "29 Feb" and
is simply unobserved in non-leap seasons), so seasons from different years
can be overlaid and compared slot by slot.

Fill semantics:
- Completed seasons are forward-filled over all slots (step curve)
- The current season is forward-filled only up to its "today" slot; later
  slots stay unset so "in progress" is distinguishable from "final"
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import numpy as np
import pandas as pd

from snowdays.features.accumulation import accumulate
from snowdays.features.season import SeasonKey
from snowdays.records import SeasonRecord

logger = logging.getLogger(__name__)

SEASON_SLOTS = 182

# (month, abbreviation, days) in season order
SEASON_MONTHS = [
    (11, "Nov", 30),
    (12, "Dec", 31),
    (1, "Jan", 31),
    (2, "Feb", 29),
    (3, "Mar", 31),
    (4, "Apr", 30),
]

_MONTH_OFFSETS: dict[int, int] = {}
_offset = 0
for _month, _, _days in SEASON_MONTHS:
    _MONTH_OFFSETS[_month] = _offset
    _offset += _days


def day_of_season(day: date | str) -> Optional[int]:
    """Slot index 0-181 for a date, or None outside Nov 1 - Apr 30."""
    if isinstance(day, str):
        day = date.fromisoformat(day[:10])
    offset = _MONTH_OFFSETS.get(day.month)
    if offset is None:
        return None
    return offset + day.day - 1


def slot_label(index: int) -> str:
    """Display label for a slot, e.g. 0 → "1 Nov"."""
    if not 0 <= index < SEASON_SLOTS:
        raise ValueError(f"Slot index out of range: {index}")
    remaining = index
    for _, name, days in SEASON_MONTHS:
        if remaining < days:
            return f"{remaining + 1} {name}"
        remaining -= days
    return ""


def fill_slots(values: list[Optional[float]], until: Optional[int] = None) -> list[Optional[float]]:
    """Forward-fill unset slots with the last known value (starting from 0).

    Args:
        values: Slot values, None where unset
        until: Last slot to fill. None fills every slot (completed season);
            an index fills up to and including it and leaves later slots unset
            (season in progress).

    Returns:
        New list of the same length
    """
    last = until if until is not None else len(values) - 1
    filled = list(values)
    carried = 0.0
    for i in range(len(filled)):
        if i > last:
            filled[i] = None
            continue
        if filled[i] is None:
            filled[i] = carried
        else:
            carried = filled[i]
    return filled


@dataclass
class SeasonSeries:
    """Cumulative snowfall of one season on the day-of-season axis.

    Attributes:
        start_year: Season start year
        values: 182 slot values (None = unset)
        is_current: Whether the season is still in progress
        today_index: Last populated slot of an in-progress season
    """

    start_year: int
    values: list[Optional[float]]
    is_current: bool = False
    today_index: Optional[int] = None

    @property
    def key(self) -> SeasonKey:
        return SeasonKey(self.start_year)

    @property
    def final_total(self) -> float:
        index = self.today_index if self.is_current else SEASON_SLOTS - 1
        if index is None:
            return 0.0
        value = self.values[index]
        return 0.0 if value is None else value


def season_series(record: SeasonRecord, today_index: Optional[int] = None) -> SeasonSeries:
    """Place a season's accumulated snowfall onto the 182-slot axis.

    Args:
        record: SeasonRecord whose rows carry (or can be given) accumulation
        today_index: "Today" slot for an in-progress season; defaults to the
            slot of its last row

    Returns:
        SeasonSeries with the appropriate fill mode applied
    """
    rows = record.rows
    if any(row.accumulated_cm is None for row in rows):
        rows = accumulate(rows)

    if record.is_current and today_index is None and rows:
        today_index = day_of_season(rows[-1].date)

    values: list[Optional[float]] = [None] * SEASON_SLOTS
    for row in rows:
        slot = day_of_season(row.date)
        if slot is None:
            continue
        if record.is_current and today_index is not None and slot > today_index:
            continue
        values[slot] = row.accumulated_cm

    if record.is_current:
        filled = fill_slots(values, until=today_index if today_index is not None else -1)
    else:
        filled = fill_slots(values)

    return SeasonSeries(
        start_year=record.start_year,
        values=filled,
        is_current=record.is_current,
        today_index=today_index if record.is_current else None,
    )


@dataclass
class SeasonBands:
    """Per-slot min/max/mean across completed seasons.

    Attributes:
        frame: DataFrame indexed by slot with columns min, max, mean
        season_count: Number of completed seasons in the statistics
        current: The in-progress season, for overlay
    """

    frame: pd.DataFrame
    season_count: int
    current: Optional[SeasonSeries] = None


@dataclass
class PeriodGroup:
    """Mean cumulative curve of a multi-year bucket of seasons."""

    start_year: int
    end_year: int
    seasons: list[int] = field(default_factory=list)
    mean: list[Optional[float]] = field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{self.start_year}-{str(self.end_year)[-2:]}"

    @property
    def final_total(self) -> Optional[float]:
        return self.mean[-1] if self.mean else None


class SeasonAligner:
    """Aligns seasons and computes cross-season statistics.

    Excluded seasons are dropped on the way in, so they never reach any band
    or period computation.

    Example:
        >>> aligner = SeasonAligner(excluded={2017})
        >>> series = aligner.align(records)
        >>> bands = aligner.bands(series)
        >>> bands.frame.loc[0, "mean"]

    Attributes:
        excluded: Season start years with known-bad instrumentation
        period_span: Width of the period buckets in years
        period_anchor: First year of the first bucket
    """

    def __init__(self, excluded: Iterable[int] = (), period_span: int = 5, period_anchor: int = 1995):
        if period_span < 1:
            raise ValueError(f"period_span must be positive, got {period_span}")
        self.excluded = frozenset(excluded)
        self.period_span = period_span
        self.period_anchor = period_anchor

    def align(
        self,
        records: Iterable[SeasonRecord],
        today_index: Optional[int] = None,
    ) -> list[SeasonSeries]:
        """Convert season records to slot series, sorted by start year."""
        series = []
        for record in records:
            if record.start_year in self.excluded:
                logger.debug(f"Excluding season {record.start_year} from alignment")
                continue
            series.append(season_series(record, today_index if record.is_current else None))
        return sorted(series, key=lambda s: s.start_year)

    def _completed(self, series: Iterable[SeasonSeries]) -> list[SeasonSeries]:
        return [s for s in series if not s.is_current and s.start_year not in self.excluded]

    @staticmethod
    def to_frame(series: Iterable[SeasonSeries]) -> pd.DataFrame:
        """DataFrame indexed by slot with one float column per season start year."""
        data = {
            s.start_year: np.array([np.nan if v is None else v for v in s.values], dtype=float)
            for s in series
        }
        return pd.DataFrame(data, index=pd.RangeIndex(SEASON_SLOTS, name="slot"))

    def bands(self, series: Iterable[SeasonSeries]) -> SeasonBands:
        """Min/max/mean per slot over completed seasons only."""
        series = list(series)
        completed = self._completed(series)
        current = next((s for s in series if s.is_current), None)

        frame = self.to_frame(completed)
        bands = pd.DataFrame(
            {
                "min": frame.min(axis=1),
                "max": frame.max(axis=1),
                "mean": frame.mean(axis=1),
            },
            index=frame.index,
        )
        return SeasonBands(frame=bands, season_count=len(completed), current=current)

    def period_start(self, start_year: int) -> int:
        return self.period_anchor + ((start_year - self.period_anchor) // self.period_span) * self.period_span

    def periods(self, series: Iterable[SeasonSeries]) -> list[PeriodGroup]:
        """Group completed seasons into fixed multi-year buckets with a mean curve."""
        buckets: dict[int, list[SeasonSeries]] = {}
        for s in self._completed(series):
            buckets.setdefault(self.period_start(s.start_year), []).append(s)

        groups = []
        for start in sorted(buckets):
            members = buckets[start]
            mean = self.to_frame(members).mean(axis=1)
            groups.append(
                PeriodGroup(
                    start_year=start,
                    end_year=start + self.period_span - 1,
                    seasons=[s.start_year for s in members],
                    mean=[None if pd.isna(v) else float(v) for v in mean],
                )
            )
        return groups
