"""Winter season keys.

A season runs Nov 1 of its start year to Apr 30 of the following year and
is identified by its start year, or on disk by a two-digit year pair
(1995 → "9596"). A day belongs to a season by its own calendar date.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

SEASON_FIRST_MONTH = 11
SEASON_LAST_MONTH = 4

_LABEL_RE = re.compile(r"^(\d{2})(\d{2})$")


@dataclass(frozen=True, order=True)
class SeasonKey:
    """Identifier of one winter season."""

    start_year: int

    @property
    def start_date(self) -> date:
        return date(self.start_year, SEASON_FIRST_MONTH, 1)

    @property
    def end_date(self) -> date:
        return date(self.start_year + 1, SEASON_LAST_MONTH, 30)

    @property
    def label(self) -> str:
        """Two-digit year pair, e.g. "9596"."""
        return season_label(self.start_year)

    @property
    def display_name(self) -> str:
        """Human-readable name, e.g. "1995-96"."""
        return f"{self.start_year}-{str(self.start_year + 1)[-2:]}"

    @property
    def filename(self) -> str:
        return f"agg{self.label}.csv"

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @classmethod
    def for_date(cls, day: date) -> Optional["SeasonKey"]:
        start_year = season_start_year(day)
        return None if start_year is None else cls(start_year)

    @classmethod
    def from_label(cls, label: str) -> "SeasonKey":
        return cls(parse_season_label(label))


def season_start_year(day: date) -> Optional[int]:
    """Start year of the season containing ``day``, or None outside Nov-Apr."""
    if day.month >= SEASON_FIRST_MONTH:
        return day.year
    if day.month <= SEASON_LAST_MONTH:
        return day.year - 1
    return None


def season_label(start_year: int) -> str:
    return f"{str(start_year)[-2:]}{str(start_year + 1)[-2:]}"


def parse_season_label(label: str, pivot: int = 50) -> int:
    """Start year for a two-digit season label.

    Two-digit years at or above ``pivot`` are read as 19xx, below as 20xx.

    Raises:
        ValueError: If the label is not four digits or the years are not consecutive
    """
    match = _LABEL_RE.match(label.strip())
    if not match:
        raise ValueError(f"Invalid season label: {label!r}")
    first, second = int(match.group(1)), int(match.group(2))
    if (first + 1) % 100 != second:
        raise ValueError(f"Season label years are not consecutive: {label!r}")
    return (1900 if first >= pivot else 2000) + first
