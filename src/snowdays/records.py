"""Record types shared by the aggregation pipeline.

Rain is carried internally as a tagged outcome (``Snowfall`` or ``RAIN``)
and only converted to the ``-1`` sentinel at the serialization boundary.
"Missing" days are simply absent: there is no zero record for a ski day
without observations.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Optional, Union

from snowdays.errors import SentinelViolationError

# Literal value used for rain in delimited output and JSON
RAIN_SENTINEL = -1


@dataclass(frozen=True)
class HourlyReading:
    """One station-hour of observations.

    Attributes:
        timestamp: Timezone-aware UTC instant (end of the observation hour)
        temperature: Air temperature in Celsius
        precipitation: Precipitation in mm accumulated over the preceding hour
        wind_speed: Wind speed in m/s
        humidity: Relative humidity in percent
        wind_direction: Wind direction in degrees
        visibility: Visibility in meters
    """

    timestamp: datetime
    temperature: Optional[float] = None
    precipitation: Optional[float] = None
    wind_speed: Optional[float] = None
    humidity: Optional[float] = None
    wind_direction: Optional[float] = None
    visibility: Optional[float] = None

    @property
    def is_classifiable(self) -> bool:
        """Whether the reading carries the fields needed for snow/rain classification."""
        return self.temperature is not None and self.precipitation is not None


@dataclass(frozen=True)
class Snowfall:
    """A snow (or dry) outcome: amount in cm and amount-weighted SLR."""

    amount_cm: float
    slr: float

    def __post_init__(self):
        if self.amount_cm < 0 or self.slr < 0:
            raise SentinelViolationError(
                f"Snowfall must be non-negative, got amount={self.amount_cm}, slr={self.slr}"
            )


class _Rain:
    """Singleton marker for a rain-spoiled hour or day."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "RAIN"

    def __reduce__(self):
        return (_Rain, ())


RAIN = _Rain()

Outcome = Union[Snowfall, _Rain]


def is_rain(outcome: Outcome) -> bool:
    return outcome is RAIN


@dataclass(frozen=True)
class DailySummary:
    """Summary of one ski day.

    Attributes:
        date: Local calendar date the ski day starts on (08:00 local)
        outcome: Snowfall(amount_cm, slr) or RAIN
        temp_max: Maximum temperature, None when no temperature was reported
        temp_min: Minimum temperature, None when no temperature was reported
        humidity_avg: Mean relative humidity
        accumulated_cm: Season accumulation as of this day (set by the accumulator)
    """

    date: date
    outcome: Outcome
    temp_max: Optional[float] = None
    temp_min: Optional[float] = None
    humidity_avg: Optional[float] = None
    accumulated_cm: Optional[float] = None

    @property
    def is_rain(self) -> bool:
        return is_rain(self.outcome)

    @property
    def snowfall_cm(self) -> float:
        """Snowfall with the rain sentinel applied."""
        return RAIN_SENTINEL if self.is_rain else self.outcome.amount_cm

    @property
    def slr(self) -> float:
        """Snow-to-liquid ratio with the rain sentinel applied."""
        return RAIN_SENTINEL if self.is_rain else self.outcome.slr

    def with_accumulation(self, accumulated_cm: float) -> "DailySummary":
        return replace(self, accumulated_cm=accumulated_cm)

    def to_row(self) -> dict[str, str]:
        """Serialize to the delimited-table row format.

        Rain is written as the literal ``-1`` in both snowfall and slr, blank
        strings denote missing temperature/humidity.
        """
        if self.is_rain:
            snowfall, slr = str(RAIN_SENTINEL), str(RAIN_SENTINEL)
        else:
            snowfall = f"{self.outcome.amount_cm:.2f}"
            slr = f"{self.outcome.slr:.1f}" if self.outcome.slr > 0 else "0"

        row = {
            "date": self.date.isoformat(),
            "snowfall_cm": snowfall,
            "slr": slr,
            "temp_max": _format_optional(self.temp_max, 1),
            "temp_min": _format_optional(self.temp_min, 1),
            "humidity_avg": _format_optional(self.humidity_avg, 1),
        }
        if self.accumulated_cm is not None:
            row["accumulated_snowfall_cm"] = f"{self.accumulated_cm:.2f}"
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "DailySummary":
        """Parse a delimited-table row.

        Raises:
            SentinelViolationError: If exactly one of snowfall/slr carries the
                rain sentinel, or a negative non-sentinel value is found.
            ValueError: If the date or a numeric field cannot be parsed.
        """
        snowfall = _parse_optional(row.get("snowfall_cm"))
        slr = _parse_optional(row.get("slr"))
        day = date.fromisoformat(str(row["date"]).strip()[:10])

        snowfall_rain = snowfall == RAIN_SENTINEL
        slr_rain = slr == RAIN_SENTINEL
        if snowfall_rain != slr_rain:
            raise SentinelViolationError(
                f"{day}: rain sentinel on only one of snowfall_cm={snowfall}, slr={slr}"
            )

        if snowfall_rain:
            outcome: Outcome = RAIN
        else:
            outcome = Snowfall(amount_cm=snowfall or 0.0, slr=slr or 0.0)

        return cls(
            date=day,
            outcome=outcome,
            temp_max=_parse_optional(row.get("temp_max")),
            temp_min=_parse_optional(row.get("temp_min")),
            humidity_avg=_parse_optional(row.get("humidity_avg")),
            accumulated_cm=_parse_optional(row.get("accumulated_snowfall_cm")),
        )


@dataclass
class SeasonRecord:
    """Ordered daily rows of one season plus derived state.

    Attributes:
        start_year: Season start year (season runs Nov 1 start_year → Apr 30 next year)
        rows: DailySummary rows sorted by date
        is_current: Whether the season is still being appended to
    """

    start_year: int
    rows: list[DailySummary] = field(default_factory=list)
    is_current: bool = False

    @property
    def final_total(self) -> float:
        """Last accumulated value, or 0.0 for an empty season."""
        for row in reversed(self.rows):
            if row.accumulated_cm is not None:
                return row.accumulated_cm
        return 0.0

    @property
    def last_date(self) -> Optional[date]:
        return self.rows[-1].date if self.rows else None


def _format_optional(value: Optional[float], digits: int) -> str:
    if value is None:
        return ""
    return f"{value:.{digits}f}"


def _parse_optional(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    if text == "" or text.lower() == "nan":
        return None
    return float(text)
