"""Hourly snow/rain classification.

Converts one hour of precipitation into an estimated snow depth using a
wet-bulb proxy for the rain/snow decision, a temperature-dependent
snow-to-liquid ratio (SLR) and a wind compaction factor.

    wet_bulb = temp - (100 - humidity) / 10
    wet_bulb > 1.0          -> rain
    wet_bulb >= -2          -> slr = 8 - wet_bulb
    wet_bulb < -2           -> slr = 10 + 1.15 * (-2 - wet_bulb)
    slr clamped to [5, 30]
    wind > 2.5 m/s          -> factor = exp(-0.08 * (wind - 2.5))
    depth_cm = precip_mm * slr * factor / 10
"""

import math
from dataclasses import dataclass
from enum import Enum

from snowdays.records import RAIN, HourlyReading, Outcome, Snowfall

# Wet-bulb proxy above which precipitation is treated as liquid
RAIN_WET_BULB_C = 1.0

# SLR interpolation knee and bounds
SLR_KNEE_C = -2.0
SLR_MIN = 5.0
SLR_MAX = 30.0

# Wind compaction starts above this speed
WIND_CALM_MS = 2.5
WIND_DECAY = 0.08

DEFAULT_WIND_MS = 0.0
DEFAULT_HUMIDITY_PCT = 90.0


class PrecipKind(Enum):
    """Precipitation type of one classified hour."""

    SNOW = "snow"
    RAIN = "rain"
    NONE = "none"


@dataclass(frozen=True)
class HourEstimate:
    """Classification result for one hour.

    Attributes:
        kind: SNOW, RAIN or NONE
        amount_cm: Snow depth in cm (0 unless kind is SNOW)
        slr: Snow-to-liquid ratio (0 unless kind is SNOW)
    """

    kind: PrecipKind
    amount_cm: float = 0.0
    slr: float = 0.0

    @property
    def outcome(self) -> Outcome:
        if self.kind is PrecipKind.RAIN:
            return RAIN
        return Snowfall(amount_cm=self.amount_cm, slr=self.slr)


NO_PRECIP = HourEstimate(PrecipKind.NONE)
RAIN_HOUR = HourEstimate(PrecipKind.RAIN)


@dataclass(frozen=True)
class ClassifiedHour:
    """An hourly reading together with its classification."""

    reading: HourlyReading
    estimate: HourEstimate

    @property
    def kind(self) -> PrecipKind:
        return self.estimate.kind


def wet_bulb_proxy(temp_c: float, humidity_pct: float) -> float:
    """Simplified wet-bulb temperature from air temperature and humidity."""
    return temp_c - (100.0 - humidity_pct) / 10.0


def snow_to_liquid_ratio(wet_bulb_c: float) -> float:
    """Base SLR for a wet-bulb temperature, clamped to [5, 30]."""
    if wet_bulb_c >= SLR_KNEE_C:
        slr = 8.0 - wet_bulb_c
    else:
        slr = 10.0 + 1.15 * (SLR_KNEE_C - wet_bulb_c)
    return min(max(slr, SLR_MIN), SLR_MAX)


def wind_compaction_factor(wind_ms: float) -> float:
    """Depth multiplier for wind crystal breakup (1.0 at or below 2.5 m/s)."""
    if wind_ms <= WIND_CALM_MS:
        return 1.0
    return math.exp(-WIND_DECAY * (wind_ms - WIND_CALM_MS))


def classify_hour(
    temp_c: float,
    precip_mm: float,
    wind_ms: float = DEFAULT_WIND_MS,
    humidity_pct: float = DEFAULT_HUMIDITY_PCT,
) -> HourEstimate:
    """Classify one hour of precipitation as snow, rain or nothing.

    Inputs must already be finite; use ``classify_reading`` for raw readings
    with missing fields.

    Args:
        temp_c: Air temperature in Celsius
        precip_mm: Precipitation in mm over the hour
        wind_ms: Wind speed in m/s
        humidity_pct: Relative humidity in percent (0-100)

    Returns:
        HourEstimate with kind SNOW (amount > 0), RAIN or NONE

    Example:
        >>> classify_hour(-5.0, 2.0)
        HourEstimate(kind=<PrecipKind.SNOW: 'snow'>, amount_cm=2.92, slr=14.6)
    """
    if precip_mm <= 0:
        return NO_PRECIP

    wet_bulb = wet_bulb_proxy(temp_c, humidity_pct)
    if wet_bulb > RAIN_WET_BULB_C:
        return RAIN_HOUR

    slr = snow_to_liquid_ratio(wet_bulb)
    amount = round(precip_mm * slr * wind_compaction_factor(wind_ms) / 10.0, 2)
    if amount <= 0:
        return NO_PRECIP
    return HourEstimate(PrecipKind.SNOW, amount_cm=amount, slr=slr)


def _finite_or(value: float | None, default: float) -> float:
    if value is None or not math.isfinite(value):
        return default
    return value


def classify_reading(reading: HourlyReading) -> ClassifiedHour:
    """Sanitize a raw reading and classify it.

    Missing wind defaults to 0 m/s, missing humidity to 90 % (clamped to
    0-100). Missing precipitation counts as no precipitation. Readings
    without temperature cannot be classified and get kind NONE.
    """
    temp = reading.temperature
    precip = _finite_or(reading.precipitation, 0.0)
    if temp is None or not math.isfinite(temp):
        return ClassifiedHour(reading, NO_PRECIP)

    wind = _finite_or(reading.wind_speed, DEFAULT_WIND_MS)
    humidity = min(max(_finite_or(reading.humidity, DEFAULT_HUMIDITY_PCT), 0.0), 100.0)
    return ClassifiedHour(reading, classify_hour(temp, precip, wind, humidity))
