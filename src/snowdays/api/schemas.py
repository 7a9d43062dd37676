"""Pydantic schemas for API responses.

Rain days and rain hours carry the literal ``-1`` in snowfall_cm and slr,
exactly as in the delimited tables.
"""

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from snowdays.records import DailySummary


class DailyRow(BaseModel):
    """One ski day of a season table.

    Attributes:
        date: Local start date of the ski day
        snowfall_cm: Snowfall in cm, -1 for a rain day
        slr: Snow-to-liquid ratio, -1 for a rain day
        temp_max: Maximum temperature (C)
        temp_min: Minimum temperature (C)
        humidity_avg: Mean relative humidity (%)
        accumulated_snowfall_cm: Season accumulation as of this day
    """

    date: date_type
    snowfall_cm: float = Field(..., description="Snowfall in cm (-1 = rain)")
    slr: float = Field(..., description="Snow-to-liquid ratio (-1 = rain)")
    temp_max: Optional[float] = None
    temp_min: Optional[float] = None
    humidity_avg: Optional[float] = None
    accumulated_snowfall_cm: Optional[float] = None

    @classmethod
    def from_summary(cls, row: DailySummary) -> "DailyRow":
        return cls(
            date=row.date,
            snowfall_cm=row.snowfall_cm,
            slr=row.slr,
            temp_max=row.temp_max,
            temp_min=row.temp_min,
            humidity_avg=row.humidity_avg,
            accumulated_snowfall_cm=row.accumulated_cm,
        )


class SeasonInfo(BaseModel):
    """Season identifier and summary."""

    label: str = Field(..., description="Two-digit year pair, e.g. '9596'")
    name: str = Field(..., description="Display name, e.g. '1995-96'")
    start_year: int
    is_current: bool = False


class SeasonListResponse(BaseModel):
    seasons: list[SeasonInfo]
    count: int


class SeasonResponse(BaseModel):
    """Daily table of one season.

    Attributes:
        season: Season identifier
        rows: Ski days ordered by date
        total_cm: Final (or so-far) accumulated snowfall
    """

    season: SeasonInfo
    rows: list[DailyRow]
    total_cm: float


class HourlySlotModel(BaseModel):
    """One hour of the recent-hours series (placeholder slots have null temperature)."""

    timestamp: datetime
    temperature: Optional[float] = None
    precipitation: float = 0.0
    snowfall_cm: float = Field(0.0, description="Snowfall in cm (-1 = rain)")
    slr: float = Field(0.0, description="Snow-to-liquid ratio (-1 = rain)")


class TodayResponse(BaseModel):
    """So-far estimate for the ski day in progress.

    Attributes:
        ski_day: Local start date of the in-progress ski day (null without data)
        latest_reading: Timestamp of the freshest reading with a temperature
        hours: Number of hours in the ski day so far
        day: So-far summary of the ski day
        hourly: Recent hourly series (24 slots)
    """

    ski_day: Optional[date_type] = None
    latest_reading: Optional[datetime] = None
    hours: int = 0
    day: Optional[DailyRow] = None
    hourly: list[HourlySlotModel] = Field(default_factory=list)


class BandPoint(BaseModel):
    slot: int
    label: str
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    current: Optional[float] = None


class BandsResponse(BaseModel):
    """Per-slot min/max/mean across completed seasons with the current season overlaid."""

    season_count: int
    current_season: Optional[SeasonInfo] = None
    points: list[BandPoint]


class PeriodModel(BaseModel):
    label: str = Field(..., description="Period label, e.g. '1995-99'")
    start_year: int
    end_year: int
    seasons: list[str]
    mean: list[Optional[float]]
    final_total_cm: Optional[float] = None


class PeriodsResponse(BaseModel):
    periods: list[PeriodModel]


class SeasonTotalModel(BaseModel):
    season: SeasonInfo
    total_cm: float


class StatsResponse(BaseModel):
    """Statistics over final season totals."""

    best: SeasonTotalModel
    worst: SeasonTotalModel
    mean_total_cm: float
    median_total_cm: float
    recent_mean_cm: float
    early_mean_cm: float
    season_count: int


class HealthResponse(BaseModel):
    """Health check response.

    Attributes:
        status: Service status
        station_id: Station being served
        version: API version
    """

    status: str = Field(
        ...,
        description="Service status",
    )
    station_id: int
    version: str = Field(
        ...,
        description="API version",
    )


class ErrorResponse(BaseModel):
    """Error response schema.

    Attributes:
        error: Error code
        message: Human-readable error message
        detail: Optional additional details
    """

    error: str = Field(
        ...,
        description="Error code",
    )
    message: str = Field(
        ...,
        description="Error message",
    )
    detail: Optional[str] = Field(
        None,
        description="Additional error details",
    )
