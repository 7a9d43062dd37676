"""Read-only JSON API for snowdays.

This module provides:

- create_app: Factory function to create FastAPI application
- SeasonResponse / TodayResponse / BandsResponse: Response schemas
- SeasonData: Access to season tables and the observation store

Note: FastAPI-dependent exports (create_app, SeasonData) are lazy-loaded
to allow importing schemas without FastAPI installed.
"""

# Schemas can be imported directly (only depend on pydantic)
from snowdays.api.schemas import (
    BandPoint,
    BandsResponse,
    DailyRow,
    ErrorResponse,
    HealthResponse,
    HourlySlotModel,
    PeriodModel,
    PeriodsResponse,
    SeasonInfo,
    SeasonListResponse,
    SeasonResponse,
    StatsResponse,
    TodayResponse,
)


# Lazy imports for FastAPI-dependent components
def __getattr__(name):
    """Lazy load FastAPI-dependent components."""
    if name in ("create_app", "SeasonData"):
        from snowdays.api.app import SeasonData, create_app
        if name == "create_app":
            return create_app
        elif name == "SeasonData":
            return SeasonData
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "create_app",
    "SeasonData",
    "BandPoint",
    "BandsResponse",
    "DailyRow",
    "ErrorResponse",
    "HealthResponse",
    "HourlySlotModel",
    "PeriodModel",
    "PeriodsResponse",
    "SeasonInfo",
    "SeasonListResponse",
    "SeasonResponse",
    "StatsResponse",
    "TodayResponse",
]
