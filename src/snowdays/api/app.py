"""FastAPI application serving season tables and comparisons.

Provides read-only JSON endpoints for:
- Historic and current season tables
- The in-progress ski day with its recent hourly series
- Cross-season bands, period groups and season statistics

Example:
    >>> from snowdays.api import create_app
    >>> app = create_app()
    >>> # Run with: uvicorn snowdays.api.app:app --reload
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import pandas as pd
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

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
    SeasonTotalModel,
    StatsResponse,
    TodayResponse,
)
from snowdays.comparison import SeasonAligner, season_statistics, slot_label
from snowdays.config import StationConfig
from snowdays.features.partial_day import PartialDay, PartialDayEstimator, splice_partial_day
from snowdays.features.season import SeasonKey, parse_season_label
from snowdays.records import HourlyReading, SeasonRecord
from snowdays.storage.database import ObservationStore
from snowdays.storage.tables import SeasonTableRepository

logger = logging.getLogger(__name__)

# API version
API_VERSION = "1.0.0"

# Readings loaded for the live window (covers a full ski day plus the display series)
LIVE_WINDOW_HOURS = 48


class SeasonData:
    """Access to season tables and the observation store for request handlers.

    The observation store is opened lazily on first use.

    Attributes:
        config: Station configuration
        repository: Season table repository
    """

    def __init__(
        self,
        config: StationConfig,
        repository: Optional[SeasonTableRepository] = None,
        store: Optional[ObservationStore] = None,
    ):
        self.config = config
        self.repository = repository or SeasonTableRepository.from_config(config)
        self._store = store
        self.estimator = PartialDayEstimator(config=config)
        self.aligner = SeasonAligner(
            excluded=config.excluded_seasons,
            period_span=config.period_span_years,
            period_anchor=config.first_season,
        )

    @property
    def store(self) -> ObservationStore:
        if self._store is None:
            self._store = ObservationStore(config=self.config)
        return self._store

    def live_window(self) -> list[HourlyReading]:
        """Readings of the last LIVE_WINDOW_HOURS before the latest stored reading."""
        latest = self.store.latest_timestamp()
        if latest is None:
            return []
        return self.store.get_readings(start=latest - timedelta(hours=LIVE_WINDOW_HOURS))

    def partial_day(self, readings: Optional[list[HourlyReading]] = None) -> Optional[PartialDay]:
        if readings is None:
            readings = self.live_window()
        return self.estimator.estimate(readings)

    def current_season(self) -> Optional[SeasonRecord]:
        """Current season table with the in-progress day spliced in."""
        record = self.repository.load_current()
        if record is None:
            return None

        partial = self.partial_day()
        season = SeasonKey(record.start_year)
        if partial is not None and season.contains(partial.ski_day):
            rows = splice_partial_day(record.rows, partial, season_start=self.config.season_start)
        else:
            rows = record.rows
        return SeasonRecord(start_year=record.start_year, rows=rows, is_current=True)

    def all_seasons(self) -> list[SeasonRecord]:
        """Every historic season plus the current one (if any), excluded seasons omitted."""
        records = [r for r in self.repository.load_all() if not self.config.is_excluded(r.start_year)]
        current = self.current_season()
        if current is not None and not self.config.is_excluded(current.start_year):
            records = [r for r in records if r.start_year != current.start_year]
            records.append(current)
        return sorted(records, key=lambda r: r.start_year)


def _season_info(start_year: int, is_current: bool = False) -> SeasonInfo:
    key = SeasonKey(start_year)
    return SeasonInfo(
        label=key.label,
        name=key.display_name,
        start_year=start_year,
        is_current=is_current,
    )


def _optional(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return round(float(value), 2)


def create_app(
    config: Optional[StationConfig] = None,
    store: Optional[ObservationStore] = None,
    repository: Optional[SeasonTableRepository] = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        config: Station configuration. Defaults to ``StationConfig.from_env()``
        store: Observation store for the live window (opened lazily by default)
        repository: Season table repository (defaults to tables under config.data_dir)

    Returns:
        Configured FastAPI application
    """
    config = config or StationConfig.from_env()
    data = SeasonData(config, repository=repository, store=store)

    app = FastAPI(
        title="Snowdays API",
        description="Daily snowfall, season accumulation and historical comparison for one station",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with custom response."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=f"HTTP_{exc.status_code}",
                message=str(exc.detail),
            ).model_dump(),
        )

    @app.get("/", tags=["info"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Snowdays API",
            "version": API_VERSION,
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse, tags=["info"])
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(status="healthy", station_id=config.station_id, version=API_VERSION)

    @app.get("/seasons", response_model=SeasonListResponse, tags=["seasons"])
    def list_seasons():
        """Available seasons (excluded seasons never listed)."""
        seasons = [_season_info(key.start_year) for key in data.repository.available_seasons()]
        current = data.repository.load_current()
        if current is not None and not config.is_excluded(current.start_year):
            seasons = [s for s in seasons if s.start_year != current.start_year]
            seasons.append(_season_info(current.start_year, is_current=True))
        seasons.sort(key=lambda s: s.start_year)
        return SeasonListResponse(seasons=seasons, count=len(seasons))

    @app.get("/seasons/{label}", response_model=SeasonResponse, tags=["seasons"])
    def get_season(label: str):
        """Daily table of one season, e.g. /seasons/9596."""
        try:
            start_year = parse_season_label(label)
        except ValueError:
            raise HTTPException(status_code=404, detail=f"Unknown season: {label}")
        if config.is_excluded(start_year):
            raise HTTPException(status_code=404, detail=f"Season {label} is excluded")

        current = data.current_season()
        if current is not None and current.start_year == start_year:
            record = current
        else:
            try:
                record = data.repository.load_season(SeasonKey(start_year))
            except FileNotFoundError:
                raise HTTPException(status_code=404, detail=f"No data for season {label}")

        return SeasonResponse(
            season=_season_info(record.start_year, record.is_current),
            rows=[DailyRow.from_summary(row) for row in record.rows],
            total_cm=record.final_total,
        )

    @app.get("/current", response_model=SeasonResponse, tags=["seasons"])
    def get_current():
        """Current season with the in-progress ski day spliced in."""
        record = data.current_season()
        if record is None:
            raise HTTPException(status_code=404, detail="No current season data")
        return SeasonResponse(
            season=_season_info(record.start_year, is_current=True),
            rows=[DailyRow.from_summary(row) for row in record.rows],
            total_cm=record.final_total,
        )

    @app.get("/today", response_model=TodayResponse, tags=["live"])
    def get_today():
        """So-far estimate of the ski day in progress plus the last 24 hours."""
        readings = data.live_window()
        partial = data.partial_day(readings)
        hourly = [
            HourlySlotModel(**slot.to_dict()) for slot in data.estimator.hourly_series(readings)
        ]
        if partial is None:
            return TodayResponse(hourly=hourly)
        return TodayResponse(
            ski_day=partial.ski_day,
            latest_reading=partial.latest,
            hours=partial.hours,
            day=DailyRow.from_summary(partial.summary),
            hourly=hourly,
        )

    @app.get("/compare/bands", response_model=BandsResponse, tags=["compare"])
    def get_bands():
        """Per-slot min/max/mean across completed seasons, current season overlaid."""
        series = data.aligner.align(data.all_seasons())
        bands = data.aligner.bands(series)
        current_values = bands.current.values if bands.current else [None] * len(bands.frame)

        points = [
            BandPoint(
                slot=int(slot),
                label=slot_label(int(slot)),
                min=_optional(row["min"]),
                max=_optional(row["max"]),
                mean=_optional(row["mean"]),
                current=_optional(current_values[int(slot)]),
            )
            for slot, row in bands.frame.iterrows()
        ]
        return BandsResponse(
            season_count=bands.season_count,
            current_season=(
                _season_info(bands.current.start_year, is_current=True) if bands.current else None
            ),
            points=points,
        )

    @app.get("/compare/periods", response_model=PeriodsResponse, tags=["compare"])
    def get_periods():
        """Mean cumulative curves of multi-year period groups (completed seasons)."""
        series = data.aligner.align(data.all_seasons())
        periods = [
            PeriodModel(
                label=group.label,
                start_year=group.start_year,
                end_year=group.end_year,
                seasons=[SeasonKey(year).label for year in group.seasons],
                mean=[_optional(v) for v in group.mean],
                final_total_cm=_optional(group.final_total),
            )
            for group in data.aligner.periods(series)
        ]
        return PeriodsResponse(periods=periods)

    @app.get("/compare/stats", response_model=StatsResponse, tags=["compare"])
    def get_stats():
        """Best/worst/mean/median season totals."""
        series = data.aligner.align(data.all_seasons())
        stats = season_statistics(series, excluded=config.excluded_seasons)
        if stats is None:
            raise HTTPException(status_code=404, detail="No seasons available")

        current_year = next((s.start_year for s in series if s.is_current), None)
        return StatsResponse(
            best=SeasonTotalModel(
                season=_season_info(stats.best.start_year, stats.best.start_year == current_year),
                total_cm=round(stats.best.total_cm, 2),
            ),
            worst=SeasonTotalModel(
                season=_season_info(stats.worst.start_year, stats.worst.start_year == current_year),
                total_cm=round(stats.worst.total_cm, 2),
            ),
            mean_total_cm=round(stats.mean_total, 2),
            median_total_cm=round(stats.median_total, 2),
            recent_mean_cm=round(stats.recent_mean, 2),
            early_mean_cm=round(stats.early_mean, 2),
            season_count=stats.season_count,
        )

    @app.on_event("shutdown")
    def shutdown_event():
        """Close the observation store."""
        if data._store is not None:
            data._store.close()

    return app


# Default app instance for uvicorn
app = create_app()
