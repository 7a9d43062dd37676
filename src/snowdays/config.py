"""Station and season configuration.

The pipeline is built for one fixed station and timezone. Defaults describe
SMHI station 124300 in Central European Time; any field can be overridden
from the environment via ``StationConfig.from_env()``.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root is 3 levels up from this file
_PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_STATION_ID = 124300

# 2017-18 season had broken measurement equipment
DEFAULT_EXCLUDED_SEASONS = frozenset({2017})


@dataclass(frozen=True)
class StationConfig:
    """Configuration for the station being processed.

    Attributes:
        station_id: SMHI station identifier
        standard_offset_hours: UTC offset outside daylight saving time
        dst_offset_hours: Extra offset applied inside the EU daylight-saving window
        day_start_hour: Local hour at which a ski day starts
        season_start: (month, day) on which season accumulation resets
        excluded_seasons: Season start years with known-bad instrumentation
        first_season: Earliest season start year with archive data
        period_span_years: Width of the multi-year comparison buckets
        request_timeout: HTTP timeout in seconds for the data source
        data_dir: Root directory for persisted tables and the observation store
    """

    station_id: int = DEFAULT_STATION_ID
    standard_offset_hours: int = 1
    dst_offset_hours: int = 1
    day_start_hour: int = 8
    season_start: tuple[int, int] = (11, 1)
    excluded_seasons: frozenset[int] = field(default=DEFAULT_EXCLUDED_SEASONS)
    first_season: int = 1995
    period_span_years: int = 5
    request_timeout: float = 30.0
    data_dir: Path = _PROJECT_ROOT / "data"

    def is_excluded(self, start_year: int) -> bool:
        return start_year in self.excluded_seasons

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "StationConfig":
        """Build a configuration from SNOWDAYS_* environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            StationConfig with overrides applied

        Raises:
            ValueError: If a variable is set but cannot be parsed
        """
        env = os.environ if environ is None else environ
        overrides = {}

        if env.get("SNOWDAYS_STATION_ID"):
            overrides["station_id"] = int(env["SNOWDAYS_STATION_ID"])
        if env.get("SNOWDAYS_DATA_DIR"):
            overrides["data_dir"] = Path(env["SNOWDAYS_DATA_DIR"])
        if env.get("SNOWDAYS_TIMEOUT"):
            overrides["request_timeout"] = float(env["SNOWDAYS_TIMEOUT"])
        if "SNOWDAYS_EXCLUDED_SEASONS" in env:
            raw = env["SNOWDAYS_EXCLUDED_SEASONS"]
            overrides["excluded_seasons"] = frozenset(
                int(part) for part in raw.split(",") if part.strip()
            )

        if overrides:
            logger.debug(f"Configuration overrides from environment: {sorted(overrides)}")
        return cls(**overrides)
