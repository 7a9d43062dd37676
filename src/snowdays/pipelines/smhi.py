"""SMHI open-data ingestion pipeline.

SMHI (Swedish Meteorological and Hydrological Institute) publishes hourly
station observations per parameter through its open-data API:

    {base}/parameter/{parameter}/station/{station}/period/{period}/data.json

Each parameter is fetched independently (in parallel) and the series are
joined back by hour into one hourly DataFrame. Older seasons come from the
archive CSV downloads (semicolon separated, data from line 11).
"""

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import numpy as np
import pandas as pd
import requests

from snowdays.config import StationConfig
from snowdays.errors import ReadingParseError, SourceUnavailableError
from snowdays.utils import TemporalPipeline, ValidationResult
from snowdays.utils.io import get_data_path

logger = logging.getLogger(__name__)

SMHI_BASE_URL = "https://opendata-download-metobs.smhi.se/api/version/latest"

PARAMETER_CODES = {
    "temperature": 1,
    "wind_direction": 3,
    "wind_speed": 4,
    "humidity": 6,
    "precipitation": 7,
    "visibility": 12,
}

# Period fallbacks, tried in order
LIVE_PERIODS = ("latest-day", "latest-hour")
BOOTSTRAP_PERIODS = ("latest-months", "latest-day")

# Entry fields that may carry the timestamp, in priority order
TIMESTAMP_FIELDS = ("date", "dateTime", "time", "from")

REQUIRED_PARAMETERS = ("temperature", "precipitation")

# Archive file name fragment → parameter ("wind" holds direction and speed)
ARCHIVE_FILES = {
    "opendata_1_": "temperature",
    "opendata_3_4_": "wind",
    "opendata_6_": "humidity",
    "opendata_7_": "precipitation",
    "opendata_12_": "visibility",
}
ARCHIVE_HEADER_LINES = 10
ARCHIVE_COLUMNS = 8


def _empty_series(name: str) -> pd.Series:
    return pd.Series(dtype=float, index=pd.DatetimeIndex([], tz="UTC", name="timestamp"), name=name)


def _from_epoch_ms(millis: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Normalize an SMHI timestamp to a timezone-aware UTC datetime.

    Accepts epoch milliseconds (number or digit string), compact
    ``YYYYMMDDHHmm`` strings and ISO strings. Naive values are UTC.

    Returns:
        datetime in UTC, or None if the value cannot be parsed
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return _from_epoch_ms(value)

    text = str(value).strip()
    if not text:
        return None

    if text.isdigit():
        if len(text) == 12:
            try:
                parsed = datetime.strptime(text, "%Y%m%d%H%M")
            except ValueError:
                return None
            return parsed.replace(tzinfo=timezone.utc)
        return _from_epoch_ms(int(text))

    ts = pd.to_datetime(text, utc=True, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def parse_entry(entry: dict) -> tuple[datetime, float]:
    """Extract (timestamp, value) from one SMHI data entry.

    A ``ref`` field (date only) is read as midnight UTC.

    Raises:
        ReadingParseError: If the timestamp or value cannot be parsed
    """
    raw = next((entry[key] for key in TIMESTAMP_FIELDS if entry.get(key) is not None), None)
    if raw is None and entry.get("ref") is not None:
        raw = f"{entry['ref']}T00:00:00"

    timestamp = parse_timestamp(raw)
    if timestamp is None:
        raise ReadingParseError(f"Unparseable timestamp in entry: {entry!r}")

    try:
        value = float(entry.get("value"))
    except (TypeError, ValueError) as e:
        raise ReadingParseError(f"Unparseable value in entry: {entry!r}") from e
    if not math.isfinite(value):
        raise ReadingParseError(f"Non-finite value in entry: {entry!r}")

    return timestamp, value


def parse_entries(entries: list[dict], parameter: str) -> pd.Series:
    """Parse a list of SMHI entries into a UTC-indexed float Series.

    Entries that cannot be parsed are logged and skipped.
    """
    stamps = []
    values = []
    skipped = 0
    for entry in entries or []:
        try:
            timestamp, value = parse_entry(entry)
        except ReadingParseError as e:
            skipped += 1
            logger.debug(f"{parameter}: {e}")
            continue
        stamps.append(timestamp)
        values.append(value)

    if skipped:
        logger.warning(f"{parameter}: skipped {skipped} unparseable entries")
    if not stamps:
        return _empty_series(parameter)
    return pd.Series(values, index=pd.DatetimeIndex(stamps, name="timestamp"), name=parameter)


def merge_parameters(series: dict[str, pd.Series]) -> pd.DataFrame:
    """Join per-parameter series into one hourly DataFrame.

    Timestamps are floored to the hour; within one parameter the last value
    for an hour wins. Parameters absent for an hour are NaN.

    Returns:
        DataFrame with columns timestamp + every parameter in PARAMETER_CODES,
        sorted by timestamp
    """
    columns = ["timestamp", *PARAMETER_CODES]
    parts = {}
    for name, values in series.items():
        if values is None or values.empty:
            continue
        values = values.copy()
        values.index = pd.DatetimeIndex(values.index).floor("h")
        values = values[~values.index.duplicated(keep="last")]
        parts[name] = values

    if not parts:
        return pd.DataFrame(columns=columns)

    df = pd.concat(parts, axis=1).sort_index()
    for name in PARAMETER_CODES:
        if name not in df.columns:
            df[name] = np.nan
    df.index.name = "timestamp"
    return df.reset_index()[columns]


def complete_hours(df: pd.DataFrame) -> pd.DataFrame:
    """Hours that carry both temperature and precipitation."""
    if df.empty:
        return df
    return df.dropna(subset=list(REQUIRED_PARAMETERS)).reset_index(drop=True)


@dataclass
class FetchResult:
    """Outcome of fetching every parameter.

    Attributes:
        series: Parameter name → UTC-indexed values, for parameters that succeeded
        failures: Parameter name → error, for parameters that could not be fetched
        periods: Parameter name → the period that was actually served
    """

    series: dict[str, pd.Series] = field(default_factory=dict)
    failures: dict[str, SourceUnavailableError] = field(default_factory=dict)
    periods: dict[str, str] = field(default_factory=dict)

    @property
    def missing_required(self) -> list[str]:
        return [name for name in REQUIRED_PARAMETERS if name not in self.series]

    def to_frame(self) -> pd.DataFrame:
        return merge_parameters(self.series)


class SMHIClient:
    """HTTP client for the SMHI open-data observations API.

    Example:
        >>> client = SMHIClient()
        >>> result = client.fetch_all()
        >>> df = result.to_frame()

    Attributes:
        config: Station configuration (station id, request timeout)
        session: requests Session used for all calls
        max_workers: Parallel parameter fetches
    """

    # Retry configuration for network errors
    MAX_RETRIES = 3
    RETRY_DELAY = 2.0  # seconds

    def __init__(
        self,
        config: Optional[StationConfig] = None,
        session: Optional[requests.Session] = None,
        max_workers: int = len(PARAMETER_CODES),
        base_url: str = SMHI_BASE_URL,
    ):
        self.config = config or StationConfig()
        self.session = session or requests.Session()
        self.max_workers = max_workers
        self.base_url = base_url.rstrip("/")

    def url(self, code: int, period: str) -> str:
        return (
            f"{self.base_url}/parameter/{code}/station/{self.config.station_id}"
            f"/period/{period}/data.json"
        )

    def _retry_with_backoff(self, func, *args, **kwargs) -> Any:
        """Execute a function with retry logic for network errors.

        Client errors (HTTP 4xx) are not retried: the period is simply not
        available for the parameter.

        Raises:
            requests.RequestException: If all retries fail
        """
        last_exception = None
        for attempt in range(self.MAX_RETRIES):
            try:
                return func(*args, **kwargs)
            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                if status is not None and status < 500:
                    raise
                last_exception = e
            except requests.RequestException as e:
                last_exception = e

            if attempt < self.MAX_RETRIES - 1:
                delay = self.RETRY_DELAY * (2**attempt)
                logger.warning(
                    f"Attempt {attempt + 1} failed: {last_exception}. Retrying in {delay:.1f}s..."
                )
                time.sleep(delay)
            else:
                logger.error(f"All {self.MAX_RETRIES} attempts failed: {last_exception}")
        raise last_exception

    def _get_json(self, url: str) -> dict:
        response = self.session.get(url, timeout=self.config.request_timeout)
        response.raise_for_status()
        return response.json()

    def fetch_parameter(self, code: int, period: str) -> dict:
        """Fetch the raw JSON document for one parameter and period."""
        url = self.url(code, period)
        logger.debug(f"GET {url}")
        return self._retry_with_backoff(self._get_json, url)

    def fetch_series(self, parameter: str, periods: tuple[str, ...] = LIVE_PERIODS) -> tuple[pd.Series, str]:
        """Fetch one parameter, trying each period in turn.

        Returns:
            Tuple of (parsed series, period that succeeded)

        Raises:
            SourceUnavailableError: If every period failed
        """
        code = PARAMETER_CODES[parameter]
        errors = []
        for period in periods:
            try:
                document = self.fetch_parameter(code, period)
            except (requests.RequestException, ValueError) as e:
                errors.append(f"{period}: {e}")
                logger.warning(f"Failed to fetch {parameter} (parameter {code}) for {period}: {e}")
                continue
            if not isinstance(document, dict):
                errors.append(f"{period}: expected a JSON object, got {type(document).__name__}")
                logger.warning(f"Malformed {parameter} document for {period}: {type(document).__name__}")
                continue
            return parse_entries(document.get("value") or [], parameter), period

        raise SourceUnavailableError(parameter, "; ".join(errors) or "no periods requested")

    def fetch_all(
        self,
        periods: tuple[str, ...] = LIVE_PERIODS,
        parameters: Optional[list[str]] = None,
    ) -> FetchResult:
        """Fetch every parameter in parallel.

        A parameter that cannot be fetched is recorded in ``failures``; the
        others are unaffected.
        """
        parameters = list(parameters or PARAMETER_CODES)
        result = FetchResult()

        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(parameters)))) as executor:
            futures = {executor.submit(self.fetch_series, name, periods): name for name in parameters}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    series, period = future.result()
                except SourceUnavailableError as e:
                    logger.error(f"Parameter {name} unavailable: {e}")
                    result.failures[name] = e
                    continue
                except Exception as e:
                    logger.error(f"Unexpected error fetching {name}: {e}")
                    result.failures[name] = SourceUnavailableError(name, str(e))
                    continue
                result.series[name] = series
                result.periods[name] = period
                logger.info(f"Fetched {len(series)} values for {name} ({period})")

        return result


def _read_archive_frame(path: Path) -> pd.DataFrame:
    df = pd.read_csv(
        path,
        sep=";",
        skiprows=ARCHIVE_HEADER_LINES,
        header=None,
        names=list(range(ARCHIVE_COLUMNS)),
        dtype=str,
        on_bad_lines="skip",
        skip_blank_lines=True,
        encoding_errors="replace",
    )
    timestamps = pd.to_datetime(
        df[0].str.strip() + "T" + df[1].str.strip(),
        format="%Y-%m-%dT%H:%M:%S",
        utc=True,
        errors="coerce",
    )
    df.index = pd.DatetimeIndex(timestamps, name="timestamp")
    return df[df.index.notna()]


def _archive_column(df: pd.DataFrame, column: int, name: str) -> pd.Series:
    values = pd.to_numeric(df[column], errors="coerce").dropna()
    values.name = name
    return values.astype(float)


def parse_archive_csv(path: Path, parameter: str, value_column: int = 2) -> pd.Series:
    """Parse one SMHI archive CSV (``date;time;value;quality``) into a UTC series.

    Lines with an unparseable date, time or value are skipped.
    """
    df = _read_archive_frame(path)
    series = _archive_column(df, value_column, parameter)
    logger.info(f"Parsed {len(series)} {parameter} values from {path.name}")
    return series


def parse_wind_csv(path: Path) -> dict[str, pd.Series]:
    """Parse the combined wind archive (direction in column 3, speed in column 5)."""
    df = _read_archive_frame(path)
    result = {
        "wind_direction": _archive_column(df, 2, "wind_direction"),
        "wind_speed": _archive_column(df, 4, "wind_speed"),
    }
    logger.info(f"Parsed {len(result['wind_speed'])} wind values from {path.name}")
    return result


def load_archive_directory(directory: Path) -> pd.DataFrame:
    """Parse every recognized archive CSV in a directory and merge by hour.

    Several files for the same parameter are concatenated (later files win
    on overlapping hours).

    Returns:
        Hourly DataFrame as produced by ``merge_parameters``
    """
    directory = Path(directory)
    collected: dict[str, list[pd.Series]] = {}

    for path in sorted(directory.glob("*.csv")):
        kind = next((name for fragment, name in ARCHIVE_FILES.items() if fragment in path.name), None)
        if kind is None:
            logger.debug(f"Ignoring unrecognized archive file {path.name}")
            continue
        if kind == "wind":
            for name, series in parse_wind_csv(path).items():
                collected.setdefault(name, []).append(series)
        else:
            collected.setdefault(kind, []).append(parse_archive_csv(path, kind))

    merged = {name: pd.concat(parts) for name, parts in collected.items()}
    df = merge_parameters(merged)
    logger.info(f"Loaded {len(df)} archive hours from {directory}")
    return df


class SMHIPipeline(TemporalPipeline):
    """SMHI observation pipeline.

    Fetches every parameter for the station, merges them by hour and saves a
    raw snapshot before processing and validation.

    Output schema:
        - timestamp: datetime64[UTC] - End of the observation hour
        - temperature: float - Air temperature (C)
        - precipitation: float - Precipitation over the hour (mm)
        - wind_direction, wind_speed, humidity, visibility: float

    Example:
        >>> pipeline = SMHIPipeline()
        >>> df, validation = pipeline.run("2025-11-01", periods=BOOTSTRAP_PERIODS)
        >>> print(validation)
    """

    # Validation thresholds
    MAX_MISSING_PCT = 30.0
    MIN_ROWS = 1
    TEMP_RANGE = (-60.0, 45.0)
    MAX_HOURLY_PRECIP_MM = 100.0

    def __init__(
        self,
        config: Optional[StationConfig] = None,
        client: Optional[SMHIClient] = None,
        raw_dir: Optional[Path] = None,
    ):
        self.config = config or StationConfig()
        self.client = client or SMHIClient(self.config)
        self.raw_dir = raw_dir or get_data_path("raw", self.config)
        self.last_fetch: Optional[FetchResult] = None

    def download(
        self,
        start_date: str,
        end_date: str | None = None,
        periods: tuple[str, ...] = LIVE_PERIODS,
        **kwargs,
    ) -> Path:
        """Fetch all parameters, keep hours in [start_date, end_date] and save them.

        Returns:
            Path to the saved hourly CSV snapshot
        """
        result = self.client.fetch_all(periods=periods)
        self.last_fetch = result
        if result.failures:
            logger.warning(f"Unavailable parameters: {sorted(result.failures)}")

        df = result.to_frame()
        if not df.empty:
            start = pd.Timestamp(start_date, tz="UTC")
            mask = df["timestamp"] >= start
            if end_date is not None:
                mask &= df["timestamp"] < pd.Timestamp(end_date, tz="UTC") + pd.Timedelta(days=1)
            df = df[mask]

        path = self.raw_dir / f"smhi_{self.config.station_id}_{start_date}_{end_date or 'latest'}.csv"
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path, index=False)
        logger.info(f"Saved {len(df)} hourly records to {path}")
        return path

    def process(self, raw_path: Path | list[Path]) -> pd.DataFrame:
        """Load saved snapshot(s) into one hourly DataFrame (last write wins per hour)."""
        paths = raw_path if isinstance(raw_path, list) else [raw_path]
        frames = [pd.read_csv(path) for path in paths]
        frames = [df for df in frames if not df.empty]
        if not frames:
            return pd.DataFrame(columns=["timestamp", *PARAMETER_CODES])

        df = pd.concat(frames, ignore_index=True)
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
        df = df.dropna(subset=["timestamp"])
        df = df.drop_duplicates(subset=["timestamp"], keep="last").sort_values("timestamp")
        return df.reset_index(drop=True)

    def validate(self, data: pd.DataFrame) -> ValidationResult:
        """Check row count, missing required values and physical ranges."""
        issues = []
        total_rows = len(data)

        if total_rows < self.MIN_ROWS:
            return ValidationResult(
                valid=False,
                hour_count=total_rows,
                missing_required_pct=100.0,
                issues=["No hourly records"],
            )

        required = [col for col in REQUIRED_PARAMETERS if col in data.columns]
        for col in REQUIRED_PARAMETERS:
            if col not in data.columns:
                issues.append(f"Missing column: {col}")

        if required:
            missing_pct = float(data[required].isna().mean().mean() * 100)
        else:
            missing_pct = 100.0
        if missing_pct > self.MAX_MISSING_PCT:
            issues.append(f"High missing rate: {missing_pct:.1f}%")

        outliers = 0
        if "temperature" in data.columns:
            low, high = self.TEMP_RANGE
            outliers += int(((data["temperature"] < low) | (data["temperature"] > high)).sum())
        if "precipitation" in data.columns:
            precip = data["precipitation"]
            outliers += int(((precip < 0) | (precip > self.MAX_HOURLY_PRECIP_MM)).sum())
        if outliers:
            issues.append(f"{outliers} values outside physical ranges")

        duplicates = int(data["timestamp"].duplicated().sum()) if "timestamp" in data.columns else 0
        if duplicates:
            issues.append(f"{duplicates} duplicate timestamps")

        stats = {
            "first": data["timestamp"].min() if "timestamp" in data.columns else None,
            "last": data["timestamp"].max() if "timestamp" in data.columns else None,
            "complete_hours": len(complete_hours(data)) if len(required) == 2 else 0,
        }
        if self.last_fetch is not None:
            stats["unavailable"] = sorted(self.last_fetch.failures)

        return ValidationResult(
            valid=not issues,
            hour_count=total_rows,
            missing_required_pct=missing_pct,
            out_of_range_count=outliers,
            duplicate_count=duplicates,
            issues=issues,
            stats=stats,
        )

