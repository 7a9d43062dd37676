"""DuckDB observation store for snowdays.

Keeps every hourly reading fetched for the current season so the season can
be recomputed from scratch on each refresh. Timestamps are stored as naive
UTC values.
"""

import logging
import time
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import duckdb

from snowdays.config import StationConfig
from snowdays.features.clock import ensure_utc
from snowdays.features.daily import deduplicate
from snowdays.records import HourlyReading
from snowdays.utils.io import get_data_path

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "observations.duckdb"

READING_FIELDS = [
    "temperature",
    "precipitation",
    "wind_speed",
    "humidity",
    "wind_direction",
    "visibility",
]

# SQL schema - DuckDB uses sequences for auto-increment
SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS seq_fetch_log_id START 1;

-- Hourly observations, one row per UTC hour
CREATE TABLE IF NOT EXISTS hourly_readings (
    timestamp TIMESTAMP PRIMARY KEY,
    temperature DOUBLE,
    precipitation DOUBLE,
    wind_speed DOUBLE,
    humidity DOUBLE,
    wind_direction DOUBLE,
    visibility DOUBLE,
    fetch_time TIMESTAMP NOT NULL
);

-- Fetch log for debugging/monitoring
CREATE TABLE IF NOT EXISTS fetch_log (
    id INTEGER DEFAULT nextval('seq_fetch_log_id') PRIMARY KEY,
    source VARCHAR NOT NULL,
    timestamp TIMESTAMP NOT NULL,
    status VARCHAR NOT NULL,
    records_added INTEGER,
    duration_ms INTEGER,
    error_message VARCHAR
);

CREATE INDEX IF NOT EXISTS idx_fetch_log_time ON fetch_log(timestamp);
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_db_time(ts: datetime) -> datetime:
    return ensure_utc(ts).replace(tzinfo=None)


def _from_db_time(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc)


class ObservationStore:
    """DuckDB store of hourly readings.

    Writing a timestamp that already exists overwrites it (last write wins).

    Example:
        >>> store = ObservationStore()
        >>> store.upsert_readings(readings)
        >>> store.get_readings(start=season_start)
        [HourlyReading(...), ...]
    """

    def __init__(self, db_path: Optional[Path] = None, config: Optional[StationConfig] = None):
        """Initialize database connection.

        Args:
            db_path: Path to DuckDB file, or ":memory:". Creates if doesn't exist.
            config: Station configuration used for the default location
        """
        if db_path is None:
            db_path = get_data_path("cache", config) / DEFAULT_DB_NAME
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else db_path
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._init_schema()

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get database connection (lazy initialization with retry)."""
        if self._conn is None:
            self._conn = self._connect_with_retry()
        return self._conn

    def _connect_with_retry(self, max_retries: int = 3) -> duckdb.DuckDBPyConnection:
        """Connect to database with retry logic for lock handling."""
        last_error = None
        for attempt in range(max_retries):
            try:
                return duckdb.connect(str(self.db_path))
            except duckdb.IOException as e:
                last_error = e
                if "lock" in str(e).lower() and attempt < max_retries - 1:
                    wait_time = 0.5 * (2 ** attempt)
                    logger.warning(f"Database locked, retrying in {wait_time}s...")
                    time.sleep(wait_time)
                else:
                    raise
        raise last_error

    def _init_schema(self) -> None:
        for statement in SCHEMA_SQL.split(";"):
            statement = statement.strip()
            if statement:
                self.conn.execute(statement)
        logger.debug(f"Observation store initialized at {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # -------------------------------------------------------------------------
    # Readings
    # -------------------------------------------------------------------------

    def upsert_readings(self, readings: Iterable[HourlyReading]) -> int:
        """Insert or overwrite readings keyed by timestamp.

        Returns:
            Number of rows written
        """
        fetch_time = _utcnow()
        rows = [
            [_to_db_time(r.timestamp), *(getattr(r, name) for name in READING_FIELDS), fetch_time]
            for r in deduplicate(readings)
        ]
        if not rows:
            return 0

        self.conn.executemany(
            """
            INSERT INTO hourly_readings
            (timestamp, temperature, precipitation, wind_speed, humidity,
             wind_direction, visibility, fetch_time)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (timestamp)
            DO UPDATE SET
                temperature = EXCLUDED.temperature,
                precipitation = EXCLUDED.precipitation,
                wind_speed = EXCLUDED.wind_speed,
                humidity = EXCLUDED.humidity,
                wind_direction = EXCLUDED.wind_direction,
                visibility = EXCLUDED.visibility,
                fetch_time = EXCLUDED.fetch_time
            """,
            rows,
        )
        logger.info(f"Stored {len(rows)} hourly readings")
        return len(rows)

    def get_readings(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[HourlyReading]:
        """Readings with start <= timestamp <= end, ordered by time."""
        clauses = []
        params = []
        if start is not None:
            clauses.append("timestamp >= ?")
            params.append(_to_db_time(start))
        if end is not None:
            clauses.append("timestamp <= ?")
            params.append(_to_db_time(end))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        rows = self.conn.execute(
            f"""
            SELECT timestamp, {', '.join(READING_FIELDS)}
            FROM hourly_readings
            {where}
            ORDER BY timestamp
            """,
            params,
        ).fetchall()

        return [
            HourlyReading(_from_db_time(row[0]), **dict(zip(READING_FIELDS, row[1:])))
            for row in rows
        ]

    def latest_timestamp(self) -> Optional[datetime]:
        """Most recent reading timestamp in the store."""
        result = self.conn.execute("SELECT MAX(timestamp) FROM hourly_readings").fetchone()
        return _from_db_time(result[0]) if result and result[0] else None

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM hourly_readings").fetchone()[0]

    def clear(self) -> int:
        """Delete every stored reading.

        Returns:
            Number of rows deleted
        """
        count = self.count()
        self.conn.execute("DELETE FROM hourly_readings")
        logger.info(f"Cleared {count} hourly readings")
        return count

    # -------------------------------------------------------------------------
    # Fetch log
    # -------------------------------------------------------------------------

    def log_fetch(
        self,
        source: str,
        status: str,
        records_added: int,
        duration_ms: int,
        error_message: Optional[str] = None,
    ) -> None:
        """Log a data fetch operation."""
        self.conn.execute(
            """
            INSERT INTO fetch_log (source, timestamp, status, records_added, duration_ms, error_message)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [source, _utcnow(), status, records_added, duration_ms, error_message],
        )

    def recent_fetches(self, limit: int = 10) -> list[dict]:
        """Most recent fetch log entries, newest first."""
        rows = self.conn.execute(
            """
            SELECT source, timestamp, status, records_added, duration_ms, error_message
            FROM fetch_log
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
            """,
            [limit],
        ).fetchall()
        keys = ["source", "timestamp", "status", "records_added", "duration_ms", "error_message"]
        return [dict(zip(keys, row)) for row in rows]

    def get_stats(self) -> dict:
        """Get store statistics."""
        latest = self.latest_timestamp()
        return {
            "reading_count": self.count(),
            "latest_timestamp": latest,
            "db_path": str(self.db_path),
        }
