"""Batch jobs that keep the season tables up to date.

Run hourly via cron to keep the current season fresh:

    # Every hour at :15 (after SMHI publishes the previous hour)
    15 * * * * python -m snowdays.pipelines.refresh

Usage:
    python -m snowdays.pipelines.refresh                       # Update current season
    python -m snowdays.pipelines.refresh --bootstrap           # Refill the season from latest-months
    python -m snowdays.pipelines.refresh --historic data/raw   # Rebuild per-season archive tables
    python -m snowdays.pipelines.refresh --status              # Show store status
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

from snowdays.config import StationConfig
from snowdays.errors import NoReadingsError
from snowdays.features.accumulation import accumulate
from snowdays.features.clock import LocalDayClock
from snowdays.features.daily import DailyAggregator, frame_to_readings
from snowdays.features.season import SeasonKey
from snowdays.pipelines.smhi import (
    BOOTSTRAP_PERIODS,
    LIVE_PERIODS,
    SMHIClient,
    SMHIPipeline,
    complete_hours,
    load_archive_directory,
)
from snowdays.records import DailySummary
from snowdays.storage.database import ObservationStore
from snowdays.storage.tables import HOURLY_TABLE_NAME, SeasonTableRepository, write_hourly_table

logger = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    """Result of a refresh operation."""

    readings_fetched: int
    readings_stored: int
    days_written: int
    duration_ms: int
    failed_parameters: list[str] = field(default_factory=list)
    paths: list[Path] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """Whether some parameters could not be fetched."""
        return bool(self.failed_parameters)

    def __str__(self) -> str:
        failed = f", unavailable: {', '.join(self.failed_parameters)}" if self.failed_parameters else ""
        return (
            f"Refresh complete: {self.readings_fetched} hours fetched, "
            f"{self.readings_stored} stored, {self.days_written} days written"
            f"{failed} ({self.duration_ms}ms)"
        )


def season_cutoff(today: date, season_start: tuple[int, int] = (11, 1)) -> date:
    """Start date of the season that ``today`` belongs to (or most recently began)."""
    month, day = season_start
    year = today.year if (today.month, today.day) >= season_start else today.year - 1
    return date(year, month, day)


def recompute_current_season(
    config: StationConfig,
    store: ObservationStore,
    cutoff: date,
) -> list[DailySummary]:
    """Recompute the current season from every stored reading and write it.

    Raises:
        NoReadingsError: If the store holds no usable readings for the season
    """
    clock = LocalDayClock.from_config(config)
    readings = store.get_readings(start=clock.ski_day_start(cutoff))
    by_season = DailyAggregator(clock=clock).aggregate(readings, start_date=cutoff)

    season = SeasonKey(cutoff.year)
    rows = by_season.get(season, [])
    if not rows:
        raise NoReadingsError(f"No ski days found for season {season.display_name}")

    rows = accumulate(rows, season_start=config.season_start, cutoff=cutoff)
    repository = SeasonTableRepository.from_config(config)
    repository.write_current(rows)
    write_hourly_table(readings, repository.current_path.parent / HOURLY_TABLE_NAME)
    return rows


def _ingest(
    config: StationConfig,
    store: ObservationStore,
    client: Optional[SMHIClient],
    periods: tuple[str, ...],
    start_date: date,
    cutoff: date,
    source: str,
    clear: bool = False,
) -> RefreshResult:
    start_time = time.time()
    pipeline = SMHIPipeline(config=config, client=client)

    try:
        df, validation = pipeline.run(start_date.isoformat(), periods=periods, raise_on_invalid=False)
        logger.info(str(validation))
        failed = sorted(pipeline.last_fetch.failures) if pipeline.last_fetch else []

        readings = frame_to_readings(complete_hours(df))
        if clear and readings:
            store.clear()
        stored = store.upsert_readings(readings)

        rows = recompute_current_season(config, store, cutoff)
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        store.log_fetch(source, "error", 0, duration_ms, str(e))
        raise

    duration_ms = int((time.time() - start_time) * 1000)
    status = "partial" if failed else "success"
    store.log_fetch(source, status, stored, duration_ms, ", ".join(failed) or None)

    result = RefreshResult(
        readings_fetched=len(df),
        readings_stored=stored,
        days_written=len(rows),
        duration_ms=duration_ms,
        failed_parameters=failed,
        paths=[SeasonTableRepository.from_config(config).current_path],
    )
    logger.info(str(result))
    return result


def update_current_season(
    config: Optional[StationConfig] = None,
    store: Optional[ObservationStore] = None,
    client: Optional[SMHIClient] = None,
    today: Optional[date] = None,
) -> RefreshResult:
    """Fetch the live window, store it and recompute the current season.

    Args:
        config: Station configuration. Defaults to ``StationConfig.from_env()``
        store: Observation store. Defaults to the store under ``config.data_dir``
        client: SMHI client
        today: Date used to pick the current season (defaults to today, UTC)

    Returns:
        RefreshResult

    Raises:
        NoReadingsError: If no usable readings exist for the current season
    """
    config = config or StationConfig.from_env()
    store = store or ObservationStore(config=config)
    today = today or datetime.now(timezone.utc).date()
    cutoff = season_cutoff(today, config.season_start)
    logger.info(f"Updating season {SeasonKey(cutoff.year).display_name}")
    return _ingest(config, store, client, LIVE_PERIODS, cutoff, cutoff, source="smhi-live")


def bootstrap(
    config: Optional[StationConfig] = None,
    store: Optional[ObservationStore] = None,
    client: Optional[SMHIClient] = None,
    start_date: Optional[date] = None,
    today: Optional[date] = None,
) -> RefreshResult:
    """Refill the observation store from the long period and recompute the season.

    Existing readings are cleared first. Readings before ``start_date``
    (default: the current season start) are dropped.
    """
    config = config or StationConfig.from_env()
    store = store or ObservationStore(config=config)
    today = today or datetime.now(timezone.utc).date()
    cutoff = season_cutoff(today, config.season_start)
    start_date = start_date or cutoff
    logger.info(f"Bootstrapping from {start_date} (season cutoff {cutoff})")
    return _ingest(
        config, store, client, BOOTSTRAP_PERIODS, start_date, cutoff, source="smhi-bootstrap", clear=True
    )


def rebuild_historic(
    config: Optional[StationConfig] = None,
    archive_dir: Optional[Path] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Path]:
    """Aggregate SMHI archive CSVs into one daily table per season.

    Args:
        config: Station configuration
        archive_dir: Directory holding the archive downloads (default data/raw)
        start: Optional first ski day to include
        end: Optional last ski day to include

    Returns:
        Paths of the season tables written

    Raises:
        NoReadingsError: If the archive holds no usable readings
    """
    config = config or StationConfig.from_env()
    archive_dir = archive_dir or config.data_dir / "raw"

    df = complete_hours(load_archive_directory(archive_dir))
    readings = frame_to_readings(df)
    by_season = DailyAggregator(config=config).aggregate(readings, start_date=start, end_date=end)

    repository = SeasonTableRepository.from_config(config)
    paths = []
    for season, rows in by_season.items():
        if config.is_excluded(season.start_year):
            logger.info(f"Writing excluded season {season.label} (hidden from listings)")
        paths.append(repository.write_season(season, rows))

    logger.info(f"Rebuilt {len(paths)} historic seasons from {archive_dir}")
    return paths


def get_status(config: StationConfig, store: ObservationStore) -> dict:
    """Collect store and table status."""
    repository = SeasonTableRepository.from_config(config)
    current = repository.load_current()
    return {
        **store.get_stats(),
        "station_id": config.station_id,
        "historic_seasons": [s.label for s in repository.available_seasons()],
        "current_last_date": current.last_date if current else None,
        "current_total_cm": current.final_total if current else None,
        "recent_fetches": store.recent_fetches(limit=5),
    }


def print_status(status: dict) -> None:
    """Print store status in human-readable format."""
    print()
    print("=" * 60)
    print(f"Snowdays Status (station {status['station_id']})")
    print("=" * 60)
    print(f"Database: {status['db_path']}")
    print(f"Stored hourly readings: {status['reading_count']}")
    if status["latest_timestamp"]:
        print(f"Latest reading: {status['latest_timestamp'].isoformat()}")
    print(f"Historic seasons: {len(status['historic_seasons'])}")
    if status["current_last_date"]:
        print(
            f"Current season: through {status['current_last_date']}, "
            f"{status['current_total_cm']:.2f} cm"
        )

    print()
    print("Recent fetches:")
    print("-" * 60)
    for entry in status["recent_fetches"]:
        error = f" ({entry['error_message']})" if entry["error_message"] else ""
        print(
            f"  {entry['timestamp']:%Y-%m-%d %H:%M} {entry['source']:<16} "
            f"{entry['status']:<8} {entry['records_added'] or 0:>5} rows{error}"
        )
    print("=" * 60)


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point for the refresh jobs."""
    parser = argparse.ArgumentParser(
        description="Update snowdays season tables from SMHI observations",
        epilog="""
Examples:
  python -m snowdays.pipelines.refresh                        # Update current season
  python -m snowdays.pipelines.refresh --bootstrap            # Refill current season
  python -m snowdays.pipelines.refresh --historic data/raw    # Rebuild archive seasons
  python -m snowdays.pipelines.refresh --status               # Show status
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--bootstrap",
        action="store_true",
        help="Clear the store and refill it from the latest-months period",
    )
    parser.add_argument(
        "--historic",
        type=Path,
        metavar="DIR",
        default=None,
        help="Rebuild per-season tables from SMHI archive CSVs in DIR",
    )
    parser.add_argument(
        "--start",
        type=date.fromisoformat,
        default=None,
        help="First date to include (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--end",
        type=date.fromisoformat,
        default=None,
        help="Last date to include (YYYY-MM-DD, --historic only)",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show store and table status",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors",
    )

    args = parser.parse_args(argv)

    # Configure logging
    if args.quiet:
        level = logging.ERROR
    elif args.verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config = StationConfig.from_env()

    if args.historic is not None:
        try:
            paths = rebuild_historic(config, args.historic, start=args.start, end=args.end)
        except (NoReadingsError, OSError) as e:
            logger.error(f"Historic rebuild failed: {e}")
            return 1
        return 0 if paths else 1

    store = ObservationStore(config=config)
    try:
        if args.status:
            print_status(get_status(config, store))
            return 0

        if args.bootstrap:
            bootstrap(config, store, start_date=args.start)
        else:
            update_current_season(config, store)
        return 0

    except Exception as e:
        logger.error(f"Refresh failed: {e}")
        return 1

    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
