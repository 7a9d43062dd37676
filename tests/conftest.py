"""Shared pytest fixtures for snowdays tests.

Test Tiers:
- unit: Fast tests with fixtures, no network (default)
- integration: Tests that combine several layers on temporary files
- live: Real SMHI API tests, slow, requires network

Run live tests with: pytest -m live --run-live
"""

from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from snowdays.config import StationConfig
from snowdays.records import RAIN, DailySummary, HourlyReading, Snowfall


def pytest_addoption(parser):
    """Add command line options for test configuration."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run live API tests (slow, requires network)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests using fixtures")
    config.addinivalue_line("markers", "integration: tests combining several layers")
    config.addinivalue_line("markers", "live: real API tests (slow, requires network)")


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is specified."""
    if config.getoption("--run-live"):
        return

    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


def utc(*args) -> datetime:
    """Build a UTC datetime: utc(2025, 1, 15, 7)."""
    return datetime(*args, tzinfo=timezone.utc)


def reading(ts: datetime, temperature=-5.0, precipitation=0.0, **kwargs) -> HourlyReading:
    return HourlyReading(timestamp=ts, temperature=temperature, precipitation=precipitation, **kwargs)


def snow_day(day: date, amount: float, slr: float = 12.0, **kwargs) -> DailySummary:
    return DailySummary(date=day, outcome=Snowfall(amount, slr if amount > 0 else 0.0), **kwargs)


def rain_day(day: date, **kwargs) -> DailySummary:
    return DailySummary(date=day, outcome=RAIN, **kwargs)


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def tmp_data_dir(tmp_path) -> Path:
    """Create a temporary data directory for testing."""
    data_dir = tmp_path / "data"
    for stage in ["raw", "historic", "current", "cache"]:
        (data_dir / stage).mkdir(parents=True)
    return data_dir


@pytest.fixture
def config(tmp_data_dir) -> StationConfig:
    """Default station configuration writing to a temporary directory."""
    return StationConfig(data_dir=tmp_data_dir)


@pytest.fixture
def january_readings() -> list[HourlyReading]:
    """Two full ski days (Jan 14 and Jan 15, 2025) of hourly snow readings.

    January is outside DST, so local = UTC+1 and ski day N runs
    07:00 UTC on N (exclusive) to 07:00 UTC on N+1 (inclusive).
    """
    start = utc(2025, 1, 14, 8)
    readings = []
    for hour in range(48):
        ts = start + timedelta(hours=hour)
        readings.append(reading(ts, temperature=-5.0, precipitation=0.5, wind_speed=0.0, humidity=90.0))
    return readings
