"""Base classes for ingestion pipelines."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd


@dataclass
class ValidationResult:
    """Outcome of the quality checks on a batch of hourly observations.

    Attributes:
        valid: True when no check raised an issue
        hour_count: Number of hourly rows checked
        missing_required_pct: Share of temperature/precipitation cells that
            are empty (0-100)
        out_of_range_count: Values outside the station's physical ranges
        duplicate_count: Rows sharing a timestamp with an earlier row
        issues: Human-readable description of each failed check
        stats: Extra facts about the batch (first/last hour, ...)
    """

    valid: bool
    hour_count: int
    missing_required_pct: float
    out_of_range_count: int = 0
    duplicate_count: int = 0
    issues: list[str] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def summary(self) -> str:
        return "; ".join(self.issues) if self.issues else "no issues"

    def __str__(self) -> str:
        status = "VALID" if self.valid else "INVALID"
        return (
            f"ValidationResult({status}, hours={self.hour_count}, "
            f"missing={self.missing_required_pct:.1f}%, "
            f"out_of_range={self.out_of_range_count}, "
            f"duplicates={self.duplicate_count})"
        )


class TemporalPipeline(ABC):
    """Base class for hourly observation pipelines.

    Subclasses fetch raw data for a date range, turn it into one row per
    hour and check the result before anything is stored.
    """

    @abstractmethod
    def download(self, start_date: str, end_date: str | None = None, **kwargs) -> Path | list[Path]:
        """Fetch raw observations and save them under the raw data stage.

        Returns:
            Path to the saved file, or a list of Paths for archive directories.
        """

    @abstractmethod
    def process(self, raw_path: Path | list[Path]) -> pd.DataFrame:
        """Turn raw files into an hourly DataFrame keyed by UTC timestamp."""

    @abstractmethod
    def validate(self, data: pd.DataFrame) -> ValidationResult:
        ...

    def run(
        self,
        start_date: str,
        end_date: str | None = None,
        raise_on_invalid: bool = True,
        **kwargs
    ) -> tuple[pd.DataFrame, ValidationResult]:
        """download → process → validate.

        Args:
            start_date: First day, YYYY-MM-DD
            end_date: Optional last day (inclusive), YYYY-MM-DD
            raise_on_invalid: Raise ValueError when a check fails
            **kwargs: Forwarded to download() (e.g. ``periods``)

        Raises:
            ValueError: If raise_on_invalid=True and validation fails
        """
        raw_path = self.download(start_date, end_date, **kwargs)
        hourly = self.process(raw_path)
        validation = self.validate(hourly)

        if raise_on_invalid and not validation.valid:
            raise ValueError(f"Data validation failed: {validation.summary} ({validation})")

        return hourly, validation
