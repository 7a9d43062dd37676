"""Tests for base pipeline classes."""

from pathlib import Path

import pandas as pd
import pytest

from snowdays.utils.base import TemporalPipeline, ValidationResult


class TestValidationResult:
    """Tests for ValidationResult dataclass."""

    def test_create_valid_result(self):
        """Should create a valid result."""
        result = ValidationResult(
            valid=True,
            hour_count=48,
            missing_required_pct=5.0,
            out_of_range_count=1,
        )
        assert result.valid is True
        assert result.hour_count == 48
        assert result.duplicate_count == 0
        assert result.issues == []
        assert result.stats == {}
        assert result.summary == "no issues"

    def test_str_valid(self):
        """Should format valid result as string."""
        s = str(ValidationResult(valid=True, hour_count=48, missing_required_pct=5.0))
        assert "VALID" in s
        assert "hours=48" in s
        assert "5.0%" in s

    def test_str_invalid(self):
        """Should format invalid result as string."""
        s = str(ValidationResult(valid=False, hour_count=0, missing_required_pct=100.0, duplicate_count=2))
        assert "INVALID" in s
        assert "duplicates=2" in s

    def test_summary_joins_issues(self):
        result = ValidationResult(False, 2, 0.0, issues=["a", "b"])
        assert result.summary == "a; b"


class ConcreteTemporalPipeline(TemporalPipeline):
    """Concrete implementation for testing."""

    def __init__(self, should_fail_validation: bool = False):
        self.should_fail_validation = should_fail_validation
        self.download_kwargs = None

    def download(self, start_date: str, end_date: str | None = None, **kwargs) -> Path:
        self.download_kwargs = kwargs
        return Path("/tmp/smhi_test.csv")

    def process(self, raw_path: Path) -> pd.DataFrame:
        return pd.DataFrame({"temperature": [-1.0, -2.0, -3.0]})

    def validate(self, data: pd.DataFrame) -> ValidationResult:
        if self.should_fail_validation:
            return ValidationResult(
                valid=False,
                hour_count=len(data),
                missing_required_pct=50.0,
                issues=["Validation failed"],
            )
        return ValidationResult(valid=True, hour_count=len(data), missing_required_pct=0.0)


class TestTemporalPipeline:
    """Tests for TemporalPipeline base class."""

    def test_run_success(self):
        """Should run full pipeline successfully."""
        df, validation = ConcreteTemporalPipeline().run("2024-11-01")
        assert len(df) == 3
        assert validation.valid is True

    def test_run_passes_kwargs_to_download(self):
        pipeline = ConcreteTemporalPipeline()
        pipeline.run("2024-11-01", periods=("latest-day",))
        assert pipeline.download_kwargs == {"periods": ("latest-day",)}

    def test_run_validation_failure_raises(self):
        """Should raise on validation failure when raise_on_invalid=True."""
        pipeline = ConcreteTemporalPipeline(should_fail_validation=True)
        with pytest.raises(ValueError, match="Data validation failed: Validation failed"):
            pipeline.run("2024-11-01", "2024-11-30")

    def test_run_validation_failure_no_raise(self):
        """Should return invalid result when raise_on_invalid=False."""
        pipeline = ConcreteTemporalPipeline(should_fail_validation=True)
        df, validation = pipeline.run("2024-11-01", raise_on_invalid=False)
        assert len(df) == 3
        assert validation.valid is False

    def test_abstract(self):
        with pytest.raises(TypeError):
            TemporalPipeline()
