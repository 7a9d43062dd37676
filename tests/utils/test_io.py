"""Tests for I/O utilities."""

import pytest

from snowdays.config import StationConfig
from snowdays.utils.io import VALID_STAGES, get_data_path


class TestGetDataPath:
    """Tests for get_data_path function."""

    def test_stage_under_data_dir(self, tmp_path):
        """Should return data_dir/stage."""
        config = StationConfig(data_dir=tmp_path)
        assert get_data_path("historic", config) == tmp_path / "historic"

    def test_all_stages(self, tmp_path):
        """Should accept every valid stage."""
        config = StationConfig(data_dir=tmp_path)
        for stage in VALID_STAGES:
            assert get_data_path(stage, config).name == stage

    def test_creates_directory(self, tmp_path):
        """Should create directory if it doesn't exist."""
        config = StationConfig(data_dir=tmp_path / "new")
        path = get_data_path("cache", config)
        assert path.exists()
        assert path.is_dir()

    def test_invalid_stage(self):
        """Should raise ValueError for invalid stage."""
        with pytest.raises(ValueError, match="Invalid stage"):
            get_data_path("processed")

    def test_default_stage(self, tmp_path):
        """Should default to raw stage."""
        assert get_data_path(config=StationConfig(data_dir=tmp_path)).name == "raw"
