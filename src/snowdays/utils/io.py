"""I/O utilities for data paths."""

from pathlib import Path

from snowdays.config import StationConfig

VALID_STAGES = {"raw", "historic", "current", "cache"}


def get_data_path(stage: str = "raw", config: StationConfig | None = None) -> Path:
    """Get standardized data path for a storage stage.

    Args:
        stage: One of 'raw', 'historic', 'current', 'cache'
        config: Station configuration; defaults to ``StationConfig()``

    Returns:
        Path to the data directory (creates if doesn't exist)

    Example:
        >>> get_data_path("historic")
        PosixPath('.../snowdays/data/historic')
    """
    if stage not in VALID_STAGES:
        raise ValueError(f"Invalid stage: {stage}. Must be one of {VALID_STAGES}")

    config = config or StationConfig()
    path = config.data_dir / stage
    path.mkdir(parents=True, exist_ok=True)
    return path
