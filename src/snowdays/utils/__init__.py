"""Shared utilities for snowdays pipelines."""

from .base import TemporalPipeline, ValidationResult
from .io import get_data_path

__all__ = [
    "get_data_path",
    "TemporalPipeline",
    "ValidationResult",
]
