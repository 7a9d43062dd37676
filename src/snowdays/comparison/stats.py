"""Season-total statistics for historical comparison."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

import numpy as np

from snowdays.comparison.alignment import SeasonSeries

logger = logging.getLogger(__name__)

RECENT_FROM_YEAR = 2015
EARLY_BEFORE_YEAR = 2005


@dataclass
class SeasonTotal:
    """Final (or so-far) total of one season."""

    start_year: int
    total_cm: float


@dataclass
class SeasonStatistics:
    """Summary of final season totals.

    Attributes:
        best: Season with the highest total (any season, current included)
        worst: Completed season with the lowest total
        mean_total: Mean of all season totals
        median_total: Upper median of season totals (sorted[n // 2])
        recent_mean: Mean total of seasons starting in or after RECENT_FROM_YEAR
        early_mean: Mean total of seasons starting before EARLY_BEFORE_YEAR
        season_count: Number of seasons considered
    """

    best: SeasonTotal
    worst: SeasonTotal
    mean_total: float
    median_total: float
    recent_mean: float
    early_mean: float
    season_count: int


def season_statistics(
    series: Iterable[SeasonSeries],
    excluded: Iterable[int] = (),
    recent_from: int = RECENT_FROM_YEAR,
    early_before: int = EARLY_BEFORE_YEAR,
) -> Optional[SeasonStatistics]:
    """Compute statistics over season totals.

    Args:
        series: Aligned season series (current season may be included)
        excluded: Season start years to leave out
        recent_from: First start year counted as "recent"
        early_before: Start years below this count as "early"

    Returns:
        SeasonStatistics, or None when there are no seasons
    """
    excluded = set(excluded)
    series = [s for s in series if s.start_year not in excluded]
    if not series:
        logger.warning("No seasons available for statistics")
        return None

    totals = [SeasonTotal(s.start_year, s.final_total) for s in series]
    completed = [SeasonTotal(s.start_year, s.final_total) for s in series if not s.is_current]
    values = np.array([t.total_cm for t in totals], dtype=float)

    best = max(totals, key=lambda t: t.total_cm)
    worst = min(completed or totals, key=lambda t: t.total_cm)

    mean_total = float(values.mean())
    recent = [t.total_cm for t in totals if t.start_year >= recent_from]
    early = [t.total_cm for t in totals if t.start_year < early_before]

    return SeasonStatistics(
        best=best,
        worst=worst,
        mean_total=mean_total,
        median_total=float(np.sort(values)[len(values) // 2]),
        recent_mean=float(np.mean(recent)) if recent else mean_total,
        early_mean=float(np.mean(early)) if early else mean_total,
        season_count=len(totals),
    )
