"""Tests for winter season keys."""

from datetime import date

import pytest

from snowdays.features.season import SeasonKey, parse_season_label, season_label, season_start_year


class TestSeasonStartYear:
    """Tests for season_start_year()."""

    def test_november_starts_season(self):
        assert season_start_year(date(1995, 11, 1)) == 1995

    def test_spring_belongs_to_previous_year(self):
        assert season_start_year(date(1996, 4, 30)) == 1995
        assert season_start_year(date(1996, 1, 15)) == 1995

    def test_summer_is_out_of_season(self):
        """May through October has no season."""
        assert season_start_year(date(1996, 5, 1)) is None
        assert season_start_year(date(1996, 10, 31)) is None


class TestSeasonLabels:
    """Tests for two-digit season labels."""

    def test_label(self):
        assert season_label(1995) == "9596"
        assert season_label(1999) == "9900"
        assert season_label(2024) == "2425"

    def test_parse_label(self):
        assert parse_season_label("9596") == 1995
        assert parse_season_label("9900") == 1999
        assert parse_season_label("2425") == 2024

    @pytest.mark.parametrize("label", ["95", "9597", "abcd", "959600", ""])
    def test_parse_invalid(self, label):
        """Malformed or non-consecutive labels are rejected."""
        with pytest.raises(ValueError):
            parse_season_label(label)


class TestSeasonKey:
    """Tests for SeasonKey."""

    def test_properties(self):
        key = SeasonKey(1995)
        assert key.label == "9596"
        assert key.display_name == "1995-96"
        assert key.filename == "agg9596.csv"
        assert key.start_date == date(1995, 11, 1)
        assert key.end_date == date(1996, 4, 30)

    def test_contains(self):
        key = SeasonKey(2024)
        assert key.contains(date(2024, 11, 1))
        assert key.contains(date(2025, 4, 30))
        assert not key.contains(date(2025, 5, 1))
        assert not key.contains(date(2024, 10, 31))

    def test_for_date(self):
        assert SeasonKey.for_date(date(2025, 2, 1)) == SeasonKey(2024)
        assert SeasonKey.for_date(date(2025, 7, 1)) is None

    def test_from_label(self):
        assert SeasonKey.from_label("1718") == SeasonKey(2017)

    def test_ordering(self):
        """Keys sort by start year."""
        assert sorted([SeasonKey(2020), SeasonKey(1995)]) == [SeasonKey(1995), SeasonKey(2020)]
