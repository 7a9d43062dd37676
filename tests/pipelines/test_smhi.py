"""Tests for the SMHI open-data pipeline."""

import logging
import math
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
import requests

from conftest import utc
from snowdays.errors import ReadingParseError, SourceUnavailableError
from snowdays.pipelines.smhi import (
    BOOTSTRAP_PERIODS,
    PARAMETER_CODES,
    FetchResult,
    SMHIClient,
    SMHIPipeline,
    complete_hours,
    load_archive_directory,
    merge_parameters,
    parse_archive_csv,
    parse_entries,
    parse_entry,
    parse_timestamp,
    parse_wind_csv,
)

# 2025-01-15 10:00 UTC
EPOCH_MS = 1736935200000

ARCHIVE_HEADER = "\n".join(
    ["Stationsnamn;Klimatnummer;Mäthöjd (meter över marken)"]
    + ["header;line"] * 8
    + ["Datum;Tid (UTC);Värde;Kvalitet;;Tidsutsnitt:"]
)


def make_response(payload=None, status: int = 200) -> MagicMock:
    """Fake requests.Response with raise_for_status behaviour."""
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} Error", response=response)
    return response


def document(*entries) -> dict:
    return {"value": list(entries), "parameter": {}, "station": {}}


def routed_session(routes: dict[str, MagicMock]) -> MagicMock:
    """Session whose GET answers by URL fragment (first match), 404 otherwise."""
    session = MagicMock()

    def get(url, timeout=None):
        for fragment, response in routes.items():
            if fragment in url:
                return response
        return make_response(status=404)

    session.get.side_effect = get
    return session


def series(parameter: str, *points) -> pd.Series:
    stamps, values = zip(*points)
    return pd.Series(values, index=pd.DatetimeIndex(stamps, name="timestamp"), name=parameter)


class TestParseTimestamp:
    """Tests for parse_timestamp()."""

    def test_epoch_milliseconds(self):
        assert parse_timestamp(EPOCH_MS) == utc(2025, 1, 15, 10)
        assert parse_timestamp(float(EPOCH_MS)) == utc(2025, 1, 15, 10)
        assert parse_timestamp(str(EPOCH_MS)) == utc(2025, 1, 15, 10)

    def test_compact_format_is_utc(self):
        assert parse_timestamp("202501151000") == utc(2025, 1, 15, 10)

    @pytest.mark.parametrize(
        "value",
        ["2025-01-15T10:00:00Z", "2025-01-15T10:00:00", "2025-01-15 10:00:00", "2025-01-15T11:00:00+01:00"],
    )
    def test_iso_strings(self, value):
        """ISO strings are normalized to UTC; naive values are read as UTC."""
        assert parse_timestamp(value) == utc(2025, 1, 15, 10)

    @pytest.mark.parametrize("value", [None, "", "garbage", True, math.nan, "209913991299"])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None

    def test_result_is_timezone_aware(self):
        assert parse_timestamp("2025-01-15T10:00:00").tzinfo is not None

    @pytest.mark.parametrize("value", [1e20, -1e20, "9" * 30])
    def test_out_of_range_epoch(self, value):
        assert parse_timestamp(value) is None


class TestParseEntry:
    """Tests for parse_entry() and parse_entries()."""

    def test_date_field(self):
        assert parse_entry({"date": EPOCH_MS, "value": "-5.2", "quality": "G"}) == (utc(2025, 1, 15, 10), -5.2)

    def test_field_priority(self):
        """``date`` wins over ``time`` when both are present."""
        entry = {"date": EPOCH_MS, "time": "2020-01-01T00:00:00Z", "value": "1"}
        assert parse_entry(entry)[0] == utc(2025, 1, 15, 10)

    def test_from_field(self):
        assert parse_entry({"from": "2025-01-15T10:00:00Z", "value": 0})[0] == utc(2025, 1, 15, 10)

    def test_ref_is_midnight_utc(self):
        assert parse_entry({"ref": "2025-01-15", "value": "1.5"}) == (utc(2025, 1, 15), 1.5)

    def test_missing_timestamp(self):
        with pytest.raises(ReadingParseError):
            parse_entry({"value": "1.0"})

    @pytest.mark.parametrize("value", [None, "abc", "nan"])
    def test_bad_value(self, value):
        with pytest.raises(ReadingParseError):
            parse_entry({"date": EPOCH_MS, "value": value})

    def test_parse_entries_skips_bad(self, caplog):
        """Bad entries are logged and skipped, good ones kept."""
        entries = [
            {"date": EPOCH_MS, "value": "-5.0"},
            {"date": "not a date", "value": "1.0"},
            {"date": EPOCH_MS + 3600000, "value": "-6.0"},
        ]
        with caplog.at_level(logging.WARNING):
            result = parse_entries(entries, "temperature")
        assert list(result) == [-5.0, -6.0]
        assert result.name == "temperature"
        assert str(result.index.tz) == "UTC"
        assert "skipped 1" in caplog.text

    def test_parse_entries_skips_out_of_range_epoch(self):
        entries = [{"date": "9" * 30, "value": "1.0"}, {"date": EPOCH_MS, "value": "-5.0"}]
        assert list(parse_entries(entries, "temperature")) == [-5.0]

    def test_parse_entries_empty(self):
        assert parse_entries([], "temperature").empty
        assert parse_entries(None, "temperature").empty


class TestMergeParameters:
    """Tests for merge_parameters() and complete_hours()."""

    def test_join_by_hour(self):
        merged = merge_parameters({
            "temperature": series(
                "temperature",
                (utc(2025, 1, 15, 10), -5.0),
                (utc(2025, 1, 15, 10, 30), -6.0),
            ),
            "precipitation": series(
                "precipitation",
                (utc(2025, 1, 15, 10), 0.4),
                (utc(2025, 1, 15, 11), 0.2),
            ),
        })
        assert list(merged.columns) == ["timestamp", *PARAMETER_CODES]
        assert list(merged["timestamp"]) == [pd.Timestamp(utc(2025, 1, 15, 10)), pd.Timestamp(utc(2025, 1, 15, 11))]
        # Last value for the floored hour wins
        assert merged.loc[0, "temperature"] == -6.0
        assert pd.isna(merged.loc[1, "temperature"])
        assert merged["humidity"].isna().all()

        complete = complete_hours(merged)
        assert len(complete) == 1
        assert complete.loc[0, "precipitation"] == 0.4

    def test_nothing_to_merge(self):
        merged = merge_parameters({"temperature": pd.Series(dtype=float)})
        assert merged.empty
        assert list(merged.columns) == ["timestamp", *PARAMETER_CODES]


class TestSMHIClient:
    """Tests for SMHIClient."""

    def test_url(self):
        client = SMHIClient(session=MagicMock())
        assert client.url(1, "latest-day").endswith("/parameter/1/station/124300/period/latest-day/data.json")

    def test_fetch_all_isolates_failures(self):
        """One parameter failing on every period leaves the others intact."""
        ok = make_response(document({"date": EPOCH_MS, "value": "-5.0"}))
        session = routed_session({
            "/parameter/1/": ok,
            "/parameter/7/": make_response(document({"date": EPOCH_MS, "value": "0.3"})),
            "/parameter/6/": make_response(status=404),
        })
        client = SMHIClient(session=session)

        result = client.fetch_all(parameters=["temperature", "precipitation", "humidity"])

        assert set(result.series) == {"temperature", "precipitation"}
        assert set(result.failures) == {"humidity"}
        assert isinstance(result.failures["humidity"], SourceUnavailableError)
        assert result.missing_required == []
        assert result.periods["temperature"] == "latest-day"

        frame = result.to_frame()
        assert len(frame) == 1
        assert frame.loc[0, "precipitation"] == 0.3

    def test_fetch_all_bad_entries_do_not_abort(self):
        """A corrupt timestamp drops one reading, not the parameter."""
        bad = {"date": 1e20, "value": "1.0"}
        session = routed_session({
            "/parameter/1/": make_response(document(bad, {"date": EPOCH_MS, "value": "-5.0"})),
            "/parameter/7/": make_response(document(bad, {"date": EPOCH_MS, "value": "0.3"})),
        })
        client = SMHIClient(session=session)

        result = client.fetch_all(parameters=["temperature", "precipitation"])

        assert result.failures == {}
        assert list(result.series["temperature"]) == [-5.0]
        assert list(result.series["precipitation"]) == [0.3]

    def test_fetch_all_non_object_document(self):
        """A JSON body that is not an object fails only its own parameter."""
        session = routed_session({
            "/parameter/1/": make_response(["not", "an", "object"]),
            "/parameter/7/": make_response(document({"date": EPOCH_MS, "value": "0.3"})),
        })
        client = SMHIClient(session=session)

        result = client.fetch_all(parameters=["temperature", "precipitation"])

        assert set(result.series) == {"precipitation"}
        assert isinstance(result.failures["temperature"], SourceUnavailableError)
        assert "expected a JSON object" in str(result.failures["temperature"])

    def test_fetch_all_unexpected_error_isolated(self):
        client = SMHIClient(session=MagicMock())
        real_fetch = client.fetch_series

        def fetch_series(name, periods):
            if name == "temperature":
                raise RuntimeError("boom")
            return real_fetch(name, periods)

        client.fetch_series = fetch_series
        client.session = routed_session({
            "/parameter/7/": make_response(document({"date": EPOCH_MS, "value": "0.3"})),
        })

        result = client.fetch_all(parameters=["temperature", "precipitation"])

        assert set(result.series) == {"precipitation"}
        assert "boom" in str(result.failures["temperature"])

    def test_period_fallback(self):
        """latest-hour is used when latest-day is unavailable."""
        session = routed_session({
            "latest-hour": make_response(document({"date": EPOCH_MS, "value": "-5.0"})),
        })
        client = SMHIClient(session=session)
        values, period = client.fetch_series("temperature")
        assert period == "latest-hour"
        assert list(values) == [-5.0]

    def test_client_errors_not_retried(self):
        session = routed_session({})
        client = SMHIClient(session=session)
        with pytest.raises(SourceUnavailableError):
            client.fetch_series("temperature", periods=("latest-day",))
        assert session.get.call_count == 1

    @patch("snowdays.pipelines.smhi.time.sleep")
    def test_server_error_retried(self, mock_sleep):
        session = MagicMock()
        session.get.side_effect = [make_response(status=503), make_response(document())]
        client = SMHIClient(session=session)

        assert client.fetch_parameter(1, "latest-day") == document()
        assert session.get.call_count == 2
        mock_sleep.assert_called_once_with(SMHIClient.RETRY_DELAY)

    @patch("snowdays.pipelines.smhi.time.sleep")
    def test_connection_errors_exhaust_retries(self, mock_sleep):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("down")
        client = SMHIClient(session=session)

        with pytest.raises(SourceUnavailableError, match="temperature"):
            client.fetch_series("temperature", periods=("latest-day",))
        assert session.get.call_count == SMHIClient.MAX_RETRIES
        assert mock_sleep.call_count == SMHIClient.MAX_RETRIES - 1

    def test_timeout_from_config(self, config):
        session = routed_session({})
        client = SMHIClient(config=config, session=session)
        client.fetch_all(parameters=["temperature"], periods=("latest-day",))
        assert session.get.call_args.kwargs["timeout"] == config.request_timeout

    def test_missing_required(self):
        result = FetchResult(series={"temperature": pd.Series(dtype=float)})
        assert result.missing_required == ["precipitation"]


class TestArchiveParsing:
    """Tests for archive CSV parsing."""

    def test_parse_archive_csv(self, tmp_path):
        """Data starts after the header block; bad lines are skipped."""
        path = tmp_path / "smhi-opendata_1_124300_20241201_120000.csv"
        path.write_text(
            ARCHIVE_HEADER
            + "\n2024-12-01;06:00:00;-3.5;G;;\n"
            + "2024-12-01;07:00:00;-4.0;Y\n"
            + "garbage;row;x;G\n"
            + "2024-12-01;08:00:00;;G\n",
            encoding="utf-8",
        )
        values = parse_archive_csv(path, "temperature")
        assert list(values) == [-3.5, -4.0]
        assert values.index[0] == pd.Timestamp(utc(2024, 12, 1, 6))

    def test_parse_wind_csv(self, tmp_path):
        path = tmp_path / "smhi-opendata_3_4_124300_20241201_120000.csv"
        path.write_text(
            ARCHIVE_HEADER + "\n2024-12-01;06:00:00;270;G;4.5;G\n",
            encoding="utf-8",
        )
        wind = parse_wind_csv(path)
        assert list(wind["wind_direction"]) == [270.0]
        assert list(wind["wind_speed"]) == [4.5]

    def test_load_archive_directory(self, tmp_path):
        (tmp_path / "smhi-opendata_1_124300_a.csv").write_text(
            ARCHIVE_HEADER + "\n2024-12-01;06:00:00;-3.5;G\n2024-12-01;07:00:00;-4.0;G\n"
        )
        (tmp_path / "smhi-opendata_7_124300_a.csv").write_text(
            ARCHIVE_HEADER + "\n2024-12-01;06:00:00;0.4;G\n"
        )
        (tmp_path / "smhi-opendata_12_124300_a.csv").write_text(
            ARCHIVE_HEADER + "\n2024-12-01;06:00:00;20000;G\n"
        )
        (tmp_path / "notes.csv").write_text("not;an;archive\n")

        df = load_archive_directory(tmp_path)
        assert len(df) == 2
        assert df.loc[0, "temperature"] == -3.5
        assert df.loc[0, "precipitation"] == 0.4
        assert df.loc[0, "visibility"] == 20000.0
        assert pd.isna(df.loc[1, "precipitation"])


class TestSMHIPipeline:
    """Tests for SMHIPipeline."""

    @pytest.fixture
    def client(self):
        client = MagicMock(spec=SMHIClient)
        client.fetch_all.return_value = FetchResult(
            series={
                "temperature": series(
                    "temperature",
                    (utc(2025, 1, 14, 10), -4.0),
                    (utc(2025, 1, 15, 10), -5.0),
                ),
                "precipitation": series(
                    "precipitation",
                    (utc(2025, 1, 14, 10), 0.0),
                    (utc(2025, 1, 15, 10), 0.5),
                ),
            },
            failures={"visibility": SourceUnavailableError("visibility", "404")},
        )
        return client

    def test_run_filters_and_saves(self, config, client, tmp_path):
        pipeline = SMHIPipeline(config=config, client=client, raw_dir=tmp_path)
        df, validation = pipeline.run("2025-01-15", periods=BOOTSTRAP_PERIODS)

        client.fetch_all.assert_called_once_with(periods=BOOTSTRAP_PERIODS)
        assert len(df) == 1
        assert df.loc[0, "temperature"] == -5.0
        assert (tmp_path / "smhi_124300_2025-01-15_latest.csv").exists()
        assert validation.valid
        assert validation.stats["unavailable"] == ["visibility"]
        assert validation.stats["complete_hours"] == 1

    def test_end_date_is_inclusive(self, config, client, tmp_path):
        pipeline = SMHIPipeline(config=config, client=client, raw_dir=tmp_path)
        path = pipeline.download("2025-01-14", "2025-01-14")
        assert len(pipeline.process(path)) == 1

    def test_process_last_write_wins(self, config, tmp_path):
        first = tmp_path / "a.csv"
        second = tmp_path / "b.csv"
        pd.DataFrame({"timestamp": ["2025-01-15 10:00:00+00:00"], "temperature": [-1.0]}).to_csv(first, index=False)
        pd.DataFrame({"timestamp": ["2025-01-15 10:00:00+00:00"], "temperature": [-2.0]}).to_csv(second, index=False)

        pipeline = SMHIPipeline(config=config, client=MagicMock(), raw_dir=tmp_path)
        df = pipeline.process([first, second])
        assert len(df) == 1
        assert df.loc[0, "temperature"] == -2.0

    def test_validate_empty(self, config, tmp_path):
        pipeline = SMHIPipeline(config=config, client=MagicMock(), raw_dir=tmp_path)
        result = pipeline.validate(pd.DataFrame(columns=["timestamp", "temperature", "precipitation"]))
        assert not result.valid
        assert "No hourly records" in result.issues

    def test_validate_outliers(self, config, tmp_path):
        pipeline = SMHIPipeline(config=config, client=MagicMock(), raw_dir=tmp_path)
        df = pd.DataFrame({
            "timestamp": pd.to_datetime(["2025-01-15 10:00", "2025-01-15 11:00"], utc=True),
            "temperature": [99.0, -5.0],
            "precipitation": [0.0, -3.0],
        })
        result = pipeline.validate(df)
        assert not result.valid
        assert result.out_of_range_count == 2

    def test_validate_duplicates(self, config, tmp_path):
        pipeline = SMHIPipeline(config=config, client=MagicMock(), raw_dir=tmp_path)
        stamps = pd.to_datetime(["2025-01-15 10:00", "2025-01-15 10:00"], utc=True)
        df = pd.DataFrame({"timestamp": stamps, "temperature": [-5.0, -4.0], "precipitation": [0.0, 0.1]})
        result = pipeline.validate(df)
        assert result.duplicate_count == 1
        assert "1 duplicate timestamps" in result.issues

    def test_validate_missing_required_column(self, config, tmp_path):
        pipeline = SMHIPipeline(config=config, client=MagicMock(), raw_dir=tmp_path)
        df = pd.DataFrame({"timestamp": pd.to_datetime(["2025-01-15 10:00"], utc=True), "temperature": [-5.0]})
        result = pipeline.validate(df)
        assert "Missing column: precipitation" in result.issues


@pytest.mark.live
class TestSMHILive:
    """Real API smoke test."""

    def test_fetch_latest_day(self):
        result = SMHIClient().fetch_all(parameters=["temperature", "precipitation"])
        assert not result.missing_required
