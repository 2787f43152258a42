"""Tests for the two-source trip reconciliation pipeline."""

import pandas as pd
import pytest

import reconcile_trips as rt


def _source_a(rows=None):
    rows = rows if rows is not None else [
        (1, "2019-01-01 08:00:00", "2019-01-01 08:10:00", "600.0", 10, 20, "Subscriber"),
        (3, "2019-01-02 17:00:00", "2019-01-02 17:30:00", "1,800.0", 12, 22, "Customer"),
    ]
    return pd.DataFrame(rows, columns=[
        "trip_id", "start_time", "end_time", "tripduration",
        "from_station_id", "to_station_id", "usertype",
    ])


def _source_b(rows=None):
    rows = rows if rows is not None else [
        ("B1", "2020-01-01 09:00:00", "2020-01-01 09:20:00", 11, 21, "member"),
        ("B2", "2020-01-03 12:00:00", "2020-01-03 12:05:00", 13, 23, "casual"),
    ]
    return pd.DataFrame(rows, columns=[
        "ride_id", "started_at", "ended_at",
        "start_station_id", "end_station_id", "member_casual",
    ])


def _assert_canonical(trips):
    assert list(trips.columns) == rt.CANONICAL_COLUMNS
    assert not trips.isnull().any().any()
    assert (trips["start_time"] <= trips["end_time"]).all()
    elapsed = (trips["end_time"] - trips["start_time"]).dt.total_seconds()
    assert (trips["trip_duration_seconds"] == elapsed).all()
    assert (trips["trip_duration_seconds"] >= 0).all()
    assert (trips["trip_duration_seconds"] < rt.ONE_DAY_SECONDS).all()


def test_clean_sources_merge_to_n_plus_m_trips():
    result = rt.reconcile(_source_a(), _source_b())

    assert len(result.trips) == 4
    assert result.trips["trip_id"].tolist() == [1, 3, "B1", "B2"]
    assert result.trips["user_type"].tolist() == ["member", "casual", "member", "casual"]
    assert result.trips["trip_duration_seconds"].tolist() == [600, 1800, 1200, 300]
    _assert_canonical(result.trips)
    assert result.report.total_nulls == 0
    assert result.report.duplicate_count == 0
    assert result.report.swapped_count == 0


def test_consistent_source_a_trip_passes_through_unchanged():
    a = _source_a([(1, "2019-01-01 08:00:00", "2019-01-01 08:10:00", 600, 10, 20, "member")])
    result = rt.reconcile(a, _source_b([]))

    row = result.trips.iloc[0]
    assert row["trip_id"] == 1
    assert row["start_time"] == pd.Timestamp("2019-01-01 08:00:00")
    assert row["end_time"] == pd.Timestamp("2019-01-01 08:10:00")
    assert row["trip_duration_seconds"] == 600
    assert row["from_station_id"] == 10
    assert row["to_station_id"] == 20
    assert row["user_type"] == "member"


def test_inverted_source_b_trip_is_swapped():
    b = _source_b([(2, "2020-01-01 09:05:00", "2020-01-01 09:00:00", 11, 21, "casual")])
    result = rt.reconcile(_source_a([]), b)

    row = result.trips.iloc[0]
    assert row["start_time"] == pd.Timestamp("2020-01-01 09:00:00")
    assert row["end_time"] == pd.Timestamp("2020-01-01 09:05:00")
    assert row["trip_duration_seconds"] == 300
    assert result.report.swapped_count == 1


def test_supplied_duration_is_overwritten():
    a = _source_a([(1, "2019-01-01 08:00:00", "2019-01-01 08:10:00", "99,999.0", 10, 20, "Subscriber")])
    result = rt.reconcile(a, _source_b([]))

    assert result.trips["trip_duration_seconds"].tolist() == [600]


def test_null_station_trip_is_dropped_and_counted():
    b = _source_b([
        ("B1", "2020-01-01 09:00:00", "2020-01-01 09:20:00", 11, None, "member"),
        ("B2", "2020-01-01 10:00:00", "2020-01-01 10:20:00", 11, 21, "member"),
    ])
    result = rt.reconcile(_source_a([]), b)

    assert result.trips["trip_id"].tolist() == ["B2"]
    assert result.report.null_counts["to_station_id"] == 1
    assert result.report.total_nulls == 1
    assert result.report.rows_with_nulls == 1


def test_unparseable_timestamp_is_dropped_not_raised():
    a = _source_a([
        (1, "not a time", "2019-01-01 08:10:00", 600, 10, 20, "Subscriber"),
        (2, "2019-01-01 08:00:00", "2019-01-01 08:10:00", 600, 10, 20, "Subscriber"),
    ])
    b = _source_b([("B1", "2020-01-01 09:00:00", "2020/01/01 9am", 11, 21, "member")])
    result = rt.reconcile(a, b)

    assert result.trips["trip_id"].tolist() == [2]
    assert result.report.null_counts["start_time"] == 1
    assert result.report.null_counts["end_time"] == 1
    # the derived Source B duration is null too
    assert result.report.rows_with_nulls == 2


def test_duplicates_are_counted_but_kept():
    row = (1, "2019-01-01 08:00:00", "2019-01-01 08:10:00", 600, 10, 20, "Subscriber")
    result = rt.reconcile(_source_a([row, row]), _source_b([]))

    assert result.report.duplicate_count == 1
    assert len(result.trips) == 2


def test_day_long_trips_removed_and_week_long_trips_reported():
    a = _source_a([
        (1, "2019-01-01 08:00:00", "2019-01-01 08:10:00", 600, 10, 20, "Subscriber"),
        (2, "2019-01-01 08:00:00", "2019-01-02 08:00:00", 86400, 10, 20, "Subscriber"),
        (3, "2019-01-01 08:00:00", "2019-01-09 08:00:00", 691200, 10, 20, "Customer"),
        (4, "2019-01-01 08:00:00", "2019-01-02 07:59:59", 86399, 10, 20, "Customer"),
    ])
    result = rt.reconcile(a, _source_b([]))

    assert result.trips["trip_id"].tolist() == [1, 4]
    assert result.report.over_one_day_count == 2
    assert result.report.week_outliers["trip_id"].tolist() == [3]


def test_unknown_user_type_passes_through_and_is_reported():
    a = _source_a([
        (1, "2019-01-01 08:00:00", "2019-01-01 08:10:00", 600, 10, 20, "Dependent"),
        (2, "2019-01-01 08:00:00", "2019-01-01 08:10:00", 600, 10, 20, "Subscriber"),
    ])
    result = rt.reconcile(a, _source_b([]))

    assert result.trips["user_type"].tolist() == ["Dependent", "member"]
    assert result.report.unmapped_user_types == {"Dependent": 1}


def test_classify_user_type():
    assert rt.classify_user_type("Subscriber") is rt.UserType.MEMBER
    assert rt.classify_user_type("Customer") is rt.UserType.CASUAL
    assert rt.classify_user_type("casual") is rt.UserType.CASUAL
    assert rt.classify_user_type("Dependent") == rt.UnknownUserType("Dependent")


def test_station_checks():
    result = rt.reconcile(_source_a(), _source_b())

    assert result.report.station_null_counts == {"from_station_id": 0, "to_station_id": 0}
    assert result.report.station_distinct_counts == {"from_station_id": 4, "to_station_id": 4}


def test_cleaning_is_idempotent():
    b = _source_b([
        ("B1", "2020-01-01 09:05:00", "2020-01-01 09:00:00", 11, 21, "member"),
        ("B2", "2020-01-03 12:00:00", "2020-01-05 12:05:00", 13, 23, "casual"),
    ])
    first = rt.reconcile(_source_a(), b)
    second = rt.clean_trips(first.trips)

    pd.testing.assert_frame_equal(second.trips, first.trips)
    assert second.report.swapped_count == 0
    assert second.report.over_one_day_count == 0


def test_coerce_duration_strips_thousands_separator():
    df = pd.DataFrame({"trip_duration_seconds": ["1,234.0", "56", "n/a"]})
    out = rt.coerce_duration(df)

    assert out["trip_duration_seconds"].iloc[0] == 1234.0
    assert out["trip_duration_seconds"].iloc[1] == 56
    assert pd.isna(out["trip_duration_seconds"].iloc[2])
    # input left untouched
    assert df["trip_duration_seconds"].iloc[0] == "1,234.0"


def test_missing_source_columns_raise():
    with pytest.raises(KeyError, match="Source B"):
        rt.reconcile(_source_a(), _source_b().drop(columns=["member_casual"]))


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError, match="Input file not found"):
        rt.load_source(tmp_path / "missing.csv")


def test_main_writes_cleaned_csv(tmp_path, capsys):
    a_path = tmp_path / "a.csv"
    b_path = tmp_path / "b.csv"
    out_path = tmp_path / "clean.csv"
    outlier_path = tmp_path / "outliers.csv"
    _source_a().to_csv(a_path, index=False)
    _source_b([
        ("B1", "2020-01-01 09:00:00", "2020-01-01 09:20:00", 11, 21, "member"),
        ("B2", "2020-01-01 09:00:00", "2020-01-10 09:00:00", 11, 21, "casual"),
    ]).to_csv(b_path, index=False)

    rt.main([
        "--source-a", str(a_path), "--source-b", str(b_path),
        "--output", str(out_path), "--outliers", str(outlier_path), "--summary",
    ])

    written = pd.read_csv(out_path)
    assert written["trip_id"].astype(str).tolist() == ["1", "3", "B1"]
    assert written["start_time"].iloc[0] == "2019-01-01 08:00:00"
    assert pd.read_csv(outlier_path)["trip_id"].tolist() == ["B2"]

    out = capsys.readouterr().out
    assert "Kept 3 trips after cleaning" in out
    assert "Trips of a week or longer: 1" in out


def test_written_output_reconciles_to_itself(tmp_path):
    first = rt.reconcile(_source_a(), _source_b())
    path = rt.write_trips(first.trips, tmp_path / "clean.csv")

    again = rt.reconcile(
        pd.read_csv(path).rename(columns={"trip_duration_seconds": "tripduration", "user_type": "usertype"}),
        _source_b([]),
    )
    assert len(again.trips) == len(first.trips)
    assert again.trips["trip_duration_seconds"].tolist() == first.trips["trip_duration_seconds"].tolist()
    assert again.trips["start_time"].tolist() == first.trips["start_time"].tolist()
