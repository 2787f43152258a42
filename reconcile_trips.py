import argparse
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
ONE_DAY_SECONDS = 86400
ONE_WEEK_SECONDS = 7 * ONE_DAY_SECONDS

CANONICAL_COLUMNS = [
    "trip_id",
    "start_time",
    "end_time",
    "trip_duration_seconds",
    "from_station_id",
    "to_station_id",
    "user_type",
]
STATION_COLUMNS = ["from_station_id", "to_station_id"]

# Divvy 2019 export: identifiers already canonical
SOURCE_A_RENAMES = {
    "tripduration": "trip_duration_seconds",
    "usertype": "user_type",
}

# Divvy 2020 export
SOURCE_B_RENAMES = {
    "ride_id": "trip_id",
    "started_at": "start_time",
    "ended_at": "end_time",
    "start_station_id": "from_station_id",
    "end_station_id": "to_station_id",
    "member_casual": "user_type",
}

SOURCE_A_REQUIRED = [
    "trip_id", "start_time", "end_time", "tripduration",
    "from_station_id", "to_station_id", "usertype",
]
SOURCE_B_REQUIRED = list(SOURCE_B_RENAMES)


class UserType(str, Enum):
    MEMBER = "member"
    CASUAL = "casual"


@dataclass(frozen=True)
class UnknownUserType:
    """A rider category neither feed vocabulary knows about."""
    raw: str


USER_TYPE_VOCABULARY = {
    "Subscriber": UserType.MEMBER,
    "Customer": UserType.CASUAL,
    "member": UserType.MEMBER,
    "casual": UserType.CASUAL,
}


def classify_user_type(value) -> Union[UserType, UnknownUserType]:
    if value in USER_TYPE_VOCABULARY:
        return USER_TYPE_VOCABULARY[value]
    return UnknownUserType(str(value))


@dataclass
class ReconciliationReport:
    """Diagnostics gathered while cleaning. None of these alter the trips."""
    null_counts: Dict[str, int] = field(default_factory=dict)
    rows_with_nulls: int = 0
    duplicate_count: int = 0
    swapped_count: int = 0
    week_outliers: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=CANONICAL_COLUMNS))
    over_one_day_count: int = 0
    unmapped_user_types: Dict[str, int] = field(default_factory=dict)
    station_null_counts: Dict[str, int] = field(default_factory=dict)
    station_distinct_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total_nulls(self) -> int:
        return int(sum(self.null_counts.values()))

    def summary_lines(self) -> List[str]:
        lines = [
            f"Null values before removal: {self.total_nulls:,} across {self.rows_with_nulls:,} trips",
        ]
        for col, count in self.null_counts.items():
            if count:
                lines.append(f"  {col}: {count:,}")
        lines.append(f"Exact duplicate trips (kept): {self.duplicate_count:,}")
        lines.append(f"Inverted start/end times swapped: {self.swapped_count:,}")
        lines.append(f"Trips of a week or longer: {len(self.week_outliers):,}")
        lines.append(f"Trips of a day or longer removed: {self.over_one_day_count:,}")
        for col in STATION_COLUMNS:
            lines.append(
                f"{col}: {self.station_null_counts.get(col, 0):,} nulls, "
                f"{self.station_distinct_counts.get(col, 0):,} distinct stations"
            )
        if self.unmapped_user_types:
            lines.append("Unmapped user types (passed through):")
            for value, count in self.unmapped_user_types.items():
                lines.append(f"  {value}: {count:,}")
        return lines


@dataclass
class ReconciliationResult:
    trips: pd.DataFrame
    report: ReconciliationReport


def _require_columns(df: pd.DataFrame, required: List[str], label: str) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise KeyError(f"{label} CSV must contain columns {missing}")


def normalize_source_a(df: pd.DataFrame) -> pd.DataFrame:
    _require_columns(df, SOURCE_A_REQUIRED, "Source A")
    return df.rename(columns=SOURCE_A_RENAMES)


def normalize_source_b(df: pd.DataFrame) -> pd.DataFrame:
    _require_columns(df, SOURCE_B_REQUIRED, "Source B")
    return df.rename(columns=SOURCE_B_RENAMES)


def parse_timestamps(df: pd.DataFrame) -> pd.DataFrame:
    """Parse start/end times; anything unparseable becomes NaT."""
    out = df.copy()
    for col in ("start_time", "end_time"):
        if not pd.api.types.is_datetime64_any_dtype(out[col]):
            out[col] = pd.to_datetime(out[col], format=TIMESTAMP_FORMAT, errors="coerce")
    return out


def _elapsed_seconds(df: pd.DataFrame) -> pd.Series:
    seconds = (df["end_time"] - df["start_time"]).dt.total_seconds()
    if seconds.isna().any():
        return seconds.round()
    return seconds.round().astype("int64")


def derive_duration(df: pd.DataFrame) -> pd.DataFrame:
    out = parse_timestamps(df)
    out["trip_duration_seconds"] = _elapsed_seconds(out)
    return out


def project(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, CANONICAL_COLUMNS].copy()


def merge_sources(source_a: pd.DataFrame, source_b: pd.DataFrame) -> pd.DataFrame:
    # Source A rows first
    return pd.concat([source_a, source_b], ignore_index=True)


def count_nulls(df: pd.DataFrame) -> Dict[str, int]:
    return {col: int(n) for col, n in df[CANONICAL_COLUMNS].isnull().sum().items()}


def drop_nulls(df: pd.DataFrame) -> pd.DataFrame:
    return df.dropna(subset=CANONICAL_COLUMNS).reset_index(drop=True)


def count_duplicates(df: pd.DataFrame) -> int:
    return int(df.duplicated().sum())


def inverted_mask(df: pd.DataFrame) -> pd.Series:
    return df["start_time"] > df["end_time"]


def correct_intervals(df: pd.DataFrame) -> pd.DataFrame:
    """Swap inverted start/end pairs, then recompute every duration."""
    out = df.copy()
    inverted = inverted_mask(out).to_numpy()
    start = out["start_time"].to_numpy()
    end = out["end_time"].to_numpy()
    out["start_time"] = np.where(inverted, end, start)
    out["end_time"] = np.where(inverted, start, end)
    out["trip_duration_seconds"] = _elapsed_seconds(out)
    return out


def coerce_duration(df: pd.DataFrame) -> pd.DataFrame:
    """Strip thousands separators ("1,234.0") before converting to a number."""
    out = df.copy()
    col = out["trip_duration_seconds"]
    if not pd.api.types.is_numeric_dtype(col):
        col = col.astype(str).str.replace(",", "", regex=False)
        out["trip_duration_seconds"] = pd.to_numeric(col, errors="coerce")
    return out


def week_outliers(df: pd.DataFrame) -> pd.DataFrame:
    """Trips lasting a week or more, surfaced for inspection only."""
    return df[df["trip_duration_seconds"] >= ONE_WEEK_SECONDS].copy()


def drop_over_one_day(df: pd.DataFrame) -> pd.DataFrame:
    return df[df["trip_duration_seconds"] < ONE_DAY_SECONDS].reset_index(drop=True)


def map_user_types(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()

    def _canonical(value):
        kind = classify_user_type(value)
        if isinstance(kind, UnknownUserType):
            return value
        return kind.value

    out["user_type"] = out["user_type"].map(_canonical)
    return out


def unmapped_user_types(df: pd.DataFrame) -> Dict[str, int]:
    unknown = df["user_type"].map(lambda v: isinstance(classify_user_type(v), UnknownUserType)).astype(bool)
    counts = df.loc[unknown, "user_type"].astype(str).value_counts()
    return {value: int(count) for value, count in counts.items()}


def check_stations(df: pd.DataFrame):
    nulls = {col: int(df[col].isnull().sum()) for col in STATION_COLUMNS}
    distinct = {col: int(df[col].nunique()) for col in STATION_COLUMNS}
    return nulls, distinct


def clean_trips(merged: pd.DataFrame) -> ReconciliationResult:
    """
    Run the post-merge cleaning steps over a canonical-shaped frame.

    Steps run in order: null removal, duplicate count, timestamp parsing,
    interval correction, duration coercion, outlier report, one-day filter,
    user-type mapping and station checks. Running it again on its own
    output returns the same trips.
    """
    report = ReconciliationReport()

    report.null_counts = count_nulls(merged)
    report.rows_with_nulls = int(merged[CANONICAL_COLUMNS].isnull().any(axis=1).sum())
    trips = drop_nulls(merged)

    report.duplicate_count = count_duplicates(trips)

    trips = parse_timestamps(trips)
    report.swapped_count = int(inverted_mask(trips).sum())
    trips = correct_intervals(trips)
    trips = coerce_duration(trips)

    report.week_outliers = week_outliers(trips)
    kept = drop_over_one_day(trips)
    report.over_one_day_count = len(trips) - len(kept)

    trips = map_user_types(kept)
    report.unmapped_user_types = unmapped_user_types(trips)
    report.station_null_counts, report.station_distinct_counts = check_stations(trips)

    return ReconciliationResult(trips=trips[CANONICAL_COLUMNS], report=report)


def reconcile(source_a: pd.DataFrame, source_b: pd.DataFrame) -> ReconciliationResult:
    a = project(parse_timestamps(normalize_source_a(source_a)))
    b = project(derive_duration(normalize_source_b(source_b)))
    return clean_trips(merge_sources(a, b))


def load_source(path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    return pd.read_csv(path, low_memory=False)


def reconcile_files(source_a_path, source_b_path) -> ReconciliationResult:
    frames = []
    for path in tqdm([source_a_path, source_b_path], desc="Loading sources", unit="file"):
        frames.append(load_source(path))
    print(f"Loaded {len(frames[0]):,} Source A trips and {len(frames[1]):,} Source B trips")

    result = reconcile(frames[0], frames[1])
    print(f"Kept {len(result.trips):,} trips after cleaning")
    return result


def write_trips(trips: pd.DataFrame, path) -> Path:
    out_path = Path(path)
    trips.to_csv(out_path, index=False, date_format=TIMESTAMP_FORMAT)
    return out_path


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Reconcile Divvy 2019 and 2020 trip exports into one cleaned trip table."
    )
    parser.add_argument(
        "--source-a", "-a",
        default="Divvy_Trips_2019_Q1.csv",
        help="Path to the 2019-style trip CSV (tripduration/usertype columns)"
    )
    parser.add_argument(
        "--source-b", "-b",
        default="Divvy_Trips_2020_Q1.csv",
        help="Path to the 2020-style trip CSV (ride_id/member_casual columns)"
    )
    parser.add_argument(
        "--output", "-o",
        default="divvy_trips_cleaned.csv",
        help="Path to write the cleaned trip CSV"
    )
    parser.add_argument(
        "--outliers",
        default=None,
        help="Optional path to write trips lasting a week or more"
    )
    parser.add_argument(
        "--summary", action="store_true",
        help="Print the cleaning diagnostics"
    )
    args = parser.parse_args(argv)

    result = reconcile_files(args.source_a, args.source_b)

    out_path = write_trips(result.trips, args.output)
    print(f"Wrote cleaned CSV to: {out_path.resolve()}")

    if args.outliers:
        outlier_path = write_trips(result.report.week_outliers, args.outliers)
        print(f"Wrote week-long outliers to: {outlier_path.resolve()}")

    if args.summary:
        print("\n=== Cleaning diagnostics ===")
        for line in result.report.summary_lines():
            print(line)

    return result


if __name__ == "__main__":
    main()
