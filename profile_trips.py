import argparse
from pathlib import Path

import pandas as pd


def profile_table(df: pd.DataFrame) -> dict:
    profile = {
        "rows": len(df),
        "columns": df.columns.tolist(),
        "dtypes": {col: str(dtype) for col, dtype in df.dtypes.items()},
        "missing": {col: int(n) for col, n in df.isnull().sum().items()},
    }

    # Either the canonical or the 2020 export name for the start timestamp
    for col in ("start_time", "started_at"):
        if col in df.columns:
            starts = pd.to_datetime(df[col], errors="coerce")
            profile["date_range"] = (starts.min(), starts.max())
            break
    return profile


def value_count_lines(series: pd.Series) -> list:
    counts = series.value_counts(dropna=False)
    total = int(counts.sum())
    lines = [f"Total rows: {total:,}\n", "Value\tCount\tPercent\n"]
    for value, count in counts.items():
        label = "<NaN>" if pd.isna(value) else str(value)
        pct = (count / total) * 100 if total else 0
        lines.append(f"{label}\t{count:,}\t{pct:0.2f}%\n")
    return lines


def main(argv=None):
    parser = argparse.ArgumentParser(description="Print an overview of a trip CSV and summarize one column's values.")
    parser.add_argument(
        "--input", "-i",
        default="divvy_trips_cleaned.csv",
        help="Path to a raw or cleaned trip CSV"
    )
    parser.add_argument(
        "--column", "-c",
        default="user_type",
        help="Column whose unique values are counted (default: user_type)"
    )
    parser.add_argument(
        "--output", "-o",
        default="value_counts_summary.txt",
        help="Path to write the value counts summary"
    )
    args = parser.parse_args(argv)

    input_path = Path(args.input)
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    print(f"Loading: {input_path}")
    df = pd.read_csv(input_path, low_memory=False)
    if args.column not in df.columns:
        raise KeyError(f"Input CSV must contain a '{args.column}' column")

    profile = profile_table(df)

    print("\n=== Data Overview ===")
    print(f"Number of trips: {profile['rows']:,}")
    print("\nColumns:", profile["columns"])
    print("\nData types:\n", df.dtypes)
    print("\nMissing values:\n", df.isnull().sum())
    if "date_range" in profile:
        print(f"\nDate range: {profile['date_range'][0]} to {profile['date_range'][1]}")

    lines = [f"'{args.column}' values summary\n"] + value_count_lines(df[args.column])
    out_path = Path(args.output)
    out_path.write_text("".join(lines), encoding="utf-8")
    print(f"\nSummary written to: {out_path.resolve()}")

    print(f"\n=== Unique '{args.column}' values (sorted by count) ===")
    for line in lines[3:]:  # skip header lines
        print(line.strip())

    return profile


if __name__ == "__main__":
    main()
