import argparse
import os

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from reconcile_trips import TIMESTAMP_FORMAT, UserType

# Set up visualization style
try:
    plt.style.use('ggplot')  # guaranteed built-in style
except Exception:
    # Fall back to default style if ggplot is unavailable
    plt.style.use('default')

# Try to set a seaborn palette, but don't fail if seaborn style/palette isn't available
try:
    sns.set_palette('viridis')
except Exception:
    pass
plt.rcParams['figure.figsize'] = [14, 8]
plt.rcParams['font.size'] = 12

DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
USER_TYPE_ORDER = [UserType.MEMBER.value, UserType.CASUAL.value]
MIN_ROWS_FOR_CHARTS = 10


def _ordered_user_types(values):
    """member, casual, then any passthrough categories alphabetically."""
    extra = sorted(str(v) for v in set(values) if v not in USER_TYPE_ORDER)
    return [u for u in USER_TYPE_ORDER if u in set(values)] + extra


def add_time_features(trips: pd.DataFrame) -> pd.DataFrame:
    out = trips.copy()
    out['start_time'] = pd.to_datetime(out['start_time'])
    out['ride_length_minutes'] = out['trip_duration_seconds'] / 60
    out['day_of_week'] = out['start_time'].dt.dayofweek  # Monday=0, Sunday=6
    out['day_name'] = out['day_of_week'].map(dict(enumerate(DAY_NAMES)))
    out['hour_of_day'] = out['start_time'].dt.hour
    out['month'] = out['start_time'].dt.month
    return out


def user_type_share(trips: pd.DataFrame) -> pd.DataFrame:
    counts = trips['user_type'].value_counts()
    counts = counts.reindex(_ordered_user_types(counts.index))
    total = int(counts.sum())
    share = pd.DataFrame({
        'user_type': counts.index,
        'trips': counts.to_numpy(dtype=int),
    })
    share['percent'] = (share['trips'] / total * 100).round(2) if total else 0.0
    return share


def mean_duration_by_user_type(trips: pd.DataFrame) -> pd.DataFrame:
    df = add_time_features(trips)
    stats = df.groupby('user_type')['ride_length_minutes'].agg(['mean', 'median', 'max'])
    stats = stats.reindex(_ordered_user_types(stats.index))
    stats.columns = ['mean_minutes', 'median_minutes', 'max_minutes']
    return stats.round(2).reset_index()


def weekday_counts_by_user_type(trips: pd.DataFrame) -> pd.DataFrame:
    df = add_time_features(trips)
    counts = pd.crosstab(df['day_of_week'], df['user_type'])
    counts = counts.reindex(index=range(7), columns=_ordered_user_types(counts.columns), fill_value=0)
    counts.index = DAY_NAMES
    counts.index.name = 'day_name'
    counts.columns.name = None
    return counts.reset_index()


def _plot_share(share, output_dir):
    plt.figure(figsize=(8, 8))
    plt.pie(share['trips'], labels=share['user_type'], autopct='%1.1f%%', startangle=90)
    plt.title('Share of Trips by User Type', fontsize=16)
    plt.axis('equal')
    plt.tight_layout()
    plt.savefig(f'{output_dir}/user_type_share.png', dpi=300, bbox_inches='tight')
    plt.close()


def _plot_mean_duration(durations, output_dir):
    plt.figure(figsize=(10, 6))
    sns.barplot(x=durations['user_type'], y=durations['mean_minutes'])
    plt.title('Mean Ride Length by User Type', fontsize=16)
    plt.xlabel('User Type', fontsize=14)
    plt.ylabel('Minutes', fontsize=14)
    plt.tight_layout()
    plt.savefig(f'{output_dir}/mean_duration_by_user_type.png', dpi=300, bbox_inches='tight')
    plt.close()


def _plot_weekday(weekday, output_dir):
    long = weekday.melt(id_vars='day_name', var_name='user_type', value_name='trips')
    plt.figure(figsize=(14, 7))
    sns.barplot(data=long, x='day_name', y='trips', hue='user_type', order=DAY_NAMES)
    plt.title('Trips per Weekday by User Type', fontsize=16)
    plt.xlabel('Day of Week', fontsize=14)
    plt.ylabel('Trips', fontsize=14)
    plt.xticks(rotation=45)
    plt.tight_layout()
    plt.savefig(f'{output_dir}/weekday_by_user_type.png', dpi=300, bbox_inches='tight')
    plt.close()


def summarize(trips: pd.DataFrame, output_dir='output', visualize=False):
    # Create output directory if it doesn't exist
    os.makedirs(output_dir, exist_ok=True)

    share = user_type_share(trips)
    durations = mean_duration_by_user_type(trips)
    weekday = weekday_counts_by_user_type(trips)

    share.to_csv(f'{output_dir}/user_type_share.csv', index=False)
    durations.to_csv(f'{output_dir}/mean_duration_by_user_type.csv', index=False)
    weekday.to_csv(f'{output_dir}/weekday_by_user_type.csv', index=False)

    print("\n=== Trips by User Type ===")
    for row in share.itertuples(index=False):
        print(f"{row.user_type}: {row.trips:,} ({row.percent:.2f}%)")

    print("\n=== Ride Length by User Type (minutes) ===")
    for row in durations.itertuples(index=False):
        print(f"{row.user_type}: mean {row.mean_minutes:.1f}, median {row.median_minutes:.1f}")

    if visualize and len(trips) >= MIN_ROWS_FOR_CHARTS:
        print("\nGenerating visualizations...")
        try:
            _plot_share(share, output_dir)
            _plot_mean_duration(durations, output_dir)
            _plot_weekday(weekday, output_dir)
        except Exception as e:
            print(f"\nWarning: Could not generate some visualizations: {str(e)}")
    elif visualize:
        print(f"\nSkipping visualizations - insufficient data (need at least {MIN_ROWS_FOR_CHARTS} rows)")

    return {'share': share, 'durations': durations, 'weekday': weekday}


def load_cleaned(path) -> pd.DataFrame:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input file not found: {path}")
    df = pd.read_csv(path, low_memory=False)
    for col in ('start_time', 'end_time'):
        df[col] = pd.to_datetime(df[col], format=TIMESTAMP_FORMAT)
    df['trip_duration_seconds'] = df['trip_duration_seconds'].astype(np.int64)
    return df


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Compare member and casual riders in a cleaned Divvy trip table.")
    parser.add_argument("--input", "-i", default="divvy_trips_cleaned.csv", help="Path to the cleaned trip CSV")
    parser.add_argument("--output", "-o", default="divvy_summary_output", help="Directory to write results")
    parser.add_argument("--viz", action="store_true", help="Enable chart generation (disabled by default)")
    args = parser.parse_args()

    print(f"Summarizing trips from {args.input}")
    print("=" * 60)

    trips = load_cleaned(args.input)
    summarize(trips, args.output, visualize=args.viz)
    print(f"\nSummary tables saved to the '{args.output}' directory.")
