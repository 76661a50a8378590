"""
Dashboard card aggregation for sensor readings.

Turns a filtered record frame into the counts shown on the dashboard cards:

- Point-in-time cards: each record's latest reading is classified once into
  exactly one bucket of the profile (or 'no_data').
- Consistency cards: each consistency bucket gets its own pass over the
  records; a record counts when all 7 days fall in the bucket's range.

The two card families are independent, so one ESR can count towards
'below_0.2' and 'consistent_zero' at the same time.
"""

import logging
from typing import Dict, Sequence

import pandas as pd

from classification import (
    NO_DATA_BUCKET,
    TOTAL_KEY,
    UNCLASSIFIED_BUCKET,
    classify,
    classify_consistency,
    classify_values,
    count_days_in_bucket,
)
from config import ALL, GEO_LEVEL_COLUMNS, MetricProfile
from readings import latest_reading_date, latest_values, numeric_window, series_values

# Configure logging
logger = logging.getLogger(__name__)


def annotate_latest(records: pd.DataFrame, profile: MetricProfile) -> pd.DataFrame:
    """
    Add latest reading, its date and its bucket to each record.

    Adds columns:
    - latest_value: most recent usable reading (NaN if none)
    - latest_date: date label of that reading
    - bucket / status_label: point-in-time classification

    Args:
        records: Record frame with the profile's value/date columns
        profile: Metric profile to classify with

    Returns:
        pd.DataFrame: Copy of `records` with the annotation columns
    """
    df = records.copy()

    df["latest_value"] = latest_values(df, profile.value_columns)

    if profile.date_columns:
        df["latest_date"] = [
            latest_reading_date(
                series_values(row, profile.value_columns),
                series_values(row, profile.date_columns),
            )
            for _, row in df.iterrows()
        ]
    else:
        df["latest_date"] = None

    labels = classify_values(df["latest_value"], profile.buckets)
    df["bucket"] = labels["bucket"]
    df["status_label"] = labels["status_label"]

    return df


def count_point_in_time(records: pd.DataFrame, profile: MetricProfile) -> Dict[str, int]:
    """
    Count records per point-in-time bucket.

    Every profile bucket and 'no_data' is present in the result, zero or not;
    'unclassified' only appears when some reading fell outside every bucket.
    Counts sum to the number of records.
    """
    counts = {bucket.name: 0 for bucket in profile.buckets}
    counts[NO_DATA_BUCKET] = 0

    latest = latest_values(records, profile.value_columns)
    for value in latest:
        bucket = classify(value, profile.buckets).bucket
        counts[bucket] = counts.get(bucket, 0) + 1

    if counts.get(UNCLASSIFIED_BUCKET):
        logger.warning(f"{counts[UNCLASSIFIED_BUCKET]:,} {profile.name} readings fell outside every bucket")

    return counts


def consistency_mask(records: pd.DataFrame, profile: MetricProfile, bucket_name: str) -> pd.Series:
    """
    Rows whose full 7-day window stays inside a consistency bucket.

    Raises:
        ValueError: If the profile has no such consistency bucket
    """
    bucket = next((b for b in profile.consistency_buckets if b.name == bucket_name), None)
    if bucket is None:
        raise ValueError(f"Unknown consistency bucket for {profile.name}: {bucket_name}")

    if records.empty:
        return pd.Series(False, index=records.index, dtype=bool)

    window = numeric_window(records, profile.value_columns)
    flags = [
        classify_consistency(list(values), bucket.matches)
        for values in window.itertuples(index=False, name=None)
    ]
    return pd.Series(flags, index=records.index, dtype=bool)


def count_consistency(records: pd.DataFrame, profile: MetricProfile) -> Dict[str, int]:
    """Count records per consistency bucket, one pass per bucket."""
    return {
        bucket.name: int(consistency_mask(records, profile, bucket.name).sum())
        for bucket in profile.consistency_buckets
    }


def aggregate(records: pd.DataFrame, profile: MetricProfile) -> Dict[str, int]:
    """
    Compute all dashboard card counts for a record set.

    Args:
        records: Filtered record frame
        profile: Metric profile with point-in-time and consistency buckets

    Returns:
        dict: {'total': n, <bucket>: count, 'no_data': count, <consistency bucket>: count}

    Example:
        >>> aggregate(chlorine_df, get_profile('chlorine'))
        {'total': 120, 'below_0.2': 31, 'between_0.2_0.5': 58, 'above_0.5': 19,
         'no_data': 12, 'consistent_zero': 4, 'consistent_below': 6, ...}
    """
    # Same name in both families would make the cards ambiguous
    overlap = {b.name for b in profile.buckets} & {b.name for b in profile.consistency_buckets}
    if overlap:
        raise ValueError(f"Bucket names used in both card families: {sorted(overlap)}")

    counts = {TOTAL_KEY: int(len(records))}
    counts.update(count_point_in_time(records, profile))
    counts.update(count_consistency(records, profile))

    logger.info(f"Aggregated {len(records):,} {profile.name} records into {len(counts) - 1} cards")
    return counts


def filter_by_bucket(records: pd.DataFrame, profile: MetricProfile, bucket_name: str) -> pd.DataFrame:
    """
    Rows behind a clicked card.

    "all" returns the records unchanged; 'no_data' and every point-in-time
    bucket select on the latest reading; consistency buckets select on the
    whole window. An unknown bucket name yields an empty frame.
    """
    if not bucket_name or bucket_name == ALL:
        return records

    if any(b.name == bucket_name for b in profile.consistency_buckets):
        return records[consistency_mask(records, profile, bucket_name)]

    point_names = {b.name for b in profile.buckets} | {NO_DATA_BUCKET, UNCLASSIFIED_BUCKET}
    if bucket_name not in point_names:
        logger.warning(f"Unknown bucket '{bucket_name}' for {profile.name}; returning no rows")
        return records.iloc[0:0]

    latest = latest_values(records, profile.value_columns)
    buckets = pd.Series(
        [classify(v, profile.buckets).bucket for v in latest],
        index=records.index,
        dtype=object,
    )
    return records[buckets == bucket_name]


def aggregate_by_level(
    records: pd.DataFrame,
    profile: MetricProfile,
    level: str = "region",
    level_columns: Dict[str, str] = None
) -> pd.DataFrame:
    """
    Card counts per value of one geographic level (regional rollup).

    Returns:
        pd.DataFrame: One row per level value, sorted by name, with the level
        column followed by the aggregate() counts
    """
    columns = GEO_LEVEL_COLUMNS if level_columns is None else level_columns
    col = columns.get(level, level)

    if col not in records.columns:
        raise ValueError(f"Column '{col}' for level '{level}' not in records")

    rows = []
    for value, group in records.groupby(col, sort=True, dropna=True):
        counts = {level: value}
        counts.update(aggregate(group, profile))
        rows.append(counts)

    if not rows:
        empty_columns = [level, TOTAL_KEY] + [b.name for b in profile.buckets] + [NO_DATA_BUCKET]
        empty_columns += [b.name for b in profile.consistency_buckets]
        return pd.DataFrame(columns=empty_columns)

    result = pd.DataFrame(rows).fillna(0)
    count_columns = [c for c in result.columns if c != level]
    result[count_columns] = result[count_columns].astype(int)
    logger.info(f"Rolled up {len(records):,} {profile.name} records into {len(result)} {level} groups")
    return result


# ============================================================================
# Scheme Summary
# ============================================================================

COMPLETED_STATUS = "Fully Completed"

# Scheme sheet columns summed into the scheme summary cards
SCHEME_SUM_COLUMNS = (
    "number_of_village",
    "total_villages_integrated",
    "fully_completed_villages",
    "total_number_of_esr",
    "total_esr_integrated",
    "no_fully_completed_esr",
    "flow_meters_connected",
    "pressure_transmitter_connected",
    "residual_chlorine_analyzer_connected",
)

# (summary key, completed column, total column)
COMPLETION_RATIOS = (
    ("scheme_completion_pct", "fully_completed_schemes", "total_schemes"),
    ("village_completion_pct", "fully_completed_villages", "total_villages_integrated"),
    ("esr_completion_pct", "no_fully_completed_esr", "total_esr_integrated"),
)

SCHEME_SUMMARY_KEYS = (
    ["total_schemes", "fully_completed_schemes"]
    + list(SCHEME_SUM_COLUMNS)
    + [key for key, _, _ in COMPLETION_RATIOS]
)


def completion_percentage(completed: float, total: float) -> float:
    """Share of `total` that is completed, in percent (0 when total is 0)."""
    if not total:
        return 0.0
    return round(100.0 * completed / total, 1)


def scheme_summary(schemes: pd.DataFrame) -> Dict[str, float]:
    """
    Scheme status cards for a (filtered) scheme frame.

    Schemes are counted once per scheme_id even when the sheet lists a scheme
    on several rows; village, ESR and sensor columns are summed over rows.
    A scheme is fully completed when mjp_fully_completed is "Fully Completed".

    Raises:
        ValueError: If the frame has no scheme_id column

    Example:
        >>> scheme_summary(FilterState().apply(schemes))['total_schemes']
        412
    """
    if "scheme_id" not in schemes.columns:
        raise ValueError("Scheme summary needs a 'scheme_id' column")

    ids = schemes["scheme_id"]
    summary = {"total_schemes": int(ids.dropna().nunique())}

    if "mjp_fully_completed" in schemes.columns:
        completed = (schemes["mjp_fully_completed"] == COMPLETED_STATUS).fillna(False).astype(bool)
        summary["fully_completed_schemes"] = int(ids[completed].dropna().nunique())
    else:
        summary["fully_completed_schemes"] = 0

    for col in SCHEME_SUM_COLUMNS:
        if col in schemes.columns:
            summary[col] = int(pd.to_numeric(schemes[col], errors="coerce").fillna(0).sum())
        else:
            summary[col] = 0

    for key, completed_key, total_key in COMPLETION_RATIOS:
        summary[key] = completion_percentage(summary[completed_key], summary[total_key])

    return summary


def scheme_summary_by_level(
    schemes: pd.DataFrame,
    level: str = "region",
    level_columns: Dict[str, str] = None
) -> pd.DataFrame:
    """
    Scheme summary per value of one geographic level.

    Returns:
        pd.DataFrame: One row per level value, sorted by name, with the level
        column followed by the scheme_summary() keys
    """
    columns = GEO_LEVEL_COLUMNS if level_columns is None else level_columns
    col = columns.get(level, level)

    if col not in schemes.columns:
        raise ValueError(f"Column '{col}' for level '{level}' not in records")

    rows = []
    for value, group in schemes.groupby(col, sort=True, dropna=True):
        summary = {level: value}
        summary.update(scheme_summary(group))
        rows.append(summary)

    if not rows:
        return pd.DataFrame(columns=[level] + SCHEME_SUMMARY_KEYS)

    logger.info(f"Summarised {len(schemes):,} scheme rows into {len(rows)} {level} groups")
    return pd.DataFrame(rows, columns=[level] + SCHEME_SUMMARY_KEYS)


def days_per_bucket(row: pd.Series, profile: MetricProfile, buckets: Sequence = None) -> Dict[str, int]:
    """Number of days in the window that fell in each point-in-time bucket."""
    values = series_values(row, profile.value_columns)
    return {
        bucket.name: count_days_in_bucket(values, bucket)
        for bucket in (buckets or profile.buckets)
    }
