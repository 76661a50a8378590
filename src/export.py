"""
Spreadsheet export of dashboard detail tables.

Builds the flat table users download from a dashboard (identity and place
columns, latest reading and status, the 7 daily readings with their dates in
the header, days per range and consistency flags) and writes it as CSV or Excel.
"""

import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from aggregation import annotate_latest, consistency_mask, days_per_bucket
from config import MetricProfile

# Configure logging
logger = logging.getLogger(__name__)


# Source column -> export header, in export order
IDENTITY_COLUMNS = {
    "scheme_id": "Scheme ID",
    "scheme_name": "Scheme Name",
    "region": "Region",
    "circle": "Circle",
    "division": "Division",
    "sub_division": "Sub Division",
    "block": "Block",
    "village_name": "Village Name",
    "esr_name": "ESR Name",
}

MISSING_READING = "N/A"
NO_DATA_TEXT = "No data"


def format_date_header(date_value) -> Optional[str]:
    """
    Short day-month label for a reading date, e.g. '07 Mar'.

    Returns None when the value is missing or not a date.
    """
    if date_value is None or (not isinstance(date_value, str) and pd.isna(date_value)):
        return None

    parsed = pd.to_datetime(date_value, errors='coerce', dayfirst=False)
    if pd.isna(parsed):
        return None
    return parsed.strftime('%d %b')


def day_headers(records: pd.DataFrame, profile: MetricProfile) -> list:
    """
    Header per reading column, using the most common date seen for that day.

    Falls back to 'Day N' when the sheet has no usable dates for a day.
    """
    headers = []
    for day, value_col in enumerate(profile.value_columns, start=1):
        label = None
        if day <= len(profile.date_columns) and profile.date_columns[day - 1] in records.columns:
            dates = records[profile.date_columns[day - 1]].dropna()
            if not dates.empty:
                label = format_date_header(dates.mode().iloc[0])

        unit = f" {profile.unit}" if profile.unit else ""
        headers.append(f"{profile.label} ({label or f'Day {day}'}){unit}")
    return headers


def build_export_frame(records: pd.DataFrame, profile: MetricProfile) -> pd.DataFrame:
    """
    Build the export table for a filtered record set.

    Args:
        records: Filtered (and optionally card-selected) records
        profile: Metric profile of the dashboard

    Returns:
        pd.DataFrame: One row per record with human-readable headers
    """
    annotated = annotate_latest(records, profile)
    export = pd.DataFrame(index=annotated.index)

    for col, header in IDENTITY_COLUMNS.items():
        if col in annotated.columns:
            export[header] = annotated[col].fillna(MISSING_READING)

    unit = f" ({profile.unit})" if profile.unit else ""
    export[f"Latest {profile.label} Value{unit}"] = annotated["latest_value"].map(
        lambda v: f"{v:.2f}" if pd.notna(v) else NO_DATA_TEXT
    )
    export["Latest Reading Date"] = annotated["latest_date"].fillna(MISSING_READING)
    export["Status"] = annotated["status_label"]

    for header, value_col in zip(day_headers(annotated, profile), profile.value_columns):
        if value_col in annotated.columns:
            values = pd.to_numeric(annotated[value_col], errors='coerce')
        else:
            values = pd.Series(float('nan'), index=annotated.index)
        export[header] = values.map(lambda v: f"{v:.2f}" if pd.notna(v) else MISSING_READING)

    day_counts = [days_per_bucket(row, profile) for _, row in annotated.iterrows()]
    for bucket in profile.buckets:
        export[f"Days {bucket.label}"] = [counts.get(bucket.name, 0) for counts in day_counts]

    for bucket in profile.consistency_buckets:
        flags = consistency_mask(annotated, profile, bucket.name)
        export[bucket.label] = flags.map({True: "Yes", False: "No"})

    return export.reset_index(drop=True)


def export_records(
    records: pd.DataFrame,
    profile: MetricProfile,
    output_path: str,
    sheet_name: Optional[str] = None
) -> Path:
    """
    Write the export table to .csv or .xlsx, chosen by the file suffix.

    Returns:
        Path: The written file

    Raises:
        ValueError: If the suffix is not .csv or .xlsx
    """
    path = Path(output_path)
    suffix = path.suffix.lower()
    if suffix not in {'.csv', '.xlsx'}:
        raise ValueError(f"Export path must end in .csv or .xlsx: {output_path}")

    path.parent.mkdir(parents=True, exist_ok=True)
    export = build_export_frame(records, profile)

    if suffix == '.csv':
        export.to_csv(path, index=False)
    else:
        export.to_excel(path, index=False, sheet_name=sheet_name or f"{profile.label} Data"[:31], engine='openpyxl')

    logger.info(f"✓ Exported {len(export):,} {profile.name} records to {path}")
    return path
