"""
Sensor reading helpers for the 7-day window.

Every sensor record carries day1..day7 value columns (day7 is the most recent)
with a matching date column per day. Uploaded sheets leave gaps, blanks and
stray text in these slots, so every helper here treats anything that is not a
finite number as a missing reading instead of raising.
"""

import logging
import math
from typing import Any, List, Optional, Sequence

import numpy as np
import pandas as pd

# Configure logging
logger = logging.getLogger(__name__)


SERIES_LENGTH = 7


def to_number(value: Any) -> Optional[float]:
    """
    Convert a raw cell to a float, or None if it is not a usable reading.

    Example:
        >>> to_number(" 0.35 ")
        0.35
        >>> to_number("n/a") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None

    try:
        number = float(value)
    except (TypeError, ValueError):
        return None

    if math.isnan(number) or math.isinf(number):
        return None

    return number


def defined_values(series: Sequence[Any]) -> List[float]:
    """Return the usable readings of a window, oldest first."""
    values = []
    for raw in series:
        number = to_number(raw)
        if number is not None:
            values.append(number)
    return values


def latest_index(series: Sequence[Any]) -> Optional[int]:
    """Position of the most recent usable reading, scanning day7 down to day1."""
    items = list(series)
    for idx in range(len(items) - 1, -1, -1):
        if to_number(items[idx]) is not None:
            return idx
    return None


def latest_value(series: Sequence[Any]) -> Optional[float]:
    """
    Return the most recent usable reading of a window.

    Args:
        series: Readings ordered day1..day7

    Returns:
        float or None: Value of the highest-indexed numeric slot

    Example:
        >>> latest_value([12, None, "", 8, None, None, None])
        8.0
    """
    idx = latest_index(series)
    if idx is None:
        return None
    return to_number(list(series)[idx])


def latest_reading_date(series: Sequence[Any], dates: Sequence[Any]) -> Optional[str]:
    """Date label paired with the latest reading, if the sheet recorded one."""
    idx = latest_index(series)
    dates = list(dates)
    if idx is None or idx >= len(dates):
        return None

    date = dates[idx]
    if date is None or (not isinstance(date, str) and pd.isna(date)):
        return None

    date = str(date).strip()
    return date or None


def series_values(row: pd.Series, columns: Sequence[str]) -> List[Any]:
    """Extract a row's window in day order; absent columns read as None."""
    return [row[col] if col in row.index else None for col in columns]


def numeric_window(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """
    Numeric view of a frame's reading columns.

    Columns missing from the frame are added as all-NaN. The input frame
    is not modified.
    """
    window = df.reindex(columns=list(columns))
    return pd.DataFrame(
        {col: window[col].map(to_number) for col in columns},
        index=df.index,
        columns=list(columns),
    ).astype(float)


def latest_values(df: pd.DataFrame, columns: Sequence[str]) -> pd.Series:
    """
    Vectorised latest-value extraction for a whole frame.

    Returns:
        pd.Series: Latest reading per row (NaN when the window is empty)
    """
    if not len(columns):
        return pd.Series(np.nan, index=df.index, dtype=float)

    window = numeric_window(df, columns)
    latest = window.ffill(axis=1).iloc[:, -1]

    logger.debug(f"Extracted latest values for {len(df):,} rows ({latest.notna().sum():,} with data)")
    return latest.rename("latest_value")
