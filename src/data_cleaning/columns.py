"""
Column-level cleaning for uploaded sheets.

All functions are pure: they return a new frame and leave the input alone.
"""

import logging
import re

import numpy as np
import pandas as pd

# Configure logging
logger = logging.getLogger(__name__)


def standardize_column_name(name) -> str:
    """
    Convert one header to snake_case.

    Example:
        >>> standardize_column_name('Sub Division')
        'sub_division'
        >>> standardize_column_name('Chlorine Value-7')
        'chlorine_value_7'
    """
    standardized = str(name).strip().lower()
    standardized = standardized.replace(' ', '_').replace('-', '_').replace('.', '_')
    standardized = re.sub(r'[^a-z0-9_]', '', standardized)
    standardized = re.sub(r'_+', '_', standardized)
    return standardized.strip('_')


def standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Standardize column names to snake_case convention.

    Converts column names by:
    - Converting to lowercase
    - Replacing spaces, hyphens and dots with underscores
    - Removing special characters except underscores
    - Collapsing multiple underscores to single
    - Stripping leading/trailing underscores

    Example:
        >>> df = pd.DataFrame({'Scheme ID': [1], 'Village Name': ['Khapa']})
        >>> list(standardize_columns(df).columns)
        ['scheme_id', 'village_name']
    """
    original_columns = df.columns.tolist()
    standardized_columns = []

    for col in original_columns:
        standardized = standardize_column_name(col)

        # Handle empty column names after cleaning
        if not standardized:
            standardized = f'column_{len(standardized_columns)}'
            logger.warning(f"Empty column name after standardization, using: {standardized}")

        standardized_columns.append(standardized)

    df_cleaned = df.copy()
    df_cleaned.columns = standardized_columns

    changes = [
        (orig, std) for orig, std in zip(original_columns, standardized_columns)
        if orig != std
    ]
    if changes:
        logger.info(f"Standardized {len(changes)} column name(s)")
        for orig, std in changes[:5]:
            logger.debug(f"  '{orig}' -> '{std}'")
        if len(changes) > 5:
            logger.debug(f"  ... and {len(changes) - 5} more")

    duplicates = pd.Index(standardized_columns)[pd.Index(standardized_columns).duplicated()].unique()
    if len(duplicates):
        logger.warning(f"Duplicate columns after standardization, keeping first: {list(duplicates)}")
        df_cleaned = df_cleaned.loc[:, ~df_cleaned.columns.duplicated()]

    return df_cleaned


def normalize_text_field(
    series: pd.Series,
    uppercase: bool = False,
    strip_whitespace: bool = True
) -> pd.Series:
    """
    Normalize a text column; blank cells become NaN.

    Args:
        series: Pandas Series containing text data
        uppercase: Convert to uppercase if True
        strip_whitespace: Remove leading/trailing whitespace if True
    """
    normalized = series.copy()
    is_missing = normalized.isna()

    normalized = normalized.astype(str)

    if strip_whitespace:
        normalized = normalized.str.strip()

    if uppercase:
        normalized = normalized.str.upper()

    normalized = normalized.where(~is_missing, np.nan)
    normalized = normalized.replace('', np.nan)
    return normalized
