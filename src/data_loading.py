"""
Data loading module for scheme and sensor sheets.

Reads CSV and Excel extracts into validated record frames. CSV files are read
in chunks so large state-wide extracts do not need to fit in memory twice.
Column names are standardized to snake_case and must then match the record
kind's layout; no header guessing is attempted.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from config import STATUS_FIELDS
from data_cleaning import clean_location_columns, standardize_columns
from record_schema import RecordKind, get_record_kind, validate_records

# Configure logging
logger = logging.getLogger(__name__)


CSV_SUFFIXES = {'.csv'}
EXCEL_SUFFIXES = {'.xlsx', '.xlsm'}
SUPPORTED_SUFFIXES = CSV_SUFFIXES | EXCEL_SUFFIXES


def read_table(
    file_path: str,
    sheet_name: Optional[str] = None,
    chunksize: int = 100_000
) -> pd.DataFrame:
    """
    Read one CSV or Excel file into a DataFrame.

    Args:
        file_path: Path to a .csv or .xlsx file
        sheet_name: Excel sheet to read (default: first sheet)
        chunksize: Number of CSV rows to read per chunk (default: 100,000)

    Returns:
        pd.DataFrame: Raw table; empty if the file has no rows

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file type is not supported
    """
    path = Path(file_path)

    if not path.exists():
        logger.error(f"File not found: {file_path}")
        raise FileNotFoundError(f"File does not exist: {file_path}")

    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported file type '{suffix}'. Expected one of {sorted(SUPPORTED_SUFFIXES)}")

    logger.info(f"Loading file: {path.name}")

    if suffix in EXCEL_SUFFIXES:
        df = pd.read_excel(path, sheet_name=sheet_name or 0, engine='openpyxl')
        logger.info(f"Completed {path.name}: {len(df):,} rows")
        return df

    try:
        chunks = []
        for chunk in pd.read_csv(path, chunksize=chunksize, low_memory=True):
            chunks.append(chunk)
            logger.debug(f"  read chunk {len(chunks)} ({len(chunk):,} rows)")

    except pd.errors.EmptyDataError:
        logger.warning(f"Empty CSV file: {path.name}")
        return pd.DataFrame()

    except pd.errors.ParserError as e:
        logger.error(f"Parser error in {path.name}: {e}")
        raise

    if not chunks:
        return pd.DataFrame()

    df = pd.concat(chunks, ignore_index=True)
    logger.info(f"Completed {path.name}: {len(chunks)} chunks, {len(df):,} rows")
    return df


def prepare_records(
    df: pd.DataFrame,
    kind: RecordKind,
    clean_locations: bool = True
) -> pd.DataFrame:
    """Standardize headers, clean place names and validate a raw table."""
    if df.empty and not len(df.columns):
        logger.warning(f"No rows or headers to validate; returning empty {kind.name} records")
        df = pd.DataFrame(columns=list(kind.required_columns))

    prepared = standardize_columns(df)
    if clean_locations:
        prepared = clean_location_columns(prepared)
    return validate_records(prepared, kind)


def load_records(
    file_path: str,
    kind: str,
    sheet_name: Optional[str] = None,
    clean_locations: bool = True
) -> pd.DataFrame:
    """
    Load a sheet of one record kind.

    Example:
        >>> chlorine = load_records('dataset/chlorine_week_12.xlsx', 'chlorine')
        >>> chlorine['record_kind'].unique()
        array(['chlorine'], dtype=object)
    """
    record_kind = get_record_kind(kind)
    return prepare_records(read_table(file_path, sheet_name=sheet_name), record_kind, clean_locations)


def find_data_files(folder_path: str) -> List[Path]:
    """
    Discover supported data files under a folder.

    Raises:
        FileNotFoundError: If folder_path does not exist
        ValueError: If it is not a directory
    """
    folder = Path(folder_path)

    if not folder.exists():
        logger.error(f"Folder not found: {folder_path}")
        raise FileNotFoundError(f"Folder does not exist: {folder_path}")

    if not folder.is_dir():
        logger.error(f"Path is not a directory: {folder_path}")
        raise ValueError(f"Path is not a directory: {folder_path}")

    files = sorted(
        p for p in folder.glob("**/*")
        if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES and not p.name.startswith('~$')
    )
    logger.info(f"Found {len(files)} data file(s) in {folder_path}")
    return files


def load_folder(folder_path: str, kind: str, clean_locations: bool = True) -> pd.DataFrame:
    """
    Load and concatenate every data file of one kind in a folder.

    Raises:
        ValueError: If the folder holds no supported files
    """
    record_kind = get_record_kind(kind)
    files = find_data_files(folder_path)

    if not files:
        raise ValueError(f"No CSV or Excel files found in folder: {folder_path}")

    frames = []
    for path in files:
        raw = read_table(str(path))
        if raw.empty:
            continue
        frames.append(standardize_columns(raw))

    if not frames:
        logger.warning(f"All files in {folder_path} were empty")
        return validate_records(pd.DataFrame(columns=list(record_kind.required_columns)), record_kind)

    combined = pd.concat(frames, ignore_index=True, sort=False)
    if clean_locations:
        combined = clean_location_columns(combined)

    logger.info(f"Dataset loading complete: {len(combined):,} rows from {len(frames)} file(s)")
    return validate_records(combined, record_kind)


def join_scheme_status(
    records: pd.DataFrame,
    schemes: pd.DataFrame,
    status_columns: Sequence[str] = STATUS_FIELDS,
    key: str = 'scheme_id'
) -> pd.DataFrame:
    """
    Copy scheme status fields onto sensor records by scheme ID.

    Sensor sheets do not carry commissioning or completion status; the
    scheme sheet does. Values already present on a sensor record are kept.
    A scheme listed several times (one row per block) contributes its first row.

    Returns:
        pd.DataFrame: Copy of `records` with the status columns filled
    """
    if key not in records.columns or key not in schemes.columns:
        raise ValueError(f"Both frames need a '{key}' column to join scheme status")

    columns = [col for col in status_columns if col in schemes.columns]
    if not columns:
        logger.warning("Scheme frame has none of the status columns; nothing to join")
        return records.copy()

    lookup = schemes.dropna(subset=[key]).drop_duplicates(subset=[key], keep='first')
    lookup = lookup.set_index(key)[columns]

    joined = records.copy()
    for col in columns:
        mapped = joined[key].map(lookup[col])
        if col in joined.columns:
            joined[col] = joined[col].where(joined[col].notna(), mapped)
        else:
            joined[col] = mapped

    matched = joined[key].isin(lookup.index).sum()
    logger.info(f"Joined scheme status onto {matched:,}/{len(joined):,} records")
    return joined
