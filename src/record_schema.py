"""
Record kinds and boundary validation.

Each sheet the dashboard consumes is one record kind: scheme status rows,
chlorine / pressure sensor rows per ESR, and LPCD rows per village. Frames
are validated once when loaded so the filter and aggregation code can rely
on the columns being present and typed:

- required identity columns must exist (ValueError otherwise)
- every optional column of the kind is added if absent, as missing values
- reading columns are coerced to floats (bad cells become NaN)
- text columns are stripped; blank cells become missing
- a 'record_kind' tag column identifies the kind
"""

import logging
from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
import pandas as pd

from config import DAYS, GEO_LEVEL_COLUMNS, STATUS_FIELDS
from data_cleaning import normalize_text_field
from readings import to_number

# Configure logging
logger = logging.getLogger(__name__)


GEO_COLUMNS = tuple(GEO_LEVEL_COLUMNS.values())

RECORD_KIND_COLUMN = "record_kind"


@dataclass(frozen=True)
class RecordKind:
    """Column layout of one record kind."""
    name: str
    required_columns: Tuple[str, ...]
    text_columns: Tuple[str, ...] = ()
    numeric_columns: Tuple[str, ...] = ()
    date_columns: Tuple[str, ...] = ()
    profile_name: str = None

    @property
    def columns(self) -> Tuple[str, ...]:
        ordered = []
        for col in (
            GEO_COLUMNS + self.required_columns + self.text_columns
            + self.numeric_columns + self.date_columns
        ):
            if col not in ordered:
                ordered.append(col)
        return tuple(ordered)


def _days(template: str) -> Tuple[str, ...]:
    return tuple(template.format(day=day) for day in DAYS)


SCHEME_RECORD = RecordKind(
    name="scheme",
    required_columns=("scheme_id", "scheme_name"),
    text_columns=("agency", "scheme_functional_status", "dashboard_url") + STATUS_FIELDS,
    numeric_columns=(
        "number_of_village",
        "total_villages_integrated",
        "no_of_functional_village",
        "no_of_partial_village",
        "no_of_non_functional_village",
        "fully_completed_villages",
        "total_number_of_esr",
        "total_esr_integrated",
        "no_fully_completed_esr",
        "balance_to_complete_esr",
        "flow_meters_connected",
        "pressure_transmitter_connected",
        "residual_chlorine_analyzer_connected",
    ),
)

CHLORINE_RECORD = RecordKind(
    name="chlorine",
    required_columns=("scheme_id", "esr_name"),
    text_columns=("scheme_name", "sensor_id", "dashboard_url") + STATUS_FIELDS,
    numeric_columns=_days("chlorine_value_{day}"),
    date_columns=_days("chlorine_date_day_{day}"),
    profile_name="chlorine",
)

PRESSURE_RECORD = RecordKind(
    name="pressure",
    required_columns=("scheme_id", "esr_name"),
    text_columns=("scheme_name", "sensor_id", "dashboard_url") + STATUS_FIELDS,
    numeric_columns=_days("pressure_value_{day}"),
    date_columns=_days("pressure_date_day_{day}"),
    profile_name="pressure",
)

LPCD_RECORD = RecordKind(
    name="lpcd",
    required_columns=("scheme_id", "village_name"),
    text_columns=("scheme_name", "dashboard_url") + STATUS_FIELDS,
    numeric_columns=("population", "number_of_esr") + _days("lpcd_value_day{day}") + _days("water_value_day{day}"),
    date_columns=_days("lpcd_date_day{day}") + _days("water_date_day{day}"),
    profile_name="lpcd",
)

RECORD_KINDS: Dict[str, RecordKind] = {
    kind.name: kind for kind in (SCHEME_RECORD, CHLORINE_RECORD, PRESSURE_RECORD, LPCD_RECORD)
}


def get_record_kind(name: str) -> RecordKind:
    """
    Look up a record kind by name.

    Raises:
        ValueError: If the kind is unknown
    """
    key = (name or "").lower()
    if key not in RECORD_KINDS:
        raise ValueError(f"Unknown record kind: {name}. Available: {sorted(RECORD_KINDS)}")
    return RECORD_KINDS[key]


def validate_records(df: pd.DataFrame, kind: RecordKind) -> pd.DataFrame:
    """
    Validate and type a frame of one record kind.

    Args:
        df: Frame with standardized (snake_case) column names
        kind: Record kind the frame should hold

    Returns:
        pd.DataFrame: Typed copy with every column of the kind present
        and the 'record_kind' tag set

    Raises:
        ValueError: If required columns are missing or the frame is tagged
                    with a different kind
    """
    missing_cols = [col for col in kind.required_columns if col not in df.columns]
    if missing_cols:
        logger.error(f"{kind.name} records missing required columns: {missing_cols}")
        raise ValueError(f"Missing required columns for {kind.name} records: {missing_cols}")

    if RECORD_KIND_COLUMN in df.columns:
        tags = set(df[RECORD_KIND_COLUMN].dropna().unique())
        if tags - {kind.name}:
            raise ValueError(f"Frame tagged {sorted(tags)} cannot be validated as {kind.name} records")

    validated = df.copy()

    added = [col for col in kind.columns if col not in validated.columns]
    for col in added:
        validated[col] = np.nan
    if added:
        logger.debug(f"Added {len(added)} absent optional column(s) to {kind.name} records")

    for col in GEO_COLUMNS + kind.required_columns + kind.text_columns + kind.date_columns:
        validated[col] = normalize_text_field(validated[col]).astype(object)

    bad_cells = 0
    for col in kind.numeric_columns:
        raw = validated[col]
        numbers = raw.map(to_number).astype(float)
        bad_cells += int((raw.notna() & numbers.isna()).sum())
        validated[col] = numbers

    if bad_cells:
        logger.warning(f"{bad_cells:,} non-numeric value(s) in {kind.name} readings treated as missing")

    blank_ids = validated[list(kind.required_columns)].isna().any(axis=1)
    if blank_ids.any():
        logger.warning(f"{int(blank_ids.sum()):,} {kind.name} record(s) with blank {list(kind.required_columns)}")

    validated[RECORD_KIND_COLUMN] = kind.name

    logger.info(f"✓ Validated {len(validated):,} {kind.name} records")
    return validated
