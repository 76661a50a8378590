"""
Configuration for the AquaWatch dashboard core.

Holds the geographic hierarchy, the metric profiles (value/date column layout
and bucket tables for chlorine, pressure and LPCD dashboards) and the runtime
settings read from the environment.

Bucket tables are plain data in the same shape as a rules table:
each bucket is a name, a display label and a list of (operator, threshold)
conditions that must all hold. Tables can also be loaded from JSON so a new
dashboard only needs a new table, not new code.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from classification import BucketDefinition, build_buckets
from readings import SERIES_LENGTH

# Configure logging
logger = logging.getLogger(__name__)


PROJECT_ROOT = Path(__file__).parent.parent

# Sentinel meaning "no selection" for every filter
ALL = "all"

# Readings window: day1 (oldest) .. day7 (most recent)
DAYS = list(range(1, SERIES_LENGTH + 1))

# Geographic hierarchy, coarsest first
GEO_LEVELS = ("region", "division", "sub_division", "circle", "block", "village")

# Column holding each level in the record frames
GEO_LEVEL_COLUMNS = {
    "region": "region",
    "division": "division",
    "sub_division": "sub_division",
    "circle": "circle",
    "block": "block",
    "village": "village_name",
}

# Status fields shown as filters on the scheme and sensor dashboards
STATUS_FIELDS = ("mjp_commissioned", "mjp_fully_completed", "fully_completion_scheme_status")

# Columns scanned by the free-text search box
SEARCH_COLUMNS = ("scheme_name", "region", "village_name", "esr_name")

DEFAULT_PAGE_SIZE = 10
PAGE_SIZE_OPTIONS = (10, 25, 50, 100)


# ============================================================================
# Runtime Settings
# ============================================================================

@dataclass(frozen=True)
class Settings:
    app_name: str = "AquaWatch Dashboard"
    page_size: int = int(os.getenv("AQUAWATCH_PAGE_SIZE", str(DEFAULT_PAGE_SIZE)))
    data_dir: str = os.getenv("AQUAWATCH_DATA_DIR", str((PROJECT_ROOT / "dataset").resolve()))
    output_dir: str = os.getenv("AQUAWATCH_OUTPUT_DIR", str((PROJECT_ROOT / "data_cache").resolve()))
    log_level: str = os.getenv("AQUAWATCH_LOG_LEVEL", "INFO").upper()


settings = Settings()


# ============================================================================
# Metric Profiles
# ============================================================================

@dataclass(frozen=True)
class MetricProfile:
    """Column layout and bucket tables for one sensor metric."""
    name: str
    label: str
    unit: str
    value_columns: Tuple[str, ...]
    date_columns: Tuple[str, ...]
    buckets: Tuple[BucketDefinition, ...]
    consistency_buckets: Tuple[BucketDefinition, ...] = field(default_factory=tuple)

    @property
    def bucket_names(self) -> List[str]:
        return [b.name for b in self.buckets] + [b.name for b in self.consistency_buckets]

    def get_bucket(self, name: str) -> Optional[BucketDefinition]:
        for bucket in self.buckets + self.consistency_buckets:
            if bucket.name == name:
                return bucket
        return None


# Chlorine (mg/l): below < 0.2, optimal 0.2-0.5 inclusive, above > 0.5
CHLORINE_TABLE = {
    "label": "Residual Chlorine",
    "unit": "mg/l",
    "value_column": "chlorine_value_{day}",
    "date_column": "chlorine_date_day_{day}",
    "buckets": [
        {"name": "below_0.2", "label": "Below Range", "conditions": [("<", 0.2)]},
        {"name": "between_0.2_0.5", "label": "Optimal", "conditions": [(">=", 0.2), ("<=", 0.5)]},
        {"name": "above_0.5", "label": "Above Range", "conditions": [(">", 0.5)]},
    ],
    "consistency_buckets": [
        {"name": "consistent_zero", "label": "Consistent Zero Chlorine (7 days)", "conditions": [("==", 0)]},
        {"name": "consistent_below", "label": "Consistent Below Range (7 days)", "conditions": [(">", 0), ("<", 0.2)]},
        {"name": "consistent_optimal", "label": "Consistent Optimal Range (7 days)", "conditions": [(">=", 0.2), ("<=", 0.5)]},
        {"name": "consistent_above", "label": "Consistent Above Range (7 days)", "conditions": [(">", 0.5)]},
    ],
}

# Pressure (m): below < 0.2, optimal 0.2-0.7 inclusive, above > 0.7
PRESSURE_TABLE = {
    "label": "Pressure",
    "unit": "m",
    "value_column": "pressure_value_{day}",
    "date_column": "pressure_date_day_{day}",
    "buckets": [
        {"name": "below_0.2", "label": "Below Range", "conditions": [("<", 0.2)]},
        {"name": "between_0.2_0.7", "label": "Optimal", "conditions": [(">=", 0.2), ("<=", 0.7)]},
        {"name": "above_0.7", "label": "Above Range", "conditions": [(">", 0.7)]},
    ],
    "consistency_buckets": [
        {"name": "consistent_zero", "label": "Consistent Zero Pressure (7 days)", "conditions": [("==", 0)]},
        {"name": "consistent_below", "label": "Consistent Below Range (7 days)", "conditions": [(">", 0), ("<", 0.2)]},
        {"name": "consistent_optimal", "label": "Consistent Optimal Range (7 days)", "conditions": [(">=", 0.2), ("<=", 0.7)]},
        {"name": "consistent_above", "label": "Consistent Above Range (7 days)", "conditions": [(">", 0.7)]},
    ],
}

# LPCD (litres per capita per day): 55 is the supply norm, 40 the minimum
LPCD_TABLE = {
    "label": "LPCD",
    "unit": "litres/capita/day",
    "value_column": "lpcd_value_day{day}",
    "date_column": "lpcd_date_day{day}",
    "buckets": [
        {"name": "zero_lpcd", "label": "No Supply", "conditions": [("==", 0)]},
        {"name": "below_40", "label": "Critical", "conditions": [(">", 0), ("<", 40)]},
        {"name": "between_40_55", "label": "Below Norm", "conditions": [(">=", 40), ("<", 55)]},
        {"name": "above_55", "label": "Adequate", "conditions": [(">=", 55)]},
    ],
    "consistency_buckets": [
        {"name": "consistent_zero", "label": "Consistent Zero LPCD (7 days)", "conditions": [("==", 0)]},
        {"name": "consistent_below_55", "label": "Consistent <55 LPCD (7 days)", "conditions": [(">", 0), ("<", 55)]},
        {"name": "consistent_above_55", "label": "Consistent >=55 LPCD (7 days)", "conditions": [(">=", 55)]},
    ],
}

PROFILE_TABLES = {
    "chlorine": CHLORINE_TABLE,
    "pressure": PRESSURE_TABLE,
    "lpcd": LPCD_TABLE,
}


def build_profile(name: str, table: Dict[str, Any]) -> MetricProfile:
    """
    Build a MetricProfile from a bucket table.

    Args:
        name: Profile name (e.g., 'chlorine')
        table: Table with label, unit, value_column/date_column templates
               containing '{day}', and bucket lists

    Returns:
        MetricProfile: Profile with validated bucket definitions

    Raises:
        ValueError: If the table is missing required keys or uses
                    an unknown operator
    """
    missing = [key for key in ("value_column", "buckets") if key not in table]
    if missing:
        raise ValueError(f"Bucket table '{name}' is missing keys: {missing}")

    value_template = table["value_column"]
    date_template = table.get("date_column")
    if "{day}" not in value_template:
        raise ValueError(f"value_column template for '{name}' must contain '{{day}}': {value_template}")

    value_columns = tuple(value_template.format(day=day) for day in DAYS)
    date_columns = tuple(date_template.format(day=day) for day in DAYS) if date_template else ()

    profile = MetricProfile(
        name=name,
        label=table.get("label", name),
        unit=table.get("unit", ""),
        value_columns=value_columns,
        date_columns=date_columns,
        buckets=tuple(build_buckets(table["buckets"])),
        consistency_buckets=tuple(build_buckets(table.get("consistency_buckets", []))),
    )

    logger.debug(
        f"Built profile '{name}': {len(profile.buckets)} buckets, "
        f"{len(profile.consistency_buckets)} consistency buckets"
    )
    return profile


def get_profile(name: str) -> MetricProfile:
    """
    Get one of the built-in metric profiles.

    Raises:
        ValueError: If the profile name is unknown
    """
    key = name.lower()
    if key not in PROFILE_TABLES:
        raise ValueError(f"Unknown metric profile: {name}. Available: {sorted(PROFILE_TABLES)}")
    return build_profile(key, PROFILE_TABLES[key])


def load_profile_from_json(path: str, name: Optional[str] = None) -> MetricProfile:
    """
    Load a metric profile from a JSON bucket table.

    The JSON file uses the same keys as the built-in tables; conditions are
    written as two-element lists, e.g. ``["<", 0.2]``.

    Example:
        >>> profile = load_profile_from_json('config/turbidity.json')
        >>> [b.name for b in profile.buckets]
        ['low', 'normal', 'high']
    """
    json_path = Path(path)
    if not json_path.exists():
        logger.error(f"Bucket table not found: {path}")
        raise FileNotFoundError(f"Bucket table does not exist: {path}")

    with open(json_path, "r", encoding="utf-8") as f:
        table = json.load(f)

    if not isinstance(table, dict):
        raise ValueError(f"Bucket table must be a JSON object: {path}")

    profile_name = name or table.get("name") or json_path.stem
    logger.info(f"Loaded bucket table '{profile_name}' from {json_path.name}")
    return build_profile(profile_name, table)
