"""
Range classification for sensor readings.

Maps a single reading to a named bucket using an ordered bucket table, and
checks whether a full 7-day window stays inside one range ("consistent"
buckets).

Buckets are evaluated in table order and the first match wins, so boundary
values (e.g. exactly 0.2 mg/l) always land in one bucket only.
"""

import logging
import operator as op
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from readings import SERIES_LENGTH, defined_values, to_number

# Configure logging
logger = logging.getLogger(__name__)


NO_DATA_BUCKET = "no_data"
NO_DATA_LABEL = "No Data"

# Value that no bucket in the table accepts (e.g. a negative reading)
UNCLASSIFIED_BUCKET = "unclassified"
UNCLASSIFIED_LABEL = "Out of Range"

# Key of the record count in aggregate() output
TOTAL_KEY = "total"

RESERVED_BUCKET_NAMES = (TOTAL_KEY, NO_DATA_BUCKET, UNCLASSIFIED_BUCKET)

OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    ">": op.gt,
    ">=": op.ge,
    "<": op.lt,
    "<=": op.le,
    "==": op.eq,
    "!=": op.ne,
}


@dataclass(frozen=True)
class Classification:
    bucket: str
    label: str


@dataclass(frozen=True)
class BucketDefinition:
    """
    A named range with a display label.

    A value falls in the bucket when every (operator, threshold) condition
    holds. An explicit predicate, if given, replaces the conditions.
    """
    name: str
    label: str
    conditions: Tuple[Tuple[str, float], ...] = ()
    predicate: Optional[Callable[[float], bool]] = None

    def matches(self, value: Optional[float]) -> bool:
        if value is None:
            return False
        if self.predicate is not None:
            return bool(self.predicate(value))
        return all(
            evaluate_condition(value, operator, threshold)
            for operator, threshold in self.conditions
        )


def evaluate_condition(value: Any, operator: str, threshold: float) -> bool:
    """
    Evaluate a single bucket condition.

    Args:
        value: Reading to test
        operator: Comparison operator ('>', '>=', '<', '<=', '==', '!=')
        threshold: Threshold to compare against

    Returns:
        bool: True if condition is met, False otherwise

    Raises:
        ValueError: If the operator is unknown
    """
    # Handle missing values
    if value is None or pd.isna(value):
        return False

    if operator not in OPERATORS:
        raise ValueError(f"Unknown operator: {operator}")

    return OPERATORS[operator](value, threshold)


def build_buckets(table: Iterable[Dict[str, Any]]) -> List[BucketDefinition]:
    """
    Build bucket definitions from a table of dicts.

    Each entry needs 'name' and 'conditions'; 'label' defaults to the name.
    Conditions may be tuples or two-element lists (as loaded from JSON).

    Raises:
        ValueError: On a missing, duplicate or reserved name, a malformed
                    condition or an unknown operator
    """
    buckets = []
    seen = set()

    for entry in table:
        name = entry.get("name")
        if not name:
            raise ValueError(f"Bucket entry without a name: {entry}")
        if name in RESERVED_BUCKET_NAMES:
            raise ValueError(f"Bucket name '{name}' is reserved for dashboard counts")
        if name in seen:
            raise ValueError(f"Duplicate bucket name: {name}")
        seen.add(name)

        conditions = []
        for condition in entry.get("conditions", []):
            if len(condition) != 2:
                raise ValueError(f"Condition for bucket '{name}' must be (operator, threshold): {condition}")
            operator, threshold = condition
            if operator not in OPERATORS:
                raise ValueError(f"Unknown operator '{operator}' in bucket '{name}'")
            conditions.append((operator, float(threshold)))

        if not conditions and entry.get("predicate") is None:
            raise ValueError(f"Bucket '{name}' has no conditions")

        buckets.append(BucketDefinition(
            name=name,
            label=entry.get("label", name),
            conditions=tuple(conditions),
            predicate=entry.get("predicate"),
        ))

    return buckets


def classify(value: Any, buckets: Sequence[BucketDefinition]) -> Classification:
    """
    Classify a reading into the first matching bucket.

    Args:
        value: Reading (number, numeric string or None)
        buckets: Ordered bucket definitions

    Returns:
        Classification: 'no_data' for a missing value, 'unclassified' when no
        bucket accepts the value, otherwise the first matching bucket

    Example:
        >>> classify(0.2, get_profile('chlorine').buckets)
        Classification(bucket='between_0.2_0.5', label='Optimal')
    """
    number = to_number(value)
    if number is None:
        return Classification(NO_DATA_BUCKET, NO_DATA_LABEL)

    for bucket in buckets:
        if bucket.matches(number):
            return Classification(bucket.name, bucket.label)

    return Classification(UNCLASSIFIED_BUCKET, UNCLASSIFIED_LABEL)


def classify_consistency(
    series: Sequence[Any],
    predicate: Callable[[float], bool],
    required_days: int = SERIES_LENGTH
) -> bool:
    """
    Check whether every day in a full window satisfies a predicate.

    Returns True only when the window has exactly `required_days` defined
    numeric readings and all of them satisfy the predicate.
    """
    values = defined_values(series)
    if len(values) != required_days:
        return False
    return all(predicate(v) for v in values)


def classify_values(values: pd.Series, buckets: Sequence[BucketDefinition]) -> pd.DataFrame:
    """
    Classify a column of readings.

    Returns:
        pd.DataFrame: 'bucket' and 'status_label' columns aligned with `values`
    """
    results = [classify(v, buckets) for v in values]
    return pd.DataFrame(
        {
            "bucket": [r.bucket for r in results],
            "status_label": [r.label for r in results],
        },
        index=values.index,
    )


def count_days_in_bucket(series: Sequence[Any], bucket: BucketDefinition) -> int:
    """Count the defined readings in a window that fall in `bucket`."""
    return sum(1 for v in defined_values(series) if bucket.matches(v))
