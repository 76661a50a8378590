"""
Cascading geographic and status filters for dashboard tables.

The hierarchy runs region > division > sub_division > circle > block > village.
Choosing a value at one level clears every finer level, so a village picked
under one region can never leak into another region's table.

Status filters (commissioned, completion status, ...) are exact-match and
independent of the hierarchy, except for the named cross-field constraints
declared in COMPLETION_CONSTRAINTS.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from config import ALL, GEO_LEVEL_COLUMNS, GEO_LEVELS, SEARCH_COLUMNS

# Configure logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrossFieldConstraint:
    """
    Forces a dependent status filter to a compatible value.

    When `trigger_field` is set to `trigger_value` while `target_field`
    holds one of `incompatible_values`, `target_field` is forced to
    `forced_value`.
    """
    name: str
    trigger_field: str
    trigger_value: str
    target_field: str
    incompatible_values: Tuple[str, ...]
    forced_value: str

    def forced_change(
        self,
        changed_field: str,
        new_value: str,
        status_filters: Dict[str, str]
    ) -> Optional[Tuple[str, str]]:
        if changed_field != self.trigger_field or new_value != self.trigger_value:
            return None
        current = status_filters.get(self.target_field, ALL)
        if current in self.incompatible_values:
            return (self.target_field, self.forced_value)
        return None


# A scheme cannot be fully completed without being commissioned
COMPLETION_CONSTRAINTS = (
    CrossFieldConstraint(
        name="fully_completed_requires_commissioned",
        trigger_field="mjp_fully_completed",
        trigger_value="Fully Completed",
        target_field="mjp_commissioned",
        incompatible_values=("No",),
        forced_value="Yes",
    ),
)


def apply_constraint(
    changed_field: str,
    new_value: str,
    status_filters: Dict[str, str],
    constraints: Sequence[CrossFieldConstraint] = COMPLETION_CONSTRAINTS
) -> List[Tuple[str, str]]:
    """
    Work out which status filters a change forces.

    Args:
        changed_field: Status field being set
        new_value: Value it is being set to
        status_filters: Current status filter values
        constraints: Cross-field constraints to evaluate

    Returns:
        list: (field, forced_value) pairs, in constraint order. Nothing is
        applied; the caller decides.

    Example:
        >>> apply_constraint('mjp_fully_completed', 'Fully Completed', {'mjp_commissioned': 'No'})
        [('mjp_commissioned', 'Yes')]
    """
    changes = []
    for constraint in constraints:
        change = constraint.forced_change(changed_field, new_value, status_filters)
        if change is not None:
            logger.debug(f"Constraint '{constraint.name}' forces {change[0]}={change[1]}")
            changes.append(change)
    return changes


def search_records(
    records: pd.DataFrame,
    query: str,
    columns: Sequence[str] = SEARCH_COLUMNS
) -> pd.DataFrame:
    """
    Case-insensitive substring search across the given text columns.

    Rows match when any searched column contains the query. An empty query
    returns the records unchanged.
    """
    query = (query or "").strip().lower()
    if not query:
        return records

    mask = pd.Series(False, index=records.index)
    for col in columns:
        if col in records.columns:
            text = records[col].astype("string").str.lower()
            mask |= text.str.contains(query, regex=False, na=False).astype(bool)

    return records[mask]


class FilterState:
    """
    Current selections for one dashboard session.

    Geographic levels and status filters all default to "all". The only way
    to change them is through the setters, which keep the hierarchy
    consistent.

    Example:
        >>> state = FilterState()
        >>> state.set_level('region', 'Nagpur')
        >>> state.set_level('village', 'Khapa')
        >>> state.current_level()
        'village'
        >>> state.set_level('region', 'Pune')
        >>> state.get_level('village')
        'all'
    """

    def __init__(
        self,
        levels: Sequence[str] = GEO_LEVELS,
        level_columns: Optional[Dict[str, str]] = None,
        constraints: Sequence[CrossFieldConstraint] = COMPLETION_CONSTRAINTS,
        search_columns: Sequence[str] = SEARCH_COLUMNS
    ):
        if not levels:
            raise ValueError("At least one geographic level is required")

        self.levels = tuple(levels)
        columns = GEO_LEVEL_COLUMNS if level_columns is None else level_columns
        self.level_columns = {level: columns.get(level, level) for level in self.levels}
        self.constraints = tuple(constraints)
        self.search_columns = tuple(search_columns)

        self._geo: Dict[str, str] = {level: ALL for level in self.levels}
        self._status: Dict[str, str] = {}
        self.range_bucket = ALL
        self.search_query = ""

    def __repr__(self) -> str:
        return f"FilterState({self.snapshot()})"

    # ------------------------------------------------------------------
    # Geographic levels
    # ------------------------------------------------------------------

    def _check_level(self, level: str) -> int:
        try:
            return self.levels.index(level)
        except ValueError:
            raise ValueError(f"Unknown geographic level: {level!r}. Expected one of {self.levels}") from None

    def get_level(self, level: str) -> str:
        self._check_level(level)
        return self._geo[level]

    def set_level(self, level: str, value: str) -> None:
        """Set a level and reset every finer level to "all". Blank values mean "all"."""
        position = self._check_level(level)
        value = "" if value is None else str(value).strip()
        self._geo[level] = value or ALL

        for finer in self.levels[position + 1:]:
            self._geo[finer] = ALL

        logger.debug(f"Set {level}={self._geo[level]}; reset {list(self.levels[position + 1:])}")

    def current_level(self) -> str:
        """Finest level with a selection, or the top level when nothing is selected."""
        for level in reversed(self.levels):
            if self._geo[level] != ALL:
                return level
        return self.levels[0]

    def active_levels(self) -> Dict[str, str]:
        return {level: value for level, value in self._geo.items() if value != ALL}

    # ------------------------------------------------------------------
    # Status filters, bucket and search
    # ------------------------------------------------------------------

    def get_status_filter(self, name: str) -> str:
        return self._status.get(name, ALL)

    def active_status_filters(self) -> Dict[str, str]:
        return {name: value for name, value in self._status.items() if value != ALL}

    def apply_constraint(self, changed_field: str, new_value: str) -> List[Tuple[str, str]]:
        """Forced changes for a prospective status filter change, not applied."""
        return apply_constraint(changed_field, new_value, self._status, self.constraints)

    def set_status_filter(self, name: str, value: str) -> List[Tuple[str, str]]:
        """
        Set a status filter ("all" unsets it) and apply any forced changes.

        Returns:
            list: (field, forced_value) pairs that were applied
        """
        value = ("" if value is None else str(value).strip()) or ALL
        forced = self.apply_constraint(name, value)

        if value == ALL:
            self._status.pop(name, None)
        else:
            self._status[name] = value

        for field_name, forced_value in forced:
            self._status[field_name] = forced_value
            logger.info(f"Status filter {field_name} forced to '{forced_value}' by {name}='{value}'")

        return forced

    def select_bucket(self, bucket_name: str) -> None:
        self.range_bucket = bucket_name or ALL

    def set_search(self, query: str) -> None:
        self.search_query = (query or "").strip()

    def clear(self) -> None:
        """Reset every level, status filter, bucket selection and search."""
        self._geo = {level: ALL for level in self.levels}
        self._status = {}
        self.range_bucket = ALL
        self.search_query = ""

    def snapshot(self) -> Dict[str, object]:
        """JSON-compatible view of the current selections."""
        return {
            "levels": dict(self._geo),
            "status": dict(self._status),
            "range_bucket": self.range_bucket,
            "search": self.search_query,
            "current_level": self.current_level(),
        }

    # ------------------------------------------------------------------
    # Applying the filter
    # ------------------------------------------------------------------

    def mask(self, records: pd.DataFrame, through_level: Optional[str] = None) -> pd.Series:
        """
        Boolean mask of rows matching the active geographic and status filters.

        Args:
            records: Record frame
            through_level: If given, only levels up to and including this one
                           are applied and status filters are skipped (used for
                           cascading dropdown options)
        """
        mask = pd.Series(True, index=records.index)

        levels = self.levels
        if through_level is not None:
            levels = self.levels[:self._check_level(through_level) + 1]

        for level in levels:
            value = self._geo[level]
            if value == ALL:
                continue
            col = self.level_columns[level]
            if col not in records.columns:
                logger.warning(f"Column '{col}' for level '{level}' not in records; no rows match")
                return pd.Series(False, index=records.index)
            mask &= (records[col] == value).fillna(False).astype(bool)

        if through_level is not None:
            return mask

        for name, value in self._status.items():
            if name not in records.columns:
                logger.debug(f"Status field '{name}' not in records; no rows match")
                return pd.Series(False, index=records.index)
            mask &= (records[name] == value).fillna(False).astype(bool)

        return mask

    def apply(self, records: pd.DataFrame) -> pd.DataFrame:
        """
        Rows matching every active filter, in their original order.

        The input frame is never modified.
        """
        filtered = records[self.mask(records)]

        if self.search_query:
            filtered = search_records(filtered, self.search_query, self.search_columns)

        logger.debug(f"Filter {self.active_levels()} {self.active_status_filters()}: {len(filtered):,}/{len(records):,} rows")
        return filtered

    def level_options(self, records: pd.DataFrame, level: str) -> List[str]:
        """
        Distinct values for a level's dropdown under the coarser selections.

        Example:
            >>> state.set_level('region', 'Nagpur')
            >>> state.level_options(df, 'division')
            ['Nagpur Division 1', 'Wardha Division']
        """
        position = self._check_level(level)
        col = self.level_columns[level]
        if col not in records.columns:
            return []

        if position == 0:
            scoped = records
        else:
            scoped = records[self.mask(records, through_level=self.levels[position - 1])]

        values = scoped[col].dropna().astype(str).str.strip()
        return sorted(v for v in values.unique() if v and v != ALL)
