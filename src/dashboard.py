"""
Dashboard view: filter state, card selection and paging for one session.

A DashboardView owns the FilterState and Paginator of one dashboard page and
recomputes a DashboardSnapshot whenever records or selections change.
Presentation code registers callbacks with `subscribe()` and receives each
new snapshot; nothing is broadcast globally.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from aggregation import aggregate, annotate_latest, filter_by_bucket
from classification import NO_DATA_BUCKET, UNCLASSIFIED_BUCKET
from config import ALL, GEO_LEVELS, MetricProfile, settings
from export import export_records
from hierarchy_filter import FilterState
from pagination import Page, Paginator

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class DashboardSnapshot:
    """Everything a page needs to render one state of the dashboard."""
    filters: Dict[str, object]
    counts: Dict[str, int]
    detail: pd.DataFrame
    page: Page
    level: str
    page_reset: bool = False
    forced_filters: List[tuple] = field(default_factory=list)


Subscriber = Callable[[DashboardSnapshot], None]

# Session keys of the filter widgets in the web app
LEVEL_WIDGET_PREFIX = "geo_"
STATUS_WIDGET_PREFIX = "status_"


def stale_widget_keys(
    changed_level: Optional[str] = None,
    forced_filters: Sequence[tuple] = (),
    levels: Sequence[str] = GEO_LEVELS
) -> List[str]:
    """
    Widget keys whose stored values no longer match the filter state.

    Setting a level resets every finer level, and forced status changes
    overwrite the forced fields, so those widgets must drop their values
    before the next render.

    Example:
        >>> stale_widget_keys("block")
        ['geo_village']
    """
    keys = []
    if changed_level is not None:
        position = list(levels).index(changed_level)
        keys += [f"{LEVEL_WIDGET_PREFIX}{finer}" for finer in levels[position + 1:]]
    keys += [f"{STATUS_WIDGET_PREFIX}{field_name}" for field_name, _ in forced_filters]
    return keys


class DashboardView:
    """
    One metric dashboard (chlorine, pressure or LPCD) for one session.

    Card counts are computed over the geo/status/search-filtered records; the
    selected card then narrows the detail table, which is paged.

    Example:
        >>> view = DashboardView(chlorine_df, get_profile('chlorine'))
        >>> view.subscribe(lambda snap: print(snap.counts['total']))
        >>> view.set_level('region', 'Nagpur')
        412
    """

    def __init__(
        self,
        records: pd.DataFrame,
        profile: MetricProfile,
        filter_state: Optional[FilterState] = None,
        paginator: Optional[Paginator] = None
    ):
        self.profile = profile
        self.filter_state = filter_state or FilterState()
        self.paginator = paginator or Paginator(settings.page_size)
        self._records = records
        self._subscribers: List[Subscriber] = []
        self._last_forced: List[tuple] = []

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for new snapshots.

        Returns:
            Callable that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> DashboardSnapshot:
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            callback(snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    @property
    def records(self) -> pd.DataFrame:
        return self._records

    def set_records(self, records: pd.DataFrame) -> DashboardSnapshot:
        self._records = records
        logger.info(f"Dashboard '{self.profile.name}' received {len(records):,} records")
        return self._publish()

    def set_level(self, level: str, value: str) -> DashboardSnapshot:
        self.filter_state.set_level(level, value)
        return self._publish()

    def set_status_filter(self, name: str, value: str) -> DashboardSnapshot:
        self._last_forced = self.filter_state.set_status_filter(name, value)
        snapshot = self._publish()
        self._last_forced = []
        return snapshot

    def select_bucket(self, bucket_name: str) -> DashboardSnapshot:
        """Select a card; "all" shows every filtered record."""
        known = [ALL, NO_DATA_BUCKET, UNCLASSIFIED_BUCKET] + self.profile.bucket_names
        if bucket_name and bucket_name not in known:
            logger.warning(f"Card '{bucket_name}' is not defined for {self.profile.name}")
        self.filter_state.select_bucket(bucket_name)
        self.paginator.set_page(1)
        return self._publish()

    def set_search(self, query: str) -> DashboardSnapshot:
        self.filter_state.set_search(query)
        return self._publish()

    def set_page(self, page: int) -> DashboardSnapshot:
        self.paginator.set_page(page)
        return self._publish()

    def set_page_size(self, page_size: int) -> DashboardSnapshot:
        self.paginator.set_page_size(page_size)
        return self._publish()

    def clear(self) -> DashboardSnapshot:
        self.filter_state.clear()
        self.paginator.set_page(1)
        return self._publish()

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------

    def filtered_records(self) -> pd.DataFrame:
        return self.filter_state.apply(self._records)

    def detail_records(self) -> pd.DataFrame:
        return filter_by_bucket(self.filtered_records(), self.profile, self.filter_state.range_bucket)

    def snapshot(self) -> DashboardSnapshot:
        """Recompute counts, detail table and current page."""
        filtered = self.filtered_records()
        counts = aggregate(filtered, self.profile)
        detail = filter_by_bucket(filtered, self.profile, self.filter_state.range_bucket)

        page_before = self.paginator.page
        page = self.paginator.paginate(annotate_latest(detail, self.profile))

        return DashboardSnapshot(
            filters=self.filter_state.snapshot(),
            counts=counts,
            detail=detail,
            page=page,
            level=self.filter_state.current_level(),
            page_reset=self.paginator.page != page_before,
            forced_filters=list(self._last_forced),
        )

    def export(self, output_path: str) -> Path:
        """Export the current detail table (all pages)."""
        return export_records(self.detail_records(), self.profile, output_path)
