"""
AquaWatch Streamlit Application

Sensor dashboard for MJP water schemes:
- Cascading region > division > sub-division > circle > block > village filters
- Commissioning / completion status filters
- Point-in-time and 7-day consistency cards per metric
- Paged detail table with spreadsheet export

Design Principles:
- Load sheets once per session (cached), filter and count in memory
- One DashboardView per session in st.session_state
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import pandas as pd
import plotly.express as px
import streamlit as st

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from aggregation import scheme_summary
from classification import NO_DATA_BUCKET, NO_DATA_LABEL
from config import ALL, GEO_LEVELS, PAGE_SIZE_OPTIONS, STATUS_FIELDS, get_profile, settings
from dashboard import LEVEL_WIDGET_PREFIX, STATUS_WIDGET_PREFIX, DashboardView, stale_widget_keys
from data_loading import find_data_files, join_scheme_status, load_records
from export import build_export_frame
from record_schema import get_record_kind

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DATA_DIR = Path(settings.data_dir)

LEVEL_LABELS = {
    "region": "Region",
    "division": "Division",
    "sub_division": "Sub Division",
    "circle": "Circle",
    "block": "Block",
    "village": "Village",
}

STATUS_LABELS = {
    "mjp_commissioned": "Commissioned",
    "mjp_fully_completed": "Completion",
    "fully_completion_scheme_status": "Scheme Status",
}


# ============================================================================
# Data Loading Functions
# ============================================================================

@st.cache_data(ttl=300)
def load_sheet(path: str, kind: str) -> Optional[pd.DataFrame]:
    """Load and validate one sheet, or None if it cannot be read."""
    try:
        return load_records(path, kind)
    except Exception as e:
        logger.error(f"Error loading {path}: {e}")
        return None


def get_view(kind: str, records: pd.DataFrame) -> DashboardView:
    """One DashboardView per session and metric."""
    key = f"view_{kind}"
    view = st.session_state.get(key)
    if view is None:
        view = DashboardView(records, get_profile(get_record_kind(kind).profile_name))
        st.session_state[key] = view
    elif view.records is not records:
        view.set_records(records)
    return view


# ============================================================================
# Page Sections
# ============================================================================

def render_filters(view: DashboardView) -> None:
    st.sidebar.markdown("### 🗺️ Location")
    state = view.filter_state

    for level in GEO_LEVELS:
        options = [ALL] + state.level_options(view.records, level)
        current = state.get_level(level)
        index = options.index(current) if current in options else 0
        choice = st.sidebar.selectbox(LEVEL_LABELS[level], options, index=index, key=f"{LEVEL_WIDGET_PREFIX}{level}")
        if choice != current:
            view.set_level(level, choice)
            for key in stale_widget_keys(level):
                st.session_state.pop(key, None)
            st.rerun()

    st.sidebar.markdown("### 📋 Status")
    for name in STATUS_FIELDS:
        values = sorted(view.records[name].dropna().astype(str).unique()) if name in view.records else []
        options = [ALL] + values
        current = state.get_status_filter(name)
        index = options.index(current) if current in options else 0
        choice = st.sidebar.selectbox(STATUS_LABELS[name], options, index=index, key=f"{STATUS_WIDGET_PREFIX}{name}")
        if choice != current:
            snapshot = view.set_status_filter(name, choice)
            for key in stale_widget_keys(forced_filters=snapshot.forced_filters):
                st.session_state.pop(key, None)
            for field_name, forced_value in snapshot.forced_filters:
                st.sidebar.info(f"{STATUS_LABELS.get(field_name, field_name)} set to {forced_value}")
            st.rerun()

    query = st.sidebar.text_input("🔍 Search scheme, village or ESR", value=state.search_query)
    if query != state.search_query:
        view.set_search(query)

    if st.sidebar.button("Clear filters"):
        view.clear()
        for key in [k for k in st.session_state if str(k).startswith((LEVEL_WIDGET_PREFIX, STATUS_WIDGET_PREFIX))]:
            del st.session_state[key]
        st.rerun()


def render_cards(view: DashboardView, counts: dict) -> None:
    profile = view.profile
    selected = view.filter_state.range_bucket

    st.markdown(f"### {profile.label} - latest reading")
    point_cards = [(ALL, "Total", counts["total"])]
    point_cards += [(b.name, b.label, counts.get(b.name, 0)) for b in profile.buckets]
    point_cards.append((NO_DATA_BUCKET, NO_DATA_LABEL, counts.get(NO_DATA_BUCKET, 0)))

    columns = st.columns(len(point_cards))
    for column, (name, label, count) in zip(columns, point_cards):
        with column:
            st.metric(label, f"{count:,}")
            if st.button("Show" if name != selected else "Showing", key=f"card_{name}"):
                view.select_bucket(name)
                st.rerun()

    if profile.consistency_buckets:
        st.markdown("### Consistent readings (7 days)")
        columns = st.columns(len(profile.consistency_buckets))
        for column, bucket in zip(columns, profile.consistency_buckets):
            with column:
                st.metric(bucket.label, f"{counts.get(bucket.name, 0):,}")
                if st.button("Show" if bucket.name != selected else "Showing", key=f"card_{bucket.name}"):
                    view.select_bucket(bucket.name)
                    st.rerun()

    chart_data = pd.DataFrame(
        [{"bucket": label, "count": count} for name, label, count in point_cards if name != ALL]
    )
    fig = px.bar(chart_data, x="bucket", y="count", title=f"{profile.label} distribution")
    st.plotly_chart(fig, use_container_width=True)


def render_scheme_summary(view: DashboardView, schemes: pd.DataFrame) -> None:
    """Scheme completion cards under the same location and status filters."""
    summary = scheme_summary(view.filter_state.apply(schemes))

    st.markdown("### Scheme status")
    cards = [
        ("Schemes", summary["total_schemes"], summary["fully_completed_schemes"], summary["scheme_completion_pct"]),
        ("Villages", summary["total_villages_integrated"], summary["fully_completed_villages"],
         summary["village_completion_pct"]),
        ("ESRs", summary["total_esr_integrated"], summary["no_fully_completed_esr"], summary["esr_completion_pct"]),
    ]
    columns = st.columns(len(cards))
    for column, (label, total, completed, pct) in zip(columns, cards):
        with column:
            st.metric(f"{label} fully completed", f"{completed:,} / {total:,}", f"{pct:.1f}%", delta_color="off")


def render_table(view: DashboardView, snapshot) -> None:
    page = snapshot.page

    left, right = st.columns([3, 1])
    with right:
        size = st.selectbox(
            "Rows per page", PAGE_SIZE_OPTIONS,
            index=PAGE_SIZE_OPTIONS.index(page.page_size) if page.page_size in PAGE_SIZE_OPTIONS else 0,
        )
        if size != page.page_size:
            view.set_page_size(size)
            st.rerun()

    with left:
        st.caption(f"Showing {page.first_item}-{page.last_item} of {page.total_items:,}")

    shown = [c for c in ("scheme_id", "scheme_name", "region", "village_name", "esr_name",
                         "latest_value", "latest_date", "status_label") if c in page.items.columns]
    st.dataframe(page.items[shown], use_container_width=True, hide_index=True)

    prev_col, next_col = st.columns(2)
    with prev_col:
        if st.button("◀ Previous", disabled=not page.has_previous):
            view.set_page(page.page - 1)
            st.rerun()
    with next_col:
        if st.button("Next ▶", disabled=not page.has_next):
            view.set_page(page.page + 1)
            st.rerun()

    export = build_export_frame(snapshot.detail, view.profile)
    st.download_button(
        "⬇️ Export CSV",
        data=export.to_csv(index=False).encode("utf-8"),
        file_name=f"{view.profile.name}_{snapshot.filters['range_bucket']}.csv",
        mime="text/csv",
    )


def main():
    st.set_page_config(page_title=settings.app_name, page_icon="💧", layout="wide")
    st.sidebar.title("💧 AquaWatch")

    kind = st.sidebar.radio("Dashboard", ["chlorine", "pressure", "lpcd"], format_func=str.upper)

    try:
        files = [str(p) for p in find_data_files(str(DATA_DIR))]
    except (FileNotFoundError, ValueError) as e:
        st.error(f"❌ No data folder: {e}")
        return

    if not files:
        st.warning(f"No CSV or Excel files in {DATA_DIR}")
        return

    sheet = st.sidebar.selectbox("Sensor sheet", files, format_func=lambda p: Path(p).name)
    scheme_sheet = st.sidebar.selectbox("Scheme status sheet", [None] + files,
                                        format_func=lambda p: "None" if p is None else Path(p).name)

    records = load_sheet(sheet, kind)
    if records is None:
        st.error("❌ Could not load the selected sheet; check the logs")
        return

    schemes = None
    if scheme_sheet:
        schemes = load_sheet(scheme_sheet, "scheme")
        if schemes is not None:
            records = join_scheme_status(records, schemes)

    view = get_view(kind, records)
    render_filters(view)

    snapshot = view.snapshot()
    st.title(f"{view.profile.label} Dashboard")
    st.caption(f"Level: {LEVEL_LABELS[snapshot.level]}")

    if schemes is not None:
        render_scheme_summary(view, schemes)
    render_cards(view, snapshot.counts)
    render_table(view, snapshot)


if __name__ == "__main__":
    main()
