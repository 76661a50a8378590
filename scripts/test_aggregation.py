"""
Tests for dashboard card counts, card selection and regional rollups.
"""

import sys
from pathlib import Path

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from aggregation import (
    TOTAL_KEY,
    aggregate,
    aggregate_by_level,
    annotate_latest,
    consistency_mask,
    days_per_bucket,
    filter_by_bucket,
    scheme_summary,
    scheme_summary_by_level,
)
from classification import NO_DATA_BUCKET, UNCLASSIFIED_BUCKET
from config import build_profile
from conftest import chlorine_row
from hierarchy_filter import FilterState


def scheme_ids(df):
    return [s.replace("S-", "") for s in df["scheme_id"]]


def test_point_in_time_counts(chlorine_records, chlorine_profile):
    counts = aggregate(chlorine_records, chlorine_profile)

    assert counts[TOTAL_KEY] == 6
    assert counts["below_0.2"] == 3
    assert counts["between_0.2_0.5"] == 1
    assert counts["above_0.5"] == 1
    assert counts[NO_DATA_BUCKET] == 1
    assert UNCLASSIFIED_BUCKET not in counts


def test_point_in_time_counts_sum_to_total(chlorine_records, chlorine_profile):
    counts = aggregate(chlorine_records, chlorine_profile)
    point_names = [b.name for b in chlorine_profile.buckets] + [NO_DATA_BUCKET]
    assert sum(counts[name] for name in point_names) == counts[TOTAL_KEY]


def test_consistency_counts(chlorine_records, chlorine_profile):
    counts = aggregate(chlorine_records, chlorine_profile)

    assert counts["consistent_zero"] == 1
    assert counts["consistent_below"] == 1
    assert counts["consistent_optimal"] == 1
    assert counts["consistent_above"] == 0


def test_one_record_counts_in_both_families(chlorine_profile):
    records = pd.DataFrame([chlorine_row("B", [0] * 7)])
    counts = aggregate(records, chlorine_profile)
    assert counts["below_0.2"] == 1
    assert counts["consistent_zero"] == 1


def test_out_of_range_values_still_sum_to_total(lpcd_profile):
    records = pd.DataFrame([
        {"scheme_id": "L-1", "lpcd_value_day7": -4},
        {"scheme_id": "L-2", "lpcd_value_day7": 60},
        {"scheme_id": "L-3", "lpcd_value_day7": None},
    ])
    counts = aggregate(records, lpcd_profile)

    assert counts[UNCLASSIFIED_BUCKET] == 1
    assert counts["above_55"] == 1
    assert counts[NO_DATA_BUCKET] == 1
    point_names = [b.name for b in lpcd_profile.buckets] + [NO_DATA_BUCKET, UNCLASSIFIED_BUCKET]
    assert sum(counts[name] for name in point_names) == len(records)


def test_aggregate_is_deterministic(chlorine_records, chlorine_profile):
    assert aggregate(chlorine_records, chlorine_profile) == aggregate(chlorine_records, chlorine_profile)


def test_aggregate_empty_frame(chlorine_profile):
    counts = aggregate(pd.DataFrame(columns=["scheme_id"]), chlorine_profile)
    assert counts[TOTAL_KEY] == 0
    assert all(count == 0 for count in counts.values())
    assert set(chlorine_profile.bucket_names) <= set(counts)


def test_bucket_name_in_both_families_is_rejected(chlorine_records):
    profile = build_profile("bad", {
        "value_column": "chlorine_value_{day}",
        "buckets": [{"name": "low", "conditions": [("<", 0.2)]}],
        "consistency_buckets": [{"name": "low", "conditions": [("<", 0.2)]}],
    })
    with pytest.raises(ValueError):
        aggregate(chlorine_records, profile)


def test_filter_by_bucket(chlorine_records, chlorine_profile):
    assert scheme_ids(filter_by_bucket(chlorine_records, chlorine_profile, "below_0.2")) == ["B", "E", "F"]
    assert scheme_ids(filter_by_bucket(chlorine_records, chlorine_profile, NO_DATA_BUCKET)) == ["C"]
    assert scheme_ids(filter_by_bucket(chlorine_records, chlorine_profile, "consistent_zero")) == ["B"]
    assert scheme_ids(filter_by_bucket(chlorine_records, chlorine_profile, "consistent_below")) == ["F"]

    assert filter_by_bucket(chlorine_records, chlorine_profile, "all") is chlorine_records
    assert filter_by_bucket(chlorine_records, chlorine_profile, "purple").empty


def test_filter_by_bucket_matches_counts(chlorine_records, chlorine_profile):
    counts = aggregate(chlorine_records, chlorine_profile)
    for name in chlorine_profile.bucket_names + [NO_DATA_BUCKET]:
        assert len(filter_by_bucket(chlorine_records, chlorine_profile, name)) == counts[name]


def test_consistency_mask_unknown_bucket(chlorine_records, chlorine_profile):
    with pytest.raises(ValueError):
        consistency_mask(chlorine_records, chlorine_profile, "below_0.2")


def test_annotate_latest(chlorine_records, chlorine_profile):
    before = chlorine_records.copy()
    annotated = annotate_latest(chlorine_records, chlorine_profile)

    pd.testing.assert_frame_equal(chlorine_records, before)
    assert annotated["latest_value"].tolist()[:2] == [0.3, 0.0]
    assert pd.isna(annotated["latest_value"].iloc[2])
    assert annotated["bucket"].tolist() == [
        "between_0.2_0.5", "below_0.2", NO_DATA_BUCKET, "above_0.5", "below_0.2", "below_0.2",
    ]
    assert annotated["status_label"].iloc[2] == "No Data"


def test_annotate_latest_date(chlorine_profile):
    row = chlorine_row("A", [0.3, 0.4])
    row["chlorine_date_day_1"] = "2025-03-01"
    row["chlorine_date_day_2"] = "2025-03-02"
    annotated = annotate_latest(pd.DataFrame([row]), chlorine_profile)
    assert annotated["latest_date"].iloc[0] == "2025-03-02"


def test_aggregate_by_level(chlorine_records, chlorine_profile):
    rollup = aggregate_by_level(chlorine_records, chlorine_profile, "region")

    assert rollup["region"].tolist() == ["Amravati", "Nagpur", "Pune"]
    assert rollup["total"].tolist() == [2, 2, 2]
    assert rollup["below_0.2"].tolist() == [2, 1, 0]
    assert rollup[NO_DATA_BUCKET].tolist() == [0, 0, 1]
    assert rollup["total"].sum() == len(chlorine_records)


def test_aggregate_by_level_missing_column(chlorine_records, chlorine_profile):
    with pytest.raises(ValueError):
        aggregate_by_level(chlorine_records, chlorine_profile, "block")


def test_aggregate_by_level_empty(chlorine_profile):
    empty = pd.DataFrame(columns=["region"])
    rollup = aggregate_by_level(empty, chlorine_profile, "region")
    assert rollup.empty
    assert "region" in rollup.columns and "total" in rollup.columns


def test_days_per_bucket(chlorine_profile):
    row = pd.Series(chlorine_row("D", [0.1] * 6 + [0.8]))
    assert days_per_bucket(row, chlorine_profile) == {
        "below_0.2": 6,
        "between_0.2_0.5": 0,
        "above_0.5": 1,
    }


def test_custom_table_cannot_shadow_the_total(chlorine_records):
    with pytest.raises(ValueError):
        build_profile("custom", {
            "value_column": "chlorine_value_{day}",
            "buckets": [
                {"name": TOTAL_KEY, "conditions": [("<", 0.2)]},
                {"name": "ok", "conditions": [(">=", 0.2)]},
            ],
        })


@pytest.fixture
def scheme_records():
    """S-1 is listed on two rows (two blocks); S-3 has no status or village figures."""
    return pd.DataFrame([
        {"scheme_id": "S-1", "region": "Nagpur", "block": "Hingna", "mjp_fully_completed": "Fully Completed",
         "total_villages_integrated": 4, "fully_completed_villages": 4,
         "total_esr_integrated": 6, "no_fully_completed_esr": 6},
        {"scheme_id": "S-1", "region": "Nagpur", "block": "Mauda", "mjp_fully_completed": "Fully Completed",
         "total_villages_integrated": 2, "fully_completed_villages": 1,
         "total_esr_integrated": 2, "no_fully_completed_esr": 1},
        {"scheme_id": "S-2", "region": "Nagpur", "block": "Hingna", "mjp_fully_completed": "In Progress",
         "total_villages_integrated": 3, "fully_completed_villages": 0,
         "total_esr_integrated": 4, "no_fully_completed_esr": 1},
        {"scheme_id": "S-3", "region": "Pune", "block": "Haveli", "mjp_fully_completed": None,
         "total_villages_integrated": None, "fully_completed_villages": None,
         "total_esr_integrated": 0, "no_fully_completed_esr": 0},
    ])


def test_scheme_summary(scheme_records):
    summary = scheme_summary(scheme_records)

    assert summary["total_schemes"] == 3
    assert summary["fully_completed_schemes"] == 1
    assert summary["total_villages_integrated"] == 9
    assert summary["fully_completed_villages"] == 5
    assert summary["total_esr_integrated"] == 12
    assert summary["no_fully_completed_esr"] == 8
    assert summary["flow_meters_connected"] == 0
    assert summary["scheme_completion_pct"] == pytest.approx(33.3)
    assert summary["village_completion_pct"] == pytest.approx(55.6)
    assert summary["esr_completion_pct"] == pytest.approx(66.7)


def test_scheme_summary_under_filter_state(scheme_records):
    state = FilterState()
    state.set_level("region", "Pune")

    summary = scheme_summary(state.apply(scheme_records))

    assert summary["total_schemes"] == 1
    assert summary["fully_completed_schemes"] == 0
    assert summary["esr_completion_pct"] == 0.0


def test_scheme_summary_empty_and_invalid():
    summary = scheme_summary(pd.DataFrame(columns=["scheme_id"]))
    assert summary["total_schemes"] == 0
    assert summary["village_completion_pct"] == 0.0

    with pytest.raises(ValueError):
        scheme_summary(pd.DataFrame({"region": ["Nagpur"]}))


def test_scheme_summary_by_level(scheme_records):
    rollup = scheme_summary_by_level(scheme_records, "region")

    assert rollup["region"].tolist() == ["Nagpur", "Pune"]
    assert rollup["total_schemes"].tolist() == [2, 1]
    assert rollup["fully_completed_schemes"].tolist() == [1, 0]
    assert rollup["scheme_completion_pct"].tolist() == [50.0, 0.0]

    by_block = scheme_summary_by_level(scheme_records, "block")
    assert by_block.set_index("block").loc["Hingna", "total_schemes"] == 2

    with pytest.raises(ValueError):
        scheme_summary_by_level(scheme_records, "village")
