"""
Tests for metric profiles and bucket tables.
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import PROFILE_TABLES, build_profile, get_profile, load_profile_from_json


def test_builtin_profiles():
    for name in PROFILE_TABLES:
        profile = get_profile(name)
        assert len(profile.value_columns) == 7
        assert len(profile.date_columns) == 7
        assert profile.buckets

    chlorine = get_profile("Chlorine")
    assert chlorine.value_columns[0] == "chlorine_value_1"
    assert chlorine.date_columns[-1] == "chlorine_date_day_7"
    assert get_profile("lpcd").value_columns[-1] == "lpcd_value_day7"


def test_unknown_profile():
    with pytest.raises(ValueError):
        get_profile("turbidity")


def test_get_bucket():
    profile = get_profile("pressure")
    assert profile.get_bucket("between_0.2_0.7").label == "Optimal"
    assert profile.get_bucket("consistent_zero") is not None
    assert profile.get_bucket("between_0.2_0.5") is None


def test_build_profile_validates_table():
    with pytest.raises(ValueError):
        build_profile("x", {"buckets": []})
    with pytest.raises(ValueError):
        build_profile("x", {"value_column": "turbidity_1", "buckets": []})
    with pytest.raises(ValueError):
        build_profile("x", {
            "value_column": "t_{day}",
            "buckets": [{"name": "a", "conditions": [("approx", 1)]}],
        })


def test_load_profile_from_json(tmp_path):
    table = {
        "label": "Turbidity",
        "unit": "NTU",
        "value_column": "turbidity_value_{day}",
        "buckets": [
            {"name": "low", "conditions": [["<", 1]]},
            {"name": "normal", "conditions": [[">=", 1], ["<=", 5]]},
            {"name": "high", "conditions": [[">", 5]]},
        ],
    }
    path = tmp_path / "turbidity.json"
    path.write_text(json.dumps(table), encoding="utf-8")

    profile = load_profile_from_json(str(path))

    assert profile.name == "turbidity"
    assert [b.name for b in profile.buckets] == ["low", "normal", "high"]
    assert profile.value_columns[2] == "turbidity_value_3"
    assert profile.date_columns == ()
    assert profile.consistency_buckets == ()


def test_load_profile_from_json_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_profile_from_json(str(tmp_path / "missing.json"))

    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_profile_from_json(str(path))
