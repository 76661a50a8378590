"""
Shared fixtures for the AquaWatch test scripts.
"""

import sys
from pathlib import Path

import pandas as pd
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import get_profile


def chlorine_row(record_id, values, region="Nagpur", village="Khapa", **extra):
    """One chlorine record with day1..day7 readings."""
    row = {
        "scheme_id": f"S-{record_id}",
        "esr_name": f"ESR {record_id}",
        "region": region,
        "village_name": village,
    }
    padded = list(values) + [None] * (7 - len(values))
    for day, value in enumerate(padded, start=1):
        row[f"chlorine_value_{day}"] = value
    row.update(extra)
    return row


@pytest.fixture
def chlorine_profile():
    return get_profile("chlorine")


@pytest.fixture
def lpcd_profile():
    return get_profile("lpcd")


@pytest.fixture
def chlorine_records():
    """
    Six ESRs covering every chlorine card:

    A optimal now and all week, B zero all week, C no readings,
    D above now after a low week, E low for 6 days only, F low all week.
    """
    return pd.DataFrame([
        chlorine_row("A", [0.3] * 7, region="Nagpur"),
        chlorine_row("B", [0] * 7, region="Nagpur"),
        chlorine_row("C", [None] * 7, region="Pune"),
        chlorine_row("D", [0.1] * 6 + [0.8], region="Pune"),
        chlorine_row("E", [0.1] * 6 + [None], region="Amravati"),
        chlorine_row("F", [0.15] * 7, region="Amravati"),
    ])


@pytest.fixture
def hierarchy_records():
    """
    Ten scheme rows: 4 in Nagpur (3 of them in village X), 3 in Pune, 3 in Konkan.
    """
    rows = [
        ("1", "Nagpur", "Nagpur Division", "X", "Yes", "Fully Completed"),
        ("2", "Nagpur", "Nagpur Division", "X", "Yes", "In Progress"),
        ("3", "Nagpur", "Wardha Division", "X", "No", "In Progress"),
        ("4", "Nagpur", "Wardha Division", "Y", "Yes", "Fully Completed"),
        ("5", "Pune", "Pune Division", "X", "Yes", "Fully Completed"),
        ("6", "Pune", "Satara Division", "Z", None, None),
        ("7", "Pune", "Satara Division", "Z", "No", "In Progress"),
        ("8", "Konkan", "Thane Division", "K", "Yes", "In Progress"),
        ("9", "Konkan", "Thane Division", "K", "Yes", "Fully Completed"),
        ("10", "Konkan", "Raigad Division", "R", "No", "In Progress"),
    ]
    return pd.DataFrame(
        rows,
        columns=["scheme_id", "region", "division", "village_name", "mjp_commissioned", "mjp_fully_completed"],
    )
