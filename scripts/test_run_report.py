"""
End-to-end tests for the report command.
"""

import re
import sys
from pathlib import Path

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conftest import chlorine_row
from run_report import build_parser, main, parse_status_filters, resolve_output_path


@pytest.fixture
def chlorine_csv(tmp_path):
    rows = [
        chlorine_row("A", [0.3] * 7, region="Nagpur", mjp_commissioned="Yes"),
        chlorine_row("B", [0.1] * 7, region="Nagpur", mjp_commissioned="No"),
        chlorine_row("C", [0.9] * 7, region="Pune", mjp_commissioned="Yes"),
    ]
    path = tmp_path / "chlorine.csv"
    pd.DataFrame(rows).to_csv(path, index=False)
    return path


def test_parse_status_filters():
    assert parse_status_filters(["mjp_commissioned=Yes", "mjp_fully_completed = Fully Completed"]) == {
        "mjp_commissioned": "Yes",
        "mjp_fully_completed": "Fully Completed",
    }
    assert parse_status_filters([]) == {}
    with pytest.raises(ValueError):
        parse_status_filters(["mjp_commissioned"])


def test_parser_has_one_flag_per_level():
    args = build_parser().parse_args(["--kind", "pressure", "--input", "x.csv", "--sub-division", "Hingna"])
    assert args.sub_division == "Hingna"
    assert args.village is None


def test_report_with_export(tmp_path, chlorine_csv):
    out = tmp_path / "reports" / "nagpur.csv"

    code = main([
        "--kind", "chlorine",
        "--input", str(chlorine_csv),
        "--region", "Nagpur",
        "--status", "mjp_commissioned=Yes",
        "--rollup", "region",
        "--export", str(out),
    ])

    assert code == 0
    exported = pd.read_csv(out)
    assert exported["Scheme ID"].tolist() == ["S-A"]


def test_report_bucket_selection(tmp_path, chlorine_csv):
    out = tmp_path / "low.xlsx"
    code = main(["--kind", "chlorine", "--input", str(chlorine_csv), "--bucket", "consistent_below", "--export", str(out)])

    assert code == 0
    sheet = pd.read_excel(out, engine="openpyxl")
    assert sheet["Scheme ID"].tolist() == ["S-B"]


def test_report_failure_returns_1(tmp_path):
    assert main(["--kind", "chlorine", "--input", str(tmp_path / "missing.csv")]) == 1


def test_report_with_scheme_summary(tmp_path, chlorine_csv, capsys):
    schemes = tmp_path / "schemes.csv"
    pd.DataFrame([
        {"scheme_id": "S-A", "scheme_name": "Khapa RRWSS", "region": "Nagpur",
         "mjp_fully_completed": "Fully Completed", "total_esr_integrated": 3, "no_fully_completed_esr": 3},
        {"scheme_id": "S-B", "scheme_name": "Mauda WSS", "region": "Nagpur",
         "mjp_fully_completed": "In Progress", "total_esr_integrated": 1, "no_fully_completed_esr": 0},
        {"scheme_id": "S-C", "scheme_name": "Wagholi WSS", "region": "Pune",
         "mjp_fully_completed": "Fully Completed", "total_esr_integrated": 2, "no_fully_completed_esr": 2},
    ]).to_csv(schemes, index=False)

    code = main([
        "--kind", "chlorine",
        "--input", str(chlorine_csv),
        "--schemes", str(schemes),
        "--region", "Nagpur",
        "--rollup", "region",
    ])

    assert code == 0
    out = capsys.readouterr().out
    assert "SCHEME SUMMARY" in out
    assert re.search(r"total_schemes\s+2\s*$", out, re.MULTILINE)
    assert re.search(r"fully_completed_schemes\s+1\s*$", out, re.MULTILINE)
    assert re.search(r"esr_completion_pct\s+75\.0%", out)


def test_resolve_output_path(tmp_path):
    assert resolve_output_path("nagpur.xlsx", "data_cache") == Path("data_cache") / "nagpur.xlsx"
    assert resolve_output_path("reports/nagpur.xlsx", "data_cache") == Path("reports/nagpur.xlsx")
    assert resolve_output_path(str(tmp_path / "nagpur.csv"), "data_cache") == tmp_path / "nagpur.csv"
