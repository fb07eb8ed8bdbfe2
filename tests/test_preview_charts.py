from __future__ import annotations

import pandas as pd
import pytest

from errors import InvalidColumnRange
from preview_charts import coverage_by_state, render_previews


@pytest.fixture
def table():
    return pd.DataFrame({
        "fips": ["06001", "06003", "01001", "01003"],
        "state": ["California", "California", "Alabama", "Alabama"],
        "county": ["Alameda", "Alpine", "Autauga", "Baldwin"],
        "income": [70000.0, None, 55000.0, 61000.0],
    })


def test_coverage_by_state(table):
    cov = coverage_by_state(table, "income")
    assert cov.to_dict("records") == [
        {"State": "Alabama", "Counties": 2, "Coverage": 1.0},
        {"State": "California", "Counties": 2, "Coverage": 0.5},
    ]


def test_coverage_falls_back_to_fips_prefix(table):
    cov = coverage_by_state(table.drop(columns=["state"]), "income")
    assert cov["State"].tolist() == ["01", "06"]


def test_coverage_unknown_metric(table):
    with pytest.raises(InvalidColumnRange):
        coverage_by_state(table, "poverty")


def test_render_previews_writes_files(table, tmp_path):
    paths = render_previews(table, "income", out_dir=tmp_path)
    names = sorted(p.name for p in paths)
    assert names == ["income_coverage.csv", "income_coverage.png", "income_distribution.png"]
    assert all(p.exists() and p.stat().st_size > 0 for p in paths)
