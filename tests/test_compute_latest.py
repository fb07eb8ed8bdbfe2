from __future__ import annotations

import argparse

import numpy as np
import pandas as pd
import pytest

from compute_latest import last_observed, metric_columns_from_range, parse_range, reduce_latest, select_metrics
from errors import InvalidColumnRange
from fetch_data import load_table


def frame(rows):
    return pd.DataFrame(rows, columns=["fips", "year", "metric"])


def test_latest_value_wins():
    df = frame([("06001", 2015, 5), ("06001", 2016, np.nan), ("06001", 2017, 8)])
    out = reduce_latest(df, ["metric"])
    assert out.to_dict("records") == [{"fips": "06001", "metric": 8}]


def test_missing_final_year_carries_previous_value():
    df = frame([("06001", 2015, 5), ("06001", 2016, np.nan)])
    out = reduce_latest(df, ["metric"])
    assert out.to_dict("records") == [{"fips": "06001", "metric": 5}]


def test_leading_gaps_are_not_backfilled():
    assert pd.isna(last_observed(pd.Series([np.nan, np.nan])))
    assert last_observed(pd.Series([np.nan, 3.0])) == 3.0
    assert pd.isna(last_observed(pd.Series([], dtype=float)))


def test_single_row_key_passes_through():
    df = frame([("01001", 2020, 4.5)])
    out = reduce_latest(df, ["metric"])
    assert out.to_dict("records") == [{"fips": "01001", "metric": 4.5}]


def test_sample_table(sample_csv):
    df = load_table(str(sample_csv))
    out = reduce_latest(df, ["uninsured", "income"])

    assert out.columns.tolist() == ["fips", "state", "county", "uninsured", "income"]
    assert out["fips"].tolist() == ["06001", "01003"]

    alameda = out.iloc[0]
    assert alameda["uninsured"] == 8
    assert alameda["income"] == 70000
    assert alameda["county"] == "Alameda"

    baldwin = out.iloc[1]
    assert pd.isna(baldwin["uninsured"])
    assert baldwin["income"] == 50000


def test_one_row_per_key_against_brute_force(sample_csv):
    df = load_table(str(sample_csv))
    out = reduce_latest(df, ["uninsured", "income"])

    assert len(out) == df["fips"].nunique()
    assert len(out) <= len(df)
    assert out["fips"].is_unique

    for _, row in out.iterrows():
        group = df[df["fips"] == row["fips"]]
        for col in ("uninsured", "income"):
            observed = group[col].dropna()
            if observed.empty:
                assert pd.isna(row[col])
            else:
                assert row[col] == observed.iloc[-1]


def test_first_appearance_order_is_kept():
    df = frame([
        ("48001", 2019, 1), ("01001", 2019, 2), ("48001", 2020, 3), ("01001", 2020, 4),
    ])
    out = reduce_latest(df, ["metric"])
    assert out["fips"].tolist() == ["48001", "01001"]
    assert out["metric"].tolist() == [3, 4]


def test_descriptive_columns_come_from_final_row_unfilled():
    df = pd.DataFrame({
        "fips": ["06001", "06001"],
        "year": [2019, 2020],
        "name": ["Alameda", np.nan],
        "metric": [1.0, 2.0],
    })
    out = reduce_latest(df, ["metric"])
    assert pd.isna(out.loc[0, "name"])


def test_unknown_metric_in_reduce_raises():
    df = frame([("06001", 2015, 5)])
    with pytest.raises(InvalidColumnRange):
        reduce_latest(df, ["nope"])


def test_metric_range_resolves_names(sample_csv):
    df = load_table(str(sample_csv))
    assert metric_columns_from_range(df, 6) == ["uninsured", "income"]
    assert metric_columns_from_range(df, 6, 7) == ["uninsured"]


@pytest.mark.parametrize("start, stop", [(6, 9), (8, None), (-1, 3), (5, 5)])
def test_metric_range_out_of_bounds(sample_csv, start, stop):
    df = load_table(str(sample_csv))
    with pytest.raises(InvalidColumnRange):
        metric_columns_from_range(df, start, stop)


def test_select_metrics_keeps_key_and_names(sample_csv):
    latest = reduce_latest(load_table(str(sample_csv)), ["uninsured", "income"])
    out = select_metrics(latest, ["income"])
    assert out.columns.tolist() == ["fips", "state", "county", "income"]


def test_select_unknown_metric_raises(sample_csv):
    latest = reduce_latest(load_table(str(sample_csv)), ["uninsured", "income"])
    with pytest.raises(InvalidColumnRange, match="poverty"):
        select_metrics(latest, ["poverty"])


def test_select_requires_a_metric(sample_csv):
    latest = reduce_latest(load_table(str(sample_csv)), ["uninsured"])
    with pytest.raises(InvalidColumnRange):
        select_metrics(latest, [])


def test_reduction_matches_per_group_last_observed():
    rng = np.random.default_rng(7)
    n_keys, n_years = 40, 6
    values = rng.normal(size=(n_keys * n_years, 3))
    values[rng.random(values.shape) < 0.4] = np.nan
    df = pd.DataFrame(values, columns=["a", "b", "c"])
    df.insert(0, "fips", [f"{k:05d}" for k in range(n_keys) for _ in range(n_years)])
    df.insert(1, "year", list(range(2015, 2015 + n_years)) * n_keys)

    out = reduce_latest(df, ["a", "b", "c"]).set_index("fips")
    for key, group in df.groupby("fips", sort=False):
        for col in ("a", "b", "c"):
            expected = last_observed(group[col])
            actual = out.loc[key, col]
            assert (pd.isna(expected) and pd.isna(actual)) or expected == actual


@pytest.mark.parametrize("text, expected", [("5", (5, None)), ("5:9", (5, 9))])
def test_parse_range(text, expected):
    assert parse_range(text) == expected


@pytest.mark.parametrize("text", ["a:b", "5:x", ""])
def test_parse_range_rejects_non_integers(text):
    with pytest.raises(argparse.ArgumentTypeError):
        parse_range(text)
