"""
Collapse the longitudinal county table into one latest-value row per county.

Usage:
    python compute_latest.py --source URL_OR_PATH (--metrics A,B | --metric-range START[:STOP])

Outputs:
    data/processed/latest.csv

Rows are expected in ascending year order within each county, which is how the
source publishes them. No re-sorting happens here: the last row seen for a
county is treated as its most recent one.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from config import KEY_COL
from errors import InvalidColumnRange


PROC_DIR = Path("data/processed")
PROC_CSV = PROC_DIR / "latest.csv"

log = logging.getLogger(__name__)


def last_observed(values: pd.Series):
    """Forward-fill an ordered series and return its final element.

    A value missing in the latest year is carried forward from the nearest
    earlier year; leading gaps are never back-filled, so an all-missing series
    yields NaN.
    """
    if values.empty:
        return np.nan
    return values.ffill().iloc[-1]


def metric_columns_from_range(df: pd.DataFrame, start: int, stop: Optional[int] = None) -> List[str]:
    """Resolve a positional column range (stop exclusive) to column names."""
    ncols = df.shape[1]
    end = ncols if stop is None else stop
    if start < 0 or end > ncols or start >= end:
        raise InvalidColumnRange(
            f"Metric columns [{start}:{stop if stop is not None else ''}] "
            f"out of range for a table with {ncols} columns"
        )
    return list(df.columns[start:end])


def reduce_latest(
    df: pd.DataFrame,
    metric_cols: Sequence[str],
    drop_cols: Iterable[str] = ("year", "statecode", "countycode"),
) -> pd.DataFrame:
    """One row per `fips`, in first-appearance order.

    Metric columns hold the last non-missing value of the county's rows;
    every other retained column comes from the county's final row as-is.
    """
    if not metric_cols:
        raise InvalidColumnRange("No metric columns to reduce")
    absent = [c for c in [KEY_COL, *metric_cols] if c not in df.columns]
    if absent:
        raise InvalidColumnRange(f"Columns not in table: {absent}. Found: {list(df.columns)}")

    dropped = {c for c in drop_cols if c in df.columns}
    metrics = set(metric_cols)
    keep = [c for c in df.columns if c != KEY_COL and (c not in dropped or c in metrics)]

    metric_keep = [c for c in keep if c in metrics]
    descriptive = [c for c in keep if c not in metrics]

    # GroupBy.last skips NaN, which is last_observed applied per group
    grouped = df.groupby(KEY_COL, sort=False)
    latest = grouped[metric_keep].last()
    final_rows = grouped.tail(1).set_index(KEY_COL)[descriptive].reindex(latest.index)
    out = pd.concat([latest, final_rows], axis=1)[keep]
    out.index.name = KEY_COL
    out = out.reset_index()
    log.info("Reduced %d rows to %d counties (%d metric columns)", len(df), len(out), len(metrics))
    return out


def select_metrics(
    table: pd.DataFrame,
    metrics: Sequence[str],
    name_cols: Sequence[str] = ("state", "county"),
) -> pd.DataFrame:
    """Key + descriptive name columns + the chosen metrics."""
    if not metrics:
        raise InvalidColumnRange("No metric selected")
    missing = [m for m in metrics if m not in table.columns or m == KEY_COL]
    if missing:
        raise InvalidColumnRange(f"Selected metrics not in table: {missing}. Found: {list(table.columns)}")
    names = [c for c in name_cols if c in table.columns and c not in metrics]
    return table[[KEY_COL, *names, *metrics]].copy()


def load_processed(path: Path = PROC_CSV) -> Optional[pd.DataFrame]:
    if not path.exists():
        return None
    return pd.read_csv(path, dtype={KEY_COL: str})


def save_outputs(df: pd.DataFrame, path: Path = PROC_CSV) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    log.info("Saved latest-value table -> %s", path)
    return path


def parse_range(text: str) -> Tuple[int, Optional[int]]:
    """argparse type for START[:STOP]."""
    start, _, stop = text.partition(":")
    try:
        return int(start), (int(stop) if stop else None)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected START[:STOP] integers, got {text!r}") from None


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Reduce the county table to latest values per county")
    p.add_argument("--source", required=True, help="URL or path of the longitudinal CSV")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--metrics", help="Comma-separated metric column names")
    group.add_argument(
        "--metric-range",
        type=parse_range,
        help="Positional metric columns START[:STOP] (fips counts as column 0)",
    )
    p.add_argument("--state-col", default="statecode")
    p.add_argument("--county-col", default="countycode")
    p.add_argument("--year-col", default="year")
    return p.parse_args()


def main() -> None:
    from fetch_data import load_table

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    args = parse_args()
    df = load_table(args.source, args.state_col, args.county_col)
    if args.metrics:
        metric_cols = [m.strip() for m in args.metrics.split(",") if m.strip()]
    else:
        metric_cols = metric_columns_from_range(df, *args.metric_range)
    latest = reduce_latest(df, metric_cols, drop_cols=(args.year_col, args.state_col, args.county_col))
    save_outputs(latest)


if __name__ == "__main__":
    main()
