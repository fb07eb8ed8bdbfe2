"""
Generate local preview figures for the metric about to be published.

Usage:
    python preview_charts.py --metric COL

Outputs:
    reports/figures/<metric>_distribution.png
    reports/figures/<metric>_coverage.png
    reports/figures/<metric>_coverage.csv (share of counties with a value, per state)
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

import matplotlib
# Use a non-interactive backend for headless environments
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from config import KEY_COL
from errors import InvalidColumnRange


FIG_DIR = Path("reports/figures")

log = logging.getLogger(__name__)


def coverage_by_state(table: pd.DataFrame, metric: str, state_name_col: Optional[str] = "state") -> pd.DataFrame:
    """Counties and share of counties with a non-missing `metric`, per state."""
    if metric not in table.columns:
        raise InvalidColumnRange(f"Metric '{metric}' not in table")
    if state_name_col and state_name_col in table.columns:
        state = table[state_name_col].astype(str)
    else:
        state = table[KEY_COL].astype(str).str[:2]
    frame = pd.DataFrame({"State": state, "has_value": table[metric].notna()})
    out = frame.groupby("State", sort=True)["has_value"].agg(["size", "mean"]).reset_index()
    out.columns = ["State", "Counties", "Coverage"]
    out["Coverage"] = out["Coverage"].round(3)
    return out


def plot_distribution(table: pd.DataFrame, metric: str, out_dir: Path = FIG_DIR) -> Path:
    values = pd.to_numeric(table[metric], errors="coerce").dropna()

    plt.figure(figsize=(8, 4.5))
    sns.set_style("whitegrid")
    sns.histplot(values, bins=40, color="#1f77b4")
    plt.title(f"{metric}: latest value per county (n={len(values)})")
    plt.xlabel(metric)
    plt.ylabel("Counties")
    plt.tight_layout()

    out_dir.mkdir(parents=True, exist_ok=True)
    out = out_dir / f"{metric}_distribution.png"
    plt.savefig(out, dpi=150)
    plt.close()
    return out


def plot_coverage(coverage: pd.DataFrame, metric: str, out_dir: Path = FIG_DIR) -> Path:
    fig, ax = plt.subplots(figsize=(8, 1 + 0.22 * max(1, len(coverage))))
    sns.set_style("whitegrid")
    ax.barh(coverage["State"], coverage["Coverage"], color="#d62728")
    ax.set_xlim(0, 1)
    ax.invert_yaxis()
    ax.set_xlabel("Share of counties with a value")
    ax.set_title(f"{metric}: coverage by state")
    fig.tight_layout()

    out_dir.mkdir(parents=True, exist_ok=True)
    out = out_dir / f"{metric}_coverage.png"
    plt.savefig(out, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return out


def render_previews(table: pd.DataFrame, metric: str, out_dir: Path = FIG_DIR) -> list[Path]:
    coverage = coverage_by_state(table, metric)
    csv_path = out_dir / f"{metric}_coverage.csv"
    out_dir.mkdir(parents=True, exist_ok=True)
    coverage.to_csv(csv_path, index=False)
    paths = [plot_distribution(table, metric, out_dir), plot_coverage(coverage, metric, out_dir), csv_path]
    for p in paths:
        log.info("Saved preview -> %s", p)
    return paths


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Render local preview figures for a metric")
    p.add_argument("--metric", required=True)
    return p.parse_args()


def main() -> None:
    from compute_latest import PROC_CSV, load_processed

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    args = parse_args()
    table = load_processed()
    if table is None:
        raise FileNotFoundError(f"{PROC_CSV} not found. Run compute_latest.py first.")
    render_previews(table, args.metric)


if __name__ == "__main__":
    main()
